"""
Input sanitizers for route keys, durations and stored counts.

Pure functions; none of them raise. Callers decide what an empty route or a
None duration means for them.
"""

from __future__ import annotations

import math
import re
from typing import Any

MAX_TRACKABLE_DURATION_MS = 24 * 60 * 60 * 1000

_REPEATED_SLASHES = re.compile(r"/{2,}")
_SUFFIX_MARKERS = re.compile(r"[?#]")


def to_number(value: Any) -> float | None:
    """
    Coerce a JSON-ish value to a finite float.

    Accepts ints, floats and numeric strings. Booleans, None, containers and
    non-finite values give None. So does an int too large for a float.
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            return None
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def sanitize_route(value: Any) -> str:
    """
    Canonicalize a route into a RouteKey.

    "  /Blog//Post/?ref=x " -> "blog/post". Returns "" for anything that
    cannot name a route. Idempotent.
    """
    if not isinstance(value, str):
        return ""

    route = value.strip().lower()
    marker = _SUFFIX_MARKERS.search(route)
    if marker:
        route = route[: marker.start()]
    route = _REPEATED_SLASHES.sub("/", route)

    # Stripping slashes can expose whitespace and vice versa
    while True:
        stripped = route.strip().strip("/")
        if stripped == route:
            return route
        route = stripped


def sanitize_duration(
    value: Any, max_duration_ms: int = MAX_TRACKABLE_DURATION_MS
) -> int | None:
    """
    Validate a duration sample in milliseconds.

    Values above max_duration_ms are clamped, not dropped, so sessions left
    open across days still count as very long. Returns None when invalid.
    """
    if isinstance(value, int) and not isinstance(value, bool):
        return min(value, max_duration_ms) if value > 0 else None

    number = to_number(value)
    if number is None or number <= 0:
        return None

    clamped = min(number, float(max_duration_ms))
    rounded = math.floor(clamped + 0.5)
    return rounded if rounded > 0 else None


def sanitize_count(value: Any) -> int:
    """Coerce a stored counter to a non-negative int (0 means drop it)."""
    if isinstance(value, int) and not isinstance(value, bool):
        return max(value, 0)
    number = to_number(value)
    if number is None or number <= 0:
        return 0
    return int(number)
