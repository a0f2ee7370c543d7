"""
Duration summary algebra.

A summary is {min, max, count, totalDuration} in ms. merge_summaries is
commutative and associative so summaries from several sources can be folded
in any order.
"""

from __future__ import annotations

from typing import Any

from ._sanitize import to_number
from .models import DurationSummary


def create_summary(duration_ms: float) -> DurationSummary:
    return DurationSummary(
        min=duration_ms, max=duration_ms, count=1, total_duration=duration_ms
    )


def update_summary(summary: DurationSummary, duration_ms: float) -> DurationSummary:
    """Fold one sample into summary, in place. Returns the same object."""
    summary.count += 1
    summary.total_duration += duration_ms
    summary.min = min(summary.min, duration_ms)
    summary.max = max(summary.max, duration_ms)
    return summary


def merge_summaries(a: DurationSummary, b: DurationSummary) -> DurationSummary:
    return DurationSummary(
        min=min(a.min, b.min),
        max=max(a.max, b.max),
        count=a.count + b.count,
        total_duration=a.total_duration + b.total_duration,
    )


def _positive(value: Any) -> float | None:
    number = to_number(value)
    if number is None or number <= 0:
        return None
    return number


def _whole(number: float) -> float:
    return int(number) if float(number).is_integer() else number


def normalize_summary(raw: Any) -> DurationSummary | None:
    """
    Rebuild a trustworthy summary from a persisted one, or None.

    The bounds are authoritative: a corrupted total is clamped into
    [min*count, max*count] so the average can never fall outside them.
    """
    if not isinstance(raw, dict):
        return None

    count_value = _positive(raw.get("count"))
    total = _positive(raw.get("totalDuration"))
    if count_value is None or total is None:
        return None
    count = int(count_value)
    if count < 1:
        return None

    average = total / count
    low = _positive(raw.get("min"))
    high = _positive(raw.get("max"))
    if low is None:
        low = average
    if high is None:
        high = average
    if low > high:
        low, high = high, low

    total = min(max(total, low * count), high * count)
    return DurationSummary(
        min=_whole(low), max=_whole(high), count=count, total_duration=_whole(total)
    )


def render_summary(summary: DurationSummary) -> dict[str, Any]:
    """Public view of a summary, with the derived average."""
    data = summary.to_dict()
    data["average"] = round(summary.average, 2)
    return data
