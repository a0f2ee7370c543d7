"""
Stats normalizer and schema migrator.

The single path from any persisted blob (every schema version this service
has ever written, or a hand-edited/truncated file) to current-schema
SiteStats. Never raises: anything unusable is dropped, and a blob that is not
usable at all becomes empty stats.

Schema versions (see SchemaVersion):
- LEGACY_COUNTER: {"count": n}, the first single-counter format.
- SINGLE_SITE: {"total", "routes", "daily", "sessionDurations", "routeDurations"}.
- MULTI_SITE: {"version": 3, "sites": {site: SINGLE_SITE-shaped}}.

The legacy "count" field is only honoured in unversioned files. Once a file
carries a "version", the writer knew about routes and "count" is ignored.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from ._calendar import parse_date_key
from ._durations import merge_summaries, normalize_summary
from ._sanitize import sanitize_count, sanitize_route, to_number
from ._sites import SiteRegistry
from .models import DurationSummary, SchemaVersion, SiteStats

logger = logging.getLogger(__name__)

LEGACY_ROUTE_NAME = "general"


def detect_schema(raw: Any) -> SchemaVersion:
    """Classify a persisted blob into one of the known layouts."""
    if not isinstance(raw, dict):
        return SchemaVersion.EMPTY
    if isinstance(raw.get("sites"), dict):
        return SchemaVersion.MULTI_SITE

    declared = declared_version(raw)
    if declared is not None and declared >= SchemaVersion.SINGLE_SITE:
        return SchemaVersion.SINGLE_SITE
    if not any(key in raw for key in ("routes", "total", "daily")) and "count" in raw:
        return SchemaVersion.LEGACY_COUNTER
    return SchemaVersion.SINGLE_SITE


def declared_version(raw: Mapping[str, Any]) -> int | None:
    number = to_number(raw.get("version"))
    return int(number) if number is not None else None


# --- Route maps ---


def _normalize_route_counts(raw: Any) -> dict[str, int]:
    """Sanitize route keys and sum counts that collide after sanitizing."""
    if not isinstance(raw, dict):
        return {}
    routes: dict[str, int] = {}
    for route_name, value in raw.items():
        route = sanitize_route(route_name)
        visits = sanitize_count(value)
        if route and visits > 0:
            routes[route] = routes.get(route, 0) + visits
    return routes


def _normalize_daily(raw: Any) -> dict[str, dict[str, int]]:
    if not isinstance(raw, dict):
        return {}
    daily: dict[str, dict[str, int]] = {}
    for date_key, routes in raw.items():
        if parse_date_key(date_key) is None:
            continue
        normalized = _normalize_route_counts(routes)
        if normalized:
            daily[date_key] = normalized
    return daily


# --- Duration maps ---


def _normalize_session_durations(raw: Any) -> dict[str, DurationSummary]:
    if not isinstance(raw, dict):
        return {}
    sessions: dict[str, DurationSummary] = {}
    for date_key, value in raw.items():
        if parse_date_key(date_key) is None:
            continue
        summary = normalize_summary(value)
        if summary is not None:
            sessions[date_key] = summary
    return sessions


def _normalize_route_durations(raw: Any) -> dict[str, dict[str, DurationSummary]]:
    if not isinstance(raw, dict):
        return {}
    result: dict[str, dict[str, DurationSummary]] = {}
    for date_key, routes in raw.items():
        if parse_date_key(date_key) is None or not isinstance(routes, dict):
            continue
        day: dict[str, DurationSummary] = {}
        for route_name, value in routes.items():
            route = sanitize_route(route_name)
            summary = normalize_summary(value)
            if not route or summary is None:
                continue
            existing = day.get(route)
            day[route] = summary if existing is None else merge_summaries(existing, summary)
        if day:
            result[date_key] = day
    return result


# --- Site stats ---


def normalize_site_stats(
    raw: Any,
    *,
    legacy_route: str = LEGACY_ROUTE_NAME,
    allow_legacy_count: bool = True,
) -> SiteStats:
    """Rebuild one site's stats from a persisted blob."""
    if not isinstance(raw, dict):
        return SiteStats()

    routes = _normalize_route_counts(raw.get("routes"))
    total_from_routes = sum(routes.values())
    # Clamp up, never down: extra total is unattributed older history
    total = max(sanitize_count(raw.get("total")), total_from_routes)

    legacy_count = raw.get("count")
    if (
        allow_legacy_count
        and not routes
        and isinstance(legacy_count, (int, float))
        and not isinstance(legacy_count, bool)
    ):
        visits = sanitize_count(legacy_count)
        if visits > 0:
            routes[sanitize_route(legacy_route) or LEGACY_ROUTE_NAME] = visits
            total = max(total, visits)

    return SiteStats(
        total=total,
        routes=routes,
        daily=_normalize_daily(raw.get("daily")),
        session_durations=_normalize_session_durations(raw.get("sessionDurations")),
        route_durations=_normalize_route_durations(raw.get("routeDurations")),
    )


def _merge_counts(a: dict[str, int], b: Mapping[str, int]) -> None:
    for key, value in b.items():
        a[key] = a.get(key, 0) + value


def merge_site_stats(a: SiteStats, b: SiteStats) -> SiteStats:
    """Combine two normalized stats objects for the same site."""
    merged = a.copy()
    merged.total += b.total
    _merge_counts(merged.routes, b.routes)
    for day, routes in b.daily.items():
        _merge_counts(merged.daily.setdefault(day, {}), routes)
    for day, summary in b.session_durations.items():
        existing = merged.session_durations.get(day)
        merged.session_durations[day] = (
            summary.copy() if existing is None else merge_summaries(existing, summary)
        )
    for day, routes in b.route_durations.items():
        target = merged.route_durations.setdefault(day, {})
        for route, summary in routes.items():
            existing = target.get(route)
            target[route] = summary.copy() if existing is None else merge_summaries(existing, summary)
    return merged


# --- Whole state ---


def normalize_state(
    raw: Any,
    registry: SiteRegistry,
    *,
    legacy_route: str = LEGACY_ROUTE_NAME,
) -> dict[str, SiteStats]:
    """
    Rebuild the multi-site state from any persisted blob.

    Always returns at least the default site.
    """
    schema = detect_schema(raw)
    allow_legacy = isinstance(raw, dict) and declared_version(raw) is None

    if schema is SchemaVersion.MULTI_SITE:
        sites: dict[str, SiteStats] = {}
        for raw_site, raw_stats in raw["sites"].items():
            site_key = registry.resolve(raw_site)
            if site_key is None:
                logger.warning("Dropping stats for unknown site %r", raw_site)
                continue
            stats = normalize_site_stats(
                raw_stats, legacy_route=legacy_route, allow_legacy_count=allow_legacy
            )
            existing = sites.get(site_key)
            sites[site_key] = stats if existing is None else merge_site_stats(existing, stats)
        if not sites:
            sites[registry.default_site] = SiteStats()
        return sites

    stats = normalize_site_stats(
        raw, legacy_route=legacy_route, allow_legacy_count=allow_legacy
    )
    return {registry.default_site: stats}
