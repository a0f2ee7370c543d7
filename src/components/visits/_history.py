"""
Day-bucketed history maintenance: retention pruning and daily seeding.
"""

from __future__ import annotations

from datetime import datetime

from ._calendar import DayCalendar
from .models import SiteStats

RETENTION_DAYS = 366
DAILY_SEED_DAYS = 7


def prune_history(
    stats: SiteStats,
    calendar: DayCalendar,
    reference: datetime,
    retention_days: int = RETENTION_DAYS,
) -> int:
    """
    Drop day buckets older than the retention window.

    Today and the previous retention_days - 1 days are kept. Entries with an
    unparseable key are dropped too. Returns how many buckets were removed.
    """
    cutoff = calendar.window_start(retention_days, reference)
    removed = 0
    for bucket in (stats.daily, stats.session_durations, stats.route_durations):
        for date_key in list(bucket):
            timestamp = calendar.timestamp_for(date_key)
            if timestamp is None or timestamp < cutoff:
                del bucket[date_key]
                removed += 1
    return removed


def seed_daily_from_routes(
    stats: SiteStats,
    calendar: DayCalendar,
    reference: datetime,
    days: int = DAILY_SEED_DAYS,
) -> bool:
    """
    Give stats that predate daily tracking a plausible recent history.

    Each route's lifetime count is spread evenly over the last `days` days,
    earliest days taking the remainder. Only runs when there is no daily
    history at all. Returns True if anything was seeded.
    """
    if stats.daily or not stats.routes or days <= 0:
        return False

    date_keys = calendar.recent_keys(days, reference)
    seeded: dict[str, dict[str, int]] = {key: {} for key in date_keys}
    for route, visits in stats.routes.items():
        base, remainder = divmod(visits, len(date_keys))
        for index, date_key in enumerate(date_keys):
            amount = base + (1 if index < remainder else 0)
            if amount:
                seeded[date_key][route] = seeded[date_key].get(route, 0) + amount

    stats.daily = {key: routes for key, routes in seeded.items() if routes}
    return bool(stats.daily)
