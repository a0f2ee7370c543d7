"""
Visits component - visit counters, duration stats and range reports.
"""

from ._calendar import DayCalendar, parse_date_key
from ._durations import (
    create_summary,
    merge_summaries,
    normalize_summary,
    render_summary,
    update_summary,
)
from ._history import prune_history, seed_daily_from_routes
from ._normalize import (
    detect_schema,
    merge_site_stats,
    normalize_site_stats,
    normalize_state,
)
from ._persist import WriteThroughPersister
from ._sanitize import sanitize_duration, sanitize_route
from ._sites import SiteRegistry
from .component import (
    DEFAULT_CONFIG,
    RANGE_ALIASES,
    RANGE_PRESETS,
    DefaultTimePort,
    VisitsConfig,
    VisitStatsEngine,
    create_visit_stats_engine,
    resolve_range,
)
from .models import (
    CURRENT_SCHEMA_VERSION,
    CorruptDataError,
    DailyDurations,
    DailyVisits,
    DurationRangeQuery,
    DurationRecord,
    DurationScope,
    DurationSummary,
    InvalidDurationError,
    InvalidRangeError,
    InvalidRouteError,
    InvalidScopeError,
    InvalidSiteError,
    MissingRouteError,
    PersistenceError,
    RangeQuery,
    SchemaVersion,
    SiteStats,
    VisitsError,
    VisitsValidationError,
)
from .ports import PersistPolicy, StatsStorePort, TimePort

__all__ = [
    # Engine
    "VisitStatsEngine",
    "VisitsConfig",
    "DEFAULT_CONFIG",
    "DefaultTimePort",
    "create_visit_stats_engine",
    "resolve_range",
    "RANGE_PRESETS",
    "RANGE_ALIASES",
    # Building blocks
    "DayCalendar",
    "SiteRegistry",
    "WriteThroughPersister",
    "parse_date_key",
    "sanitize_route",
    "sanitize_duration",
    "create_summary",
    "update_summary",
    "merge_summaries",
    "normalize_summary",
    "render_summary",
    "prune_history",
    "seed_daily_from_routes",
    "detect_schema",
    "normalize_site_stats",
    "normalize_state",
    "merge_site_stats",
    # Models
    "CURRENT_SCHEMA_VERSION",
    "SchemaVersion",
    "SiteStats",
    "DurationSummary",
    "DurationScope",
    "DurationRecord",
    "DailyVisits",
    "DailyDurations",
    "RangeQuery",
    "DurationRangeQuery",
    # Errors
    "VisitsError",
    "VisitsValidationError",
    "InvalidRouteError",
    "MissingRouteError",
    "InvalidDurationError",
    "InvalidScopeError",
    "InvalidRangeError",
    "InvalidSiteError",
    "PersistenceError",
    "CorruptDataError",
    # Ports
    "StatsStorePort",
    "PersistPolicy",
    "TimePort",
]
