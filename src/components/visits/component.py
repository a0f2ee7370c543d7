"""
Visits component - visit counting, duration stats and range reports.

Holds one SiteStats per site, applies visit and duration events, answers
preset day-range queries and writes the whole state through to a store after
every mutation.

Invariants:
- I1: Every RouteKey and DateKey held in memory is sanitized/valid
- I2: total >= sum(routes) for every site, after every load and mutation
- I3: Day buckets never outlive the retention window
- I4: Writes are serialized ("mutate + persist" under one lock)
- I5: Reads see a consistent copy and never wait on store I/O
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from ._calendar import DEFAULT_UTC_OFFSET_HOURS, DayCalendar
from ._durations import create_summary, render_summary, update_summary
from ._history import DAILY_SEED_DAYS, RETENTION_DAYS, prune_history, seed_daily_from_routes
from ._normalize import LEGACY_ROUTE_NAME, detect_schema, normalize_state
from ._persist import WriteThroughPersister
from ._sanitize import MAX_TRACKABLE_DURATION_MS, sanitize_duration, sanitize_route
from ._sites import DEFAULT_SITE, SiteRegistry
from .models import (
    CURRENT_SCHEMA_VERSION,
    CorruptDataError,
    DailyDurations,
    DailyVisits,
    DurationRangeQuery,
    DurationRecord,
    DurationScope,
    InvalidDurationError,
    InvalidRangeError,
    InvalidRouteError,
    InvalidScopeError,
    InvalidSiteError,
    MissingRouteError,
    PersistenceError,
    RangeQuery,
    SiteStats,
)
from .ports import PersistPolicy, StatsStorePort, TimePort

logger = logging.getLogger(__name__)

RANGE_PRESETS: dict[str, int] = {"week": 7, "30d": 30, "year": 365}

RANGE_ALIASES: dict[str, str] = {
    "semana": "week",
    "esta-semana": "week",
    "esta_semana": "week",
    "ultimos-7-dias": "week",
    "7d": "week",
    "30-dias": "30d",
    "30dias": "30d",
    "ultimos-30-dias": "30d",
    "ultimo-mes": "30d",
    "ultimo_mes": "30d",
    "anual": "year",
    "ultimo-ano": "year",
    "ultimo-año": "year",
    "ultimo_ano": "year",
    "ultimo_año": "year",
    "ultimos-12-meses": "year",
}


# --- Configuration ---


@dataclass(frozen=True)
class VisitsConfig:
    """Visits component configuration."""

    utc_offset_hours: int = DEFAULT_UTC_OFFSET_HOURS
    retention_days: int = RETENTION_DAYS
    daily_seed_days: int = DAILY_SEED_DAYS
    max_duration_ms: int = MAX_TRACKABLE_DURATION_MS
    legacy_route: str = LEGACY_ROUTE_NAME

    default_range: str = "week"
    range_presets: Mapping[str, int] = field(default_factory=lambda: dict(RANGE_PRESETS))
    range_aliases: Mapping[str, str] = field(default_factory=lambda: dict(RANGE_ALIASES))

    default_site: str = DEFAULT_SITE
    site_aliases: Mapping[str, tuple[str, ...]] = field(default_factory=dict)

    persist_max_attempts: int = 3
    persist_retry_delay_seconds: float = 0.05


DEFAULT_CONFIG = VisitsConfig()


class DefaultTimePort:
    """Default time provider."""

    def now_utc(self) -> datetime:
        """Get current UTC time."""
        return datetime.now(UTC)


def resolve_range(raw: object, config: VisitsConfig = DEFAULT_CONFIG) -> str | None:
    """Preset key for a raw range name or alias; missing means the default range."""
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return config.default_range
    name = str(raw).strip().lower()
    if name in config.range_presets:
        return name
    alias = config.range_aliases.get(name)
    if alias in config.range_presets:
        return alias
    return None


# --- Engine ---


class VisitStatsEngine:
    """
    Stateful aggregation engine for every tracked site.

    Construct once per process, call load(), then share the instance with
    request handlers.
    """

    def __init__(
        self,
        store: StatsStorePort,
        *,
        config: VisitsConfig | None = None,
        time_port: TimePort | None = None,
        persister: PersistPolicy | None = None,
    ) -> None:
        self._config = config or DEFAULT_CONFIG
        self._store = store
        self._time = time_port or DefaultTimePort()
        self._calendar = DayCalendar(self._config.utc_offset_hours)
        self._registry = SiteRegistry(self._config.default_site, self._config.site_aliases)
        self._persister = persister or WriteThroughPersister(
            store,
            max_attempts=self._config.persist_max_attempts,
            retry_delay_seconds=self._config.persist_retry_delay_seconds,
        )
        self._write_lock = threading.Lock()
        self._state_lock = threading.Lock()

    @property
    def config(self) -> VisitsConfig:
        return self._config

    @property
    def calendar(self) -> DayCalendar:
        return self._calendar

    @property
    def registry(self) -> SiteRegistry:
        return self._registry

    @property
    def available_ranges(self) -> tuple[str, ...]:
        return tuple(self._config.range_presets)

    @property
    def dirty(self) -> bool:
        return self._persister.dirty

    # --- Lifecycle ---

    def load(self) -> None:
        """
        Replace in-memory state with the normalized contents of the store.

        Unreadable or corrupt data is logged and replaced by empty stats.
        """
        try:
            raw = self._store.load()
        except CorruptDataError:
            logger.warning("Stored visit stats are corrupt, starting from zero", exc_info=True)
            raw = None
        except PersistenceError:
            logger.exception("Could not read stored visit stats, starting from zero")
            raw = None

        now = self._time.now_utc()
        with self._write_lock:
            sites = normalize_state(raw, self._registry, legacy_route=self._config.legacy_route)
            seeded = False
            for stats in sites.values():
                if seed_daily_from_routes(
                    stats, self._calendar, now, self._config.daily_seed_days
                ):
                    seeded = True
                prune_history(stats, self._calendar, now, self._config.retention_days)

            with self._state_lock:
                self._registry.replace_all(sites)
                payload = self._export_locked() if seeded else None
            if payload is not None:
                self._persister.persist(payload)

        default = sites.get(self._registry.default_site)
        logger.info(
            "Visit stats loaded (schema=%s): sites=%d total=%d routes=%d",
            detect_schema(raw).name,
            len(sites),
            default.total if default else 0,
            len(default.routes) if default else 0,
        )

    def flush(self, *, force: bool = False) -> bool:
        """Persist the current state if a previous save failed (or always, with force)."""
        with self._write_lock:
            if not force and not self._persister.dirty:
                return True
            with self._state_lock:
                payload = self._export_locked()
            return self._persister.persist(payload)

    def export_state(self) -> dict[str, Any]:
        """Serializable multi-site state, as handed to the store."""
        with self._state_lock:
            return self._export_locked()

    def _export_locked(self) -> dict[str, Any]:
        return {
            "version": int(CURRENT_SCHEMA_VERSION),
            "sites": {key: stats.to_dict() for key, stats in self._registry.items()},
        }

    # --- Helpers ---

    def _resolve_site(self, site: object) -> str:
        site_key = self._registry.resolve(site)
        if site_key is None:
            known = ", ".join(self._registry.known_sites)
            raise InvalidSiteError(f'Unknown site "{site}". Expected one of: {known}.')
        return site_key

    def _resolve_range(self, range_key: object) -> str:
        resolved = resolve_range(range_key, self._config)
        if resolved is None:
            expected = ", ".join(self.available_ranges)
            raise InvalidRangeError(f'The "range" query must be one of: {expected}.')
        return resolved

    def _prune(self, stats: SiteStats, now: datetime) -> None:
        prune_history(stats, self._calendar, now, self._config.retention_days)

    # --- Writes ---

    def record_visit(self, route: object, site: object = None) -> SiteStats:
        """Count one visit to route. Returns a copy of the site's updated stats."""
        site_key = self._resolve_site(site)
        route_key = sanitize_route(route)
        if not route_key:
            raise InvalidRouteError('The "route" property is required.')

        now = self._time.now_utc()
        today = self._calendar.today_key(now)
        with self._write_lock:
            with self._state_lock:
                stats = self._registry.get_or_create(site_key)
                stats.routes[route_key] = stats.routes.get(route_key, 0) + 1
                stats.total += 1
                day = stats.daily.setdefault(today, {})
                day[route_key] = day.get(route_key, 0) + 1
                self._prune(stats, now)
                result = stats.copy()
                payload = self._export_locked()
            self._persister.persist(payload)
        return result

    def record_duration(
        self,
        scope: object,
        duration_ms: object,
        route: object = None,
        site: object = None,
    ) -> DurationRecord:
        """Fold one duration sample into today's session or route summary."""
        site_key = self._resolve_site(site)
        if isinstance(scope, DurationScope):
            resolved_scope = scope
        else:
            try:
                resolved_scope = DurationScope(str(scope).strip().lower())
            except ValueError:
                raise InvalidScopeError(
                    'The "scope" property must be "session" or "route".'
                ) from None

        duration = sanitize_duration(duration_ms, self._config.max_duration_ms)
        if duration is None:
            raise InvalidDurationError('The "durationMs" property must be a positive number.')

        route_key: str | None = None
        if resolved_scope is DurationScope.ROUTE:
            route_key = sanitize_route(route)
            if not route_key:
                raise MissingRouteError('The "route" property is required for route durations.')

        now = self._time.now_utc()
        today = self._calendar.today_key(now)
        with self._write_lock:
            with self._state_lock:
                stats = self._registry.get_or_create(site_key)
                # Prune first so a day that just aged out is not brought back
                self._prune(stats, now)
                if route_key is None:
                    bucket = stats.session_durations
                    slot = today
                else:
                    bucket = stats.route_durations.setdefault(today, {})
                    slot = route_key
                existing = bucket.get(slot)
                if existing is None:
                    summary = bucket[slot] = create_summary(duration)
                else:
                    summary = update_summary(existing, duration)
                rendered = render_summary(summary)
                payload = self._export_locked()
            self._persister.persist(payload)

        return DurationRecord(scope=resolved_scope, date=today, route=route_key, summary=rendered)

    # --- Reads ---

    def snapshot(self, site: object = None) -> SiteStats:
        """Copy of a site's full current stats."""
        site_key = self._resolve_site(site)
        with self._state_lock:
            return self._registry.get_or_create(site_key).copy()

    def query_range(self, range_key: object = None, site: object = None) -> RangeQuery:
        """Days with recorded visits inside a preset window, oldest first."""
        resolved = self._resolve_range(range_key)
        site_key = self._resolve_site(site)
        with self._state_lock:
            daily = {
                day: dict(routes)
                for day, routes in self._registry.get_or_create(site_key).daily.items()
            }

        start = self._calendar.window_start(
            self._config.range_presets[resolved], self._time.now_utc()
        )
        entries = []
        for date_key, routes in daily.items():
            timestamp = self._calendar.timestamp_for(date_key)
            if timestamp is not None and timestamp >= start:
                entries.append((timestamp, date_key, routes))
        entries.sort(key=lambda entry: entry[0])

        days = tuple(
            DailyVisits(date=date_key, routes=routes, total=sum(routes.values()))
            for _, date_key, routes in entries
        )
        return RangeQuery(range=resolved, days=days, available_ranges=self.available_ranges)

    def query_durations(self, range_key: object = None, site: object = None) -> DurationRangeQuery:
        """Rendered session and per-route duration summaries inside a preset window."""
        resolved = self._resolve_range(range_key)
        site_key = self._resolve_site(site)
        with self._state_lock:
            stats = self._registry.get_or_create(site_key)
            sessions = {day: render_summary(s) for day, s in stats.session_durations.items()}
            routes = {
                day: {route: render_summary(s) for route, s in by_route.items()}
                for day, by_route in stats.route_durations.items()
            }

        start = self._calendar.window_start(
            self._config.range_presets[resolved], self._time.now_utc()
        )
        entries = []
        for date_key in set(sessions) | set(routes):
            timestamp = self._calendar.timestamp_for(date_key)
            if timestamp is not None and timestamp >= start:
                entries.append((timestamp, date_key))
        entries.sort()

        days = tuple(
            DailyDurations(
                date=date_key,
                session=sessions.get(date_key),
                routes=routes.get(date_key, {}),
            )
            for _, date_key in entries
        )
        return DurationRangeQuery(range=resolved, days=days, available_ranges=self.available_ranges)


def create_visit_stats_engine(
    store: StatsStorePort,
    time_port: TimePort | None = None,
    config: VisitsConfig | None = None,
) -> VisitStatsEngine:
    """Create a VisitStatsEngine."""
    return VisitStatsEngine(store, config=config, time_port=time_port)
