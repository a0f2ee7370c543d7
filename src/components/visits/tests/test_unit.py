"""
Unit tests for the Visits component engine.

Covers visit counting, duration recording, range queries, loading and the
write-through persistence behaviour.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from src.components.visits import (
    CorruptDataError,
    DurationScope,
    InvalidDurationError,
    InvalidRangeError,
    InvalidRouteError,
    InvalidScopeError,
    InvalidSiteError,
    MissingRouteError,
    PersistenceError,
    VisitsConfig,
    VisitStatsEngine,
    create_visit_stats_engine,
)

# --- Test Fixtures ---


class FakeTimePort:
    """Fake time port for testing."""

    def __init__(self, fixed_time: datetime | None = None):
        # 14:30 UTC is 09:30 at UTC-5, same calendar day
        self._now = fixed_time or datetime(2024, 6, 15, 14, 30, 0, tzinfo=UTC)

    def now_utc(self) -> datetime:
        return self._now

    def set_now(self, now: datetime) -> None:
        self._now = now

    def advance(self, days: int = 0, hours: int = 0) -> None:
        self._now += timedelta(days=days, hours=hours)


class FakeStatsStore:
    """Fake store keeping the last payload."""

    def __init__(self, data: Any = None):
        self.data = data
        self.saves: list[dict[str, Any]] = []
        self.fail_saves = 0
        self.load_error: Exception | None = None

    def load(self) -> Any:
        if self.load_error is not None:
            raise self.load_error
        return self.data

    def save(self, payload: dict[str, Any]) -> None:
        if self.fail_saves:
            self.fail_saves -= 1
            raise PersistenceError("write failed")
        self.data = payload
        self.saves.append(payload)


CONFIG = VisitsConfig(
    site_aliases={"main": ("principal",), "blog": ("bitácora",)},
    persist_retry_delay_seconds=0,
)


@pytest.fixture
def clock() -> FakeTimePort:
    return FakeTimePort()


@pytest.fixture
def store() -> FakeStatsStore:
    return FakeStatsStore()


@pytest.fixture
def engine(store: FakeStatsStore, clock: FakeTimePort) -> VisitStatsEngine:
    engine = create_visit_stats_engine(store, time_port=clock, config=CONFIG)
    engine.load()
    return engine


# --- Visits ---


class TestRecordVisit:
    """Visit counting."""

    def test_first_visit(self, engine: VisitStatsEngine) -> None:
        stats = engine.record_visit("/home")
        assert stats.total == 1
        assert stats.routes == {"home": 1}
        assert stats.daily == {"2024-06-15": {"home": 1}}

    def test_variants_share_canonical_route(self, engine: VisitStatsEngine) -> None:
        engine.record_visit("/Home/")
        stats = engine.record_visit("home")
        assert stats.routes == {"home": 2}
        assert stats.total == 2

    def test_query_and_fragment_ignored(self, engine: VisitStatsEngine) -> None:
        stats = engine.record_visit("/blog/post?utm_source=x#top")
        assert stats.routes == {"blog/post": 1}

    @pytest.mark.parametrize("route", ["", "   ", None, 42, "/", "?x=1"])
    def test_invalid_route_rejected(self, engine: VisitStatsEngine, route: Any) -> None:
        with pytest.raises(InvalidRouteError):
            engine.record_visit(route)

    def test_invalid_route_not_persisted(
        self, engine: VisitStatsEngine, store: FakeStatsStore
    ) -> None:
        with pytest.raises(InvalidRouteError):
            engine.record_visit("")
        assert store.saves == []

    def test_returned_stats_are_a_copy(self, engine: VisitStatsEngine) -> None:
        stats = engine.record_visit("home")
        stats.routes["home"] = 999
        assert engine.snapshot().routes == {"home": 1}

    def test_day_uses_fixed_offset(
        self, engine: VisitStatsEngine, clock: FakeTimePort
    ) -> None:
        # 03:00 UTC on the 16th is still the 15th at UTC-5
        clock.set_now(datetime(2024, 6, 16, 3, 0, tzinfo=UTC))
        stats = engine.record_visit("home")
        assert list(stats.daily) == ["2024-06-15"]

    def test_every_visit_persists(self, engine: VisitStatsEngine, store: FakeStatsStore) -> None:
        engine.record_visit("home")
        engine.record_visit("about")
        assert len(store.saves) == 2
        saved = store.saves[-1]
        assert saved["version"] == 3
        assert saved["sites"]["main"]["routes"] == {"home": 1, "about": 1}

    def test_visit_prunes_expired_days(
        self, store: FakeStatsStore, clock: FakeTimePort
    ) -> None:
        store.data = {"routes": {"home": 1}, "total": 1, "daily": {"2024-06-15": {"home": 1}}}
        engine = VisitStatsEngine(store, config=CONFIG, time_port=clock)
        engine.load()
        clock.advance(days=400)
        stats = engine.record_visit("home")
        assert "2024-06-15" not in stats.daily
        assert stats.routes == {"home": 2}


# --- Sites ---


class TestSites:
    """Multi-site behaviour."""

    def test_sites_are_independent(self, engine: VisitStatsEngine) -> None:
        engine.record_visit("home")
        engine.record_visit("home", site="blog")
        assert engine.snapshot().total == 1
        assert engine.snapshot("blog").total == 1

    def test_alias_with_diacritics(self, engine: VisitStatsEngine) -> None:
        engine.record_visit("post", site="Bitácora")
        engine.record_visit("post", site="bitacora")
        assert engine.snapshot("blog").routes == {"post": 2}

    def test_unknown_site_rejected(self, engine: VisitStatsEngine) -> None:
        with pytest.raises(InvalidSiteError):
            engine.record_visit("home", site="nope")

    def test_unknown_site_rejected_on_read(self, engine: VisitStatsEngine) -> None:
        with pytest.raises(InvalidSiteError):
            engine.query_range("week", site="nope")

    def test_export_contains_all_sites(self, engine: VisitStatsEngine) -> None:
        engine.record_visit("home", site="blog")
        state = engine.export_state()
        assert set(state["sites"]) == {"main", "blog"}


# --- Durations ---


class TestRecordDuration:
    """Duration recording."""

    def test_session_summary(self, engine: VisitStatsEngine) -> None:
        engine.record_duration("session", 90000)
        record = engine.record_duration("session", 30000)
        assert record.scope is DurationScope.SESSION
        assert record.date == "2024-06-15"
        assert record.route is None
        assert record.summary == {
            "min": 30000,
            "max": 90000,
            "count": 2,
            "totalDuration": 120000,
            "average": 60000,
        }

    def test_route_summary(self, engine: VisitStatsEngine) -> None:
        record = engine.record_duration("route", 1500, route="/Blog/")
        assert record.route == "blog"
        stats = engine.snapshot()
        assert stats.route_durations["2024-06-15"]["blog"].count == 1
        assert stats.session_durations == {}

    def test_scope_is_case_insensitive(self, engine: VisitStatsEngine) -> None:
        record = engine.record_duration(" Session ", 10)
        assert record.scope is DurationScope.SESSION

    def test_duration_clamped(self, engine: VisitStatsEngine) -> None:
        record = engine.record_duration("session", 10 * 24 * 60 * 60 * 1000)
        assert record.summary["max"] == 24 * 60 * 60 * 1000

    def test_invalid_scope(self, engine: VisitStatsEngine) -> None:
        with pytest.raises(InvalidScopeError):
            engine.record_duration("page", 100)

    @pytest.mark.parametrize("value", [0, -5, "abc", None, float("nan"), float("inf"), True])
    def test_invalid_duration(self, engine: VisitStatsEngine, value: Any) -> None:
        with pytest.raises(InvalidDurationError):
            engine.record_duration("session", value)

    def test_route_scope_requires_route(self, engine: VisitStatsEngine) -> None:
        with pytest.raises(MissingRouteError):
            engine.record_duration("route", 100, route="  ")

    def test_scope_checked_before_duration(self, engine: VisitStatsEngine) -> None:
        with pytest.raises(InvalidScopeError):
            engine.record_duration("bogus", -1)

    def test_numeric_string_duration(self, engine: VisitStatsEngine) -> None:
        record = engine.record_duration("session", "1234.4")
        assert record.summary["totalDuration"] == 1234

    def test_record_to_dict(self, engine: VisitStatsEngine) -> None:
        data = engine.record_duration("route", 200, route="home").to_dict()
        assert data["scope"] == "route"
        assert data["route"] == "home"
        assert data["summary"]["average"] == 200


# --- Range Queries ---


class TestQueryRange:
    """Daily range reports."""

    @pytest.fixture
    def seeded(self, store: FakeStatsStore, clock: FakeTimePort) -> VisitStatsEngine:
        store.data = {
            "version": 3,
            "sites": {
                "main": {
                    "total": 10,
                    "routes": {"home": 7, "about": 3},
                    "daily": {
                        "2024-06-15": {"home": 2, "about": 1},
                        "2024-06-09": {"home": 1},
                        "2024-06-08": {"home": 1},
                        "2024-05-20": {"about": 2},
                        "2023-07-01": {"home": 3},
                    },
                }
            },
        }
        engine = VisitStatsEngine(store, config=CONFIG, time_port=clock)
        engine.load()
        return engine

    def test_week(self, seeded: VisitStatsEngine) -> None:
        result = seeded.query_range("week")
        assert result.range == "week"
        assert [d.date for d in result.days] == ["2024-06-09", "2024-06-15"]
        assert result.days[1].total == 3
        assert result.available_ranges == ("week", "30d", "year")

    def test_30d_sorted_ascending(self, seeded: VisitStatsEngine) -> None:
        result = seeded.query_range("30d")
        assert [d.date for d in result.days] == [
            "2024-05-20",
            "2024-06-08",
            "2024-06-09",
            "2024-06-15",
        ]

    def test_year(self, seeded: VisitStatsEngine) -> None:
        result = seeded.query_range("year")
        assert result.days[0].date == "2023-07-01"

    def test_alias_matches_preset(self, seeded: VisitStatsEngine) -> None:
        assert seeded.query_range("semana") == seeded.query_range("week")
        assert seeded.query_range("ULTIMO-MES").range == "30d"

    def test_missing_range_defaults_to_week(self, seeded: VisitStatsEngine) -> None:
        assert seeded.query_range(None).range == "week"

    def test_invalid_range(self, seeded: VisitStatsEngine) -> None:
        with pytest.raises(InvalidRangeError):
            seeded.query_range("decade")

    def test_no_zero_filled_days(self, engine: VisitStatsEngine) -> None:
        assert engine.query_range("week").days == ()

    def test_routes_are_copied(self, seeded: VisitStatsEngine) -> None:
        result = seeded.query_range("week")
        result.days[-1].routes["home"] = 100
        assert seeded.snapshot().daily["2024-06-15"]["home"] == 2

    def test_to_dict(self, seeded: VisitStatsEngine) -> None:
        data = seeded.query_range("week").to_dict()
        assert data["availableRanges"] == ["week", "30d", "year"]
        assert data["days"][0] == {"date": "2024-06-09", "routes": {"home": 1}, "total": 1}


class TestQueryDurations:
    """Duration range reports."""

    def test_days_inside_range(self, engine: VisitStatsEngine, clock: FakeTimePort) -> None:
        engine.record_duration("session", 1000)
        clock.advance(days=2)
        engine.record_duration("route", 500, route="home")

        result = engine.query_durations("week")
        assert [d.date for d in result.days] == ["2024-06-15", "2024-06-17"]
        assert result.days[0].session["average"] == 1000
        assert result.days[0].routes == {}
        assert result.days[1].session is None
        assert result.days[1].routes["home"]["count"] == 1


# --- Loading ---


class TestLoad:
    """Loading persisted state."""

    def test_load_empty_store(self, engine: VisitStatsEngine) -> None:
        assert engine.snapshot().total == 0

    def test_load_legacy_counter(self, store: FakeStatsStore, clock: FakeTimePort) -> None:
        store.data = {"count": 5}
        engine = VisitStatsEngine(store, config=CONFIG, time_port=clock)
        engine.load()
        stats = engine.snapshot()
        assert stats.routes == {"general": 5}
        assert stats.total == 5

    def test_load_seeds_daily_and_persists(
        self, store: FakeStatsStore, clock: FakeTimePort
    ) -> None:
        store.data = {"total": 9, "routes": {"home": 9}}
        engine = VisitStatsEngine(store, config=CONFIG, time_port=clock)
        engine.load()
        daily = engine.snapshot().daily
        assert len(daily) == 7
        assert sum(day["home"] for day in daily.values()) == 9
        assert daily["2024-06-09"]["home"] == 2
        assert daily["2024-06-15"]["home"] == 1
        assert len(store.saves) == 1

    def test_load_without_seeding_does_not_persist(
        self, store: FakeStatsStore, clock: FakeTimePort
    ) -> None:
        store.data = {"total": 1, "routes": {"home": 1}, "daily": {"2024-06-15": {"home": 1}}}
        engine = VisitStatsEngine(store, config=CONFIG, time_port=clock)
        engine.load()
        assert store.saves == []

    def test_corrupt_store_starts_empty(self, store: FakeStatsStore, clock: FakeTimePort) -> None:
        store.load_error = CorruptDataError("bad json")
        engine = VisitStatsEngine(store, config=CONFIG, time_port=clock)
        engine.load()
        assert engine.snapshot().total == 0

    def test_unreadable_store_starts_empty(
        self, store: FakeStatsStore, clock: FakeTimePort
    ) -> None:
        store.load_error = PersistenceError("permission denied")
        engine = VisitStatsEngine(store, config=CONFIG, time_port=clock)
        engine.load()
        assert engine.snapshot().routes == {}

    def test_load_huge_numbers(self, store: FakeStatsStore, clock: FakeTimePort) -> None:
        store.data = {
            "version": 3,
            "sites": {
                "main": {
                    "total": 10**400,
                    "routes": {"home": 10**400},
                    "daily": {"2024-06-15": {"home": 1}},
                    "sessionDurations": {"2024-06-15": {"count": 10**400, "totalDuration": 1}},
                }
            },
        }
        engine = VisitStatsEngine(store, config=CONFIG, time_port=clock)
        engine.load()
        stats = engine.snapshot()
        assert stats.routes == {"home": 10**400}
        assert stats.session_durations == {}

    def test_load_prunes(self, store: FakeStatsStore, clock: FakeTimePort) -> None:
        store.data = {
            "routes": {"home": 2},
            "daily": {"2020-01-01": {"home": 1}, "2024-06-14": {"home": 1}},
            "sessionDurations": {"2020-01-01": {"min": 1, "max": 1, "count": 1, "totalDuration": 1}},
        }
        engine = VisitStatsEngine(store, config=CONFIG, time_port=clock)
        engine.load()
        stats = engine.snapshot()
        assert list(stats.daily) == ["2024-06-14"]
        assert stats.session_durations == {}


# --- Persistence ---


class TestPersistence:
    """Write-through behaviour when the store fails."""

    def test_failed_save_keeps_memory_state(
        self, engine: VisitStatsEngine, store: FakeStatsStore
    ) -> None:
        store.fail_saves = 10
        stats = engine.record_visit("home")
        assert stats.total == 1
        assert engine.snapshot().total == 1
        assert engine.dirty is True

    def test_retry_recovers(self, engine: VisitStatsEngine, store: FakeStatsStore) -> None:
        store.fail_saves = 1
        engine.record_visit("home")
        assert engine.dirty is False
        assert store.data["sites"]["main"]["total"] == 1

    def test_flush_writes_dirty_state(
        self, engine: VisitStatsEngine, store: FakeStatsStore
    ) -> None:
        store.fail_saves = 3
        engine.record_visit("home")
        assert engine.dirty is True
        assert engine.flush() is True
        assert engine.dirty is False
        assert store.data["sites"]["main"]["routes"] == {"home": 1}

    def test_flush_noop_when_clean(self, engine: VisitStatsEngine, store: FakeStatsStore) -> None:
        assert engine.flush() is True
        assert store.saves == []

    def test_flush_force(self, engine: VisitStatsEngine, store: FakeStatsStore) -> None:
        assert engine.flush(force=True) is True
        assert store.saves[-1]["sites"] == {"main": engine.snapshot().to_dict()}
