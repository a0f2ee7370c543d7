from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from src.components.visits import PersistenceError, VisitsConfig, VisitStatsEngine

# 2024-06-15 14:30 UTC is 2024-06-15 09:30 at UTC-5
FIXED_NOW = datetime(2024, 6, 15, 14, 30, 0, tzinfo=UTC)
FIXED_TODAY = "2024-06-15"


class MockTimePort:
    """Mock time provider."""

    def __init__(self, now: datetime | None = None) -> None:
        self._now = now or FIXED_NOW

    def now_utc(self) -> datetime:
        return self._now

    def set_now(self, now: datetime) -> None:
        self._now = now

    def advance(self, days: int = 0, hours: int = 0) -> None:
        self._now += timedelta(days=days, hours=hours)


class InMemoryStatsStore:
    """Stats store that keeps the last saved payload in memory."""

    def __init__(self, initial: Any = None) -> None:
        self.data = initial
        self.saves: list[dict[str, Any]] = []
        self.fail_saves = 0
        self.load_error: Exception | None = None

    def load(self) -> Any:
        if self.load_error is not None:
            raise self.load_error
        return self.data

    def save(self, payload: dict[str, Any]) -> None:
        if self.fail_saves > 0:
            self.fail_saves -= 1
            raise PersistenceError("disk full")
        self.data = payload
        self.saves.append(payload)


@pytest.fixture
def time_port() -> MockTimePort:
    return MockTimePort()


@pytest.fixture
def store() -> InMemoryStatsStore:
    return InMemoryStatsStore()


@pytest.fixture
def config() -> VisitsConfig:
    return VisitsConfig(
        site_aliases={"main": ("principal", "portafolio"), "blog": ("bitácora",)},
        persist_retry_delay_seconds=0,
    )


@pytest.fixture
def engine(
    store: InMemoryStatsStore, time_port: MockTimePort, config: VisitsConfig
) -> VisitStatsEngine:
    engine = VisitStatsEngine(store, config=config, time_port=time_port)
    engine.load()
    return engine
