"""
Visits component models and errors.

Stats are held as plain dataclasses and serialized with the camelCase keys
the front-end sites and the persisted JSON file use.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

# --- Errors ---


class VisitsError(Exception):
    """Base class for visits errors."""


class VisitsValidationError(VisitsError):
    """Client-correctable input error (surfaced as HTTP 400)."""

    code = "invalid_input"
    field_name: str | None = None

    def __init__(self, message: str, *, field_name: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if field_name is not None:
            self.field_name = field_name

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, "field": self.field_name}


class InvalidRouteError(VisitsValidationError):
    code = "invalid_route"
    field_name = "route"


class MissingRouteError(VisitsValidationError):
    code = "missing_route"
    field_name = "route"


class InvalidDurationError(VisitsValidationError):
    code = "invalid_duration"
    field_name = "durationMs"


class InvalidScopeError(VisitsValidationError):
    code = "invalid_scope"
    field_name = "scope"


class InvalidRangeError(VisitsValidationError):
    code = "invalid_range"
    field_name = "range"


class InvalidSiteError(VisitsValidationError):
    code = "invalid_site"
    field_name = "site"


class PersistenceError(VisitsError):
    """Store read/write failure. Logged, never surfaced to callers."""


class CorruptDataError(VisitsError):
    """Persisted blob could not be decoded."""


# --- Enums ---


class DurationScope(str, Enum):
    """What a duration sample measures."""

    SESSION = "session"
    ROUTE = "route"


class SchemaVersion(int, Enum):
    """Known persisted layouts, oldest first."""

    EMPTY = 0
    LEGACY_COUNTER = 1  # {"count": n}
    SINGLE_SITE = 2  # {"total", "routes", "daily", ...}
    MULTI_SITE = 3  # {"version": 3, "sites": {...}}


CURRENT_SCHEMA_VERSION = SchemaVersion.MULTI_SITE


# --- Stats ---


@dataclass
class DurationSummary:
    """min/max/count/total of duration samples, in milliseconds."""

    min: float
    max: float
    count: int
    total_duration: float

    @property
    def average(self) -> float:
        return self.total_duration / self.count

    def to_dict(self) -> dict[str, Any]:
        return {
            "min": self.min,
            "max": self.max,
            "count": self.count,
            "totalDuration": self.total_duration,
        }

    def copy(self) -> DurationSummary:
        return DurationSummary(self.min, self.max, self.count, self.total_duration)


@dataclass
class SiteStats:
    """Everything tracked for one site."""

    total: int = 0
    routes: dict[str, int] = field(default_factory=dict)
    daily: dict[str, dict[str, int]] = field(default_factory=dict)
    session_durations: dict[str, DurationSummary] = field(default_factory=dict)
    route_durations: dict[str, dict[str, DurationSummary]] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "routes": dict(self.routes),
            "daily": {day: dict(routes) for day, routes in self.daily.items()},
            "sessionDurations": {
                day: summary.to_dict() for day, summary in self.session_durations.items()
            },
            "routeDurations": {
                day: {route: summary.to_dict() for route, summary in routes.items()}
                for day, routes in self.route_durations.items()
            },
        }

    def copy(self) -> SiteStats:
        return SiteStats(
            total=self.total,
            routes=dict(self.routes),
            daily={day: dict(routes) for day, routes in self.daily.items()},
            session_durations={
                day: summary.copy() for day, summary in self.session_durations.items()
            },
            route_durations={
                day: {route: summary.copy() for route, summary in routes.items()}
                for day, routes in self.route_durations.items()
            },
        )


# --- Outputs ---


@dataclass(frozen=True)
class DailyVisits:
    """One day of a range query."""

    date: str
    routes: dict[str, int]
    total: int

    def to_dict(self) -> dict[str, Any]:
        return {"date": self.date, "routes": dict(self.routes), "total": self.total}


@dataclass(frozen=True)
class RangeQuery:
    """Result of a daily range query."""

    range: str
    days: tuple[DailyVisits, ...]
    available_ranges: tuple[str, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "range": self.range,
            "days": [day.to_dict() for day in self.days],
            "availableRanges": list(self.available_ranges),
        }


@dataclass(frozen=True)
class DailyDurations:
    """One day of a duration report."""

    date: str
    session: dict[str, Any] | None
    routes: dict[str, dict[str, Any]]

    def to_dict(self) -> dict[str, Any]:
        return {"date": self.date, "session": self.session, "routes": self.routes}


@dataclass(frozen=True)
class DurationRangeQuery:
    """Result of a duration range query."""

    range: str
    days: tuple[DailyDurations, ...]
    available_ranges: tuple[str, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "range": self.range,
            "days": [day.to_dict() for day in self.days],
            "availableRanges": list(self.available_ranges),
        }


@dataclass(frozen=True)
class DurationRecord:
    """Result of recording one duration sample."""

    scope: DurationScope
    date: str
    summary: dict[str, Any]
    route: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"scope": self.scope.value, "date": self.date}
        if self.route is not None:
            data["route"] = self.route
        data["summary"] = self.summary
        return data
