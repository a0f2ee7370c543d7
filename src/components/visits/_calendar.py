"""
Day-key calendar.

Every daily structure is keyed by a DateKey ("YYYY-MM-DD") computed in one
fixed UTC offset, so day boundaries follow the audience's local day no matter
where the server runs. The offset is fixed on purpose: no DST.
"""

from __future__ import annotations

import re
from datetime import UTC, date, datetime, timedelta

DATE_KEY_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
DEFAULT_UTC_OFFSET_HOURS = -5
DAY = timedelta(days=1)


def parse_date_key(key: object) -> date | None:
    """Parse a DateKey, or None if it is not a real YYYY-MM-DD date."""
    if not isinstance(key, str) or not DATE_KEY_PATTERN.match(key):
        return None
    try:
        return date.fromisoformat(key)
    except ValueError:
        return None


class DayCalendar:
    """Computes DateKeys in a fixed UTC offset."""

    def __init__(self, utc_offset_hours: int = DEFAULT_UTC_OFFSET_HOURS) -> None:
        self._offset = timedelta(hours=utc_offset_hours)

    @property
    def utc_offset(self) -> timedelta:
        return self._offset

    def local_date(self, reference: datetime) -> date:
        """Calendar date of an instant, shifted by the fixed offset."""
        if reference.tzinfo is None:
            reference = reference.replace(tzinfo=UTC)
        return (reference.astimezone(UTC) + self._offset).date()

    def today_key(self, reference: datetime) -> str:
        return self.local_date(reference).isoformat()

    def key_days_ago(self, days: int, reference: datetime) -> str:
        return (self.local_date(reference) - timedelta(days=days)).isoformat()

    def recent_keys(self, days: int, reference: datetime, limit: int = 366) -> list[str]:
        """Ascending keys for the last `days` days, today included."""
        days = max(1, min(days, limit))
        return [self.key_days_ago(offset, reference) for offset in range(days - 1, -1, -1)]

    @staticmethod
    def is_valid(key: object) -> bool:
        return parse_date_key(key) is not None

    @staticmethod
    def timestamp_for(key: object) -> datetime | None:
        """
        UTC midnight of a DateKey.

        Only meant for ordering and cutoff comparisons between keys, not for
        reconstructing wall-clock time.
        """
        day = parse_date_key(key)
        if day is None:
            return None
        return datetime(day.year, day.month, day.day, tzinfo=UTC)

    def window_start(self, days: int, reference: datetime) -> datetime:
        """Timestamp of the first day of a window of `days` days ending today."""
        today = self.local_date(reference)
        midnight = datetime(today.year, today.month, today.day, tzinfo=UTC)
        return midnight - (days - 1) * DAY
