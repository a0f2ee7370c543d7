"""
Visits component port definitions.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol


class StatsStorePort(Protocol):
    """Durable store for the whole multi-site state."""

    def load(self) -> Any | None:
        """
        Return the raw persisted blob, or None if nothing was stored yet.

        Raises:
            CorruptDataError: If the stored bytes are not valid JSON
            PersistenceError: If the store cannot be read
        """
        ...

    def save(self, payload: dict[str, Any]) -> None:
        """
        Replace the stored state with payload.

        Raises:
            PersistenceError: If the write fails
        """
        ...


class PersistPolicy(Protocol):
    """Decides how and when state snapshots reach the store."""

    @property
    def dirty(self) -> bool:
        """True if the last snapshot handed over was not stored."""
        ...

    def persist(self, payload: dict[str, Any]) -> bool:
        """Store payload. Returns False on failure (never raises)."""
        ...


class TimePort(Protocol):
    """Time provider interface."""

    def now_utc(self) -> datetime:
        """Get current UTC time."""
        ...
