"""
Write-through persistence with bounded retry.

Every mutation hands the full state to the policy. A failed save is retried a
few times, then logged and given up on: in-memory state stays authoritative
and the dirty flag stays set until a later save (or flush) succeeds.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any

from .models import PersistenceError
from .ports import StatsStorePort

logger = logging.getLogger(__name__)


class WriteThroughPersister:
    """Saves every snapshot immediately; retries up to max_attempts times."""

    def __init__(
        self,
        store: StatsStorePort,
        *,
        max_attempts: int = 3,
        retry_delay_seconds: float = 0.05,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._store = store
        self._max_attempts = max(1, max_attempts)
        self._retry_delay = retry_delay_seconds
        self._sleep = sleep
        self._dirty = False

    @property
    def dirty(self) -> bool:
        return self._dirty

    def persist(self, payload: dict[str, Any]) -> bool:
        for attempt in range(1, self._max_attempts + 1):
            try:
                self._store.save(payload)
            except PersistenceError:
                if attempt == self._max_attempts:
                    logger.exception(
                        "Saving visit stats failed after %d attempts; "
                        "recent increments may be lost",
                        attempt,
                    )
                    self._dirty = True
                    return False
                logger.warning("Saving visit stats failed (attempt %d), retrying", attempt)
                if self._retry_delay:
                    self._sleep(self._retry_delay * attempt)
            else:
                self._dirty = False
                return True
        return False
