"""
JSON File Stats Store.

Implements StatsStorePort on a single JSON file. Writes are atomic (temp file
+ rename) so a crash mid-write leaves the previous state intact.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

from src.components.visits import CorruptDataError, PersistenceError

logger = logging.getLogger(__name__)

DEFAULT_FILE_NAME = "visit-count.json"


class JsonFileStatsStore:
    """Stores the multi-site visit state as pretty-printed JSON."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def ensure(self) -> None:
        """Create the data directory and an empty state file if missing."""
        if self.path.exists():
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._write({"version": 3, "sites": {}})
        logger.info("Created empty visit stats file at %s", self.path)

    def load(self) -> Any | None:
        try:
            content = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise PersistenceError(f"Cannot read {self.path}: {e}") from e

        if not content.strip():
            return None
        try:
            return json.loads(content)
        except ValueError as e:
            # JSONDecodeError, or an integer literal past the int conversion limit
            raise CorruptDataError(f"Invalid JSON in {self.path}: {e}") from e

    def save(self, payload: dict[str, Any]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._write(payload)
        except (OSError, TypeError, ValueError) as e:
            raise PersistenceError(f"Cannot write {self.path}: {e}") from e

    def _write(self, payload: dict[str, Any]) -> None:
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        with tmp.open("w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2, ensure_ascii=False)
            f.flush()
            os.fsync(f.fileno())
        tmp.replace(self.path)
