import os
from pathlib import Path

from src.components.visits import VisitsConfig
from src.rules.models import Rules

DEFAULT_DATA_DIR = "./data"
DEFAULT_RULES_PATH = "rules.yaml"
STATS_FILE_NAME = "visit-count.json"


class Settings:
    def __init__(self) -> None:
        self.base_dir = Path(os.getcwd())
        self.data_dir = Path(os.environ.get("VISITS_DATA_DIR", DEFAULT_DATA_DIR))
        self.stats_path = self.data_dir / STATS_FILE_NAME
        self.rules_path = Path(os.environ.get("VISITS_RULES_PATH", DEFAULT_RULES_PATH))
        self.port = int(os.environ.get("PORT", "4000"))


def validate_rules(rules: Rules) -> None:
    """
    Cross-field checks pydantic cannot express on its own.
    Raises ValueError describing the first problem found.
    """
    ranges = rules.ranges
    if not ranges.presets:
        raise ValueError("ranges.presets must define at least one range")
    for name, days in ranges.presets.items():
        if days < 1:
            raise ValueError(f"ranges.presets.{name} must be at least 1 day")
        if days > rules.calendar.retention_days:
            raise ValueError(
                f"ranges.presets.{name} ({days}d) exceeds calendar.retention_days"
            )
    if ranges.default not in ranges.presets:
        raise ValueError(f"ranges.default {ranges.default!r} is not a preset")
    for alias, target in ranges.aliases.items():
        if target not in ranges.presets:
            raise ValueError(f"ranges.aliases.{alias} points to unknown preset {target!r}")

    if not rules.sites.default.strip():
        raise ValueError("sites.default must not be empty")


def build_visits_config(rules: Rules) -> VisitsConfig:
    """Map rules onto the visits component configuration."""
    validate_rules(rules)
    return VisitsConfig(
        utc_offset_hours=rules.calendar.utc_offset_hours,
        retention_days=rules.calendar.retention_days,
        daily_seed_days=rules.calendar.daily_seed_days,
        max_duration_ms=rules.durations.max_duration_ms,
        legacy_route=rules.migration.legacy_route,
        default_range=rules.ranges.default,
        range_presets=dict(rules.ranges.presets),
        range_aliases={k.strip().lower(): v for k, v in rules.ranges.aliases.items()},
        default_site=rules.sites.default,
        site_aliases={k: tuple(v) for k, v in rules.sites.aliases.items()},
        persist_max_attempts=rules.persistence.max_attempts,
        persist_retry_delay_seconds=rules.persistence.retry_delay_seconds,
    )
