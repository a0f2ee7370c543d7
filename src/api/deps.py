from functools import lru_cache

from src.adapters.clock import SystemClock
from src.adapters.json_stats_store import JsonFileStatsStore
from src.app_shell.config import Settings, build_visits_config
from src.components.visits import VisitStatsEngine
from src.rules.loader import load_rules
from src.rules.models import Rules


# --- Settings ---
@lru_cache
def get_settings() -> Settings:
    return Settings()


# --- Engine ---
# One engine per process; it owns the in-memory stats for every site.
_engine_instance: VisitStatsEngine | None = None


def build_engine(settings: Settings, rules: Rules) -> VisitStatsEngine:
    """Create the store, ensure its file exists and load the persisted state."""
    store = JsonFileStatsStore(settings.stats_path)
    store.ensure()
    engine = VisitStatsEngine(
        store,
        config=build_visits_config(rules),
        time_port=SystemClock(),
    )
    engine.load()
    return engine


def init_engine(settings: Settings, rules: Rules) -> VisitStatsEngine:
    global _engine_instance
    _engine_instance = build_engine(settings, rules)
    return _engine_instance


def get_engine() -> VisitStatsEngine:
    """Get the engine singleton, building it on first use."""
    global _engine_instance
    if _engine_instance is None:
        settings = get_settings()
        _engine_instance = build_engine(settings, load_rules(settings.rules_path))
    return _engine_instance


def reset_engine() -> None:
    global _engine_instance
    _engine_instance = None
