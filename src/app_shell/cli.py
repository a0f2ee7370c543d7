import argparse
import json
import logging
import sys
from pathlib import Path

from src.adapters.clock import SystemClock
from src.adapters.json_stats_store import JsonFileStatsStore
from src.app_shell.config import Settings, build_visits_config
from src.components.visits import (
    CorruptDataError,
    PersistenceError,
    VisitStatsEngine,
    VisitsValidationError,
)
from src.rules.loader import load_rules

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("cli")


def get_engine(settings: Settings) -> VisitStatsEngine:
    if not settings.rules_path.exists():
        logger.error(f"Rules file {settings.rules_path} not found.")
        sys.exit(1)

    rules = load_rules(Path(settings.rules_path))
    engine = VisitStatsEngine(
        JsonFileStatsStore(settings.stats_path),
        config=build_visits_config(rules),
        time_port=SystemClock(),
    )
    engine.load()
    return engine


def handle_serve(settings: Settings, args: argparse.Namespace) -> None:
    import uvicorn

    uvicorn.run("src.api.main:app", host=args.host, port=args.port or settings.port)


def handle_show(settings: Settings, args: argparse.Namespace) -> None:
    engine = get_engine(settings)
    print(json.dumps(engine.snapshot(args.site).to_dict(), indent=2, ensure_ascii=False))


def handle_daily(settings: Settings, args: argparse.Namespace) -> None:
    engine = get_engine(settings)
    result = engine.query_range(args.range, args.site)
    for day in result.days:
        routes = ", ".join(f"{route}={count}" for route, count in sorted(day.routes.items()))
        print(f"{day.date}  {day.total:>6}  {routes}")
    print(f"{len(result.days)} day(s) with visits in range '{result.range}'.")


def handle_repair(settings: Settings, args: argparse.Namespace) -> None:
    """Rewrite the store file in the current schema, dropping invalid entries."""
    try:
        JsonFileStatsStore(settings.stats_path).load()
    except (CorruptDataError, PersistenceError) as e:
        logger.error(f"Refusing to rewrite {settings.stats_path}: {e}")
        sys.exit(1)

    engine = get_engine(settings)
    if not engine.flush(force=True):
        logger.error(f"Could not write {settings.stats_path}.")
        sys.exit(1)
    sites = engine.export_state()["sites"]
    print(f"Rewrote {settings.stats_path} with {len(sites)} site(s).")


def main() -> None:
    parser = argparse.ArgumentParser(description="Visit Counter CLI")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # serve
    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", default="0.0.0.0", help="Bind address")
    serve_parser.add_argument("--port", type=int, help="Port (default: $PORT or 4000)")

    # show
    show_parser = subparsers.add_parser("show", help="Print a site's stats as JSON")
    show_parser.add_argument("--site", help="Site identifier or alias")

    # daily
    daily_parser = subparsers.add_parser("daily", help="Print per-day visits for a range")
    daily_parser.add_argument("--range", default=None, help="week, 30d, year or an alias")
    daily_parser.add_argument("--site", help="Site identifier or alias")

    # repair
    subparsers.add_parser("repair", help="Normalize and rewrite the stats file")

    args = parser.parse_args()
    settings = Settings()

    handlers = {
        "serve": handle_serve,
        "show": handle_show,
        "daily": handle_daily,
        "repair": handle_repair,
    }
    try:
        handlers[args.command](settings, args)
    except VisitsValidationError as e:
        logger.error(e.message)
        sys.exit(2)


if __name__ == "__main__":
    main()
