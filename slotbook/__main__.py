import argparse
import logging
import sys
from datetime import date
from pathlib import Path

from slotbook.config import Settings, load_settings
from slotbook.database import build_engine, build_session_factory, create_db_tables
from slotbook.errors import SchedulingError
from slotbook.loader import apply_seed, load_seed_file
from slotbook.scheduler import BookingScheduler

logger = logging.getLogger("slotbook")


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )


def _scheduler(settings: Settings) -> BookingScheduler:
    engine = build_engine(settings.database_url)
    create_db_tables(engine)
    return BookingScheduler.from_settings(settings, build_session_factory(engine))


def _cmd_init_db(settings: Settings, args: argparse.Namespace) -> int:
    create_db_tables(build_engine(settings.database_url))
    logger.info("Database ready: %s", settings.database_url)
    return 0


def _cmd_load_resources(settings: Settings, args: argparse.Namespace) -> int:
    seed = load_seed_file(args.file)
    apply_seed(_scheduler(settings).catalog, seed)
    logger.info("Loaded %d resource(s) and %d requester(s) from %s", len(seed.resources), len(seed.requesters), args.file)
    return 0


def _cmd_slots(settings: Settings, args: argparse.Namespace) -> int:
    scheduler = _scheduler(settings)
    for slot, is_booked in scheduler.slot_board(args.resource, args.date):
        if is_booked and not args.all:
            continue
        marker = "booked" if is_booked else "free"
        print(f"{slot.slot_id}\t{slot.start:%H:%M}-{slot.end:%H:%M}\t{marker}")
    return 0


def _cmd_serve(settings: Settings, args: argparse.Namespace) -> int:
    import uvicorn

    from slotbook.main import create_app

    uvicorn.run(create_app(settings), host=args.host, port=args.port)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="slotbook", description="slotbook: resource time-slot booking")
    parser.add_argument("--env-file", default=None, help="Path to a .env file")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("init-db", help="Create database tables")
    p.set_defaults(handler=_cmd_init_db)

    p = sub.add_parser("load-resources", help="Upsert resources and requesters from a JSON file")
    p.add_argument("file", type=Path)
    p.set_defaults(handler=_cmd_load_resources)

    p = sub.add_parser("slots", help="List generated slots for a resource on a date")
    p.add_argument("resource")
    p.add_argument("date", type=date.fromisoformat, help="YYYY-MM-DD")
    p.add_argument("--all", action="store_true", help="Include booked slots")
    p.set_defaults(handler=_cmd_slots)

    p = sub.add_parser("serve", help="Run the HTTP API")
    p.add_argument("--host", default="127.0.0.1")
    p.add_argument("--port", type=int, default=8000)
    p.set_defaults(handler=_cmd_serve)

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    settings = load_settings(dotenv_path=args.env_file)
    _setup_logging(settings.log_level)

    try:
        return args.handler(settings, args)
    except (SchedulingError, ValueError) as e:
        logger.error("%s failed (%s: %s)", args.command, type(e).__name__, e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
