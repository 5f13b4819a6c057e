"""Entrypoint for the attendance tracker."""

from __future__ import annotations

import argparse
import logging
import sys
from datetime import datetime
from typing import List, Optional

from .config import Settings, get_settings, load_config, save_config
from .errors import ConfigError, IngestionInProgressError
from .holidays import HolidayStore, parse_day
from .models import Holiday, IngestionOutcome, ProgressState
from .orchestrator import Ingestion
from .scheduler import last_fetched, should_auto_fetch, should_auto_scrape_today, was_scraped_today
from .state import poll_progress
from .stats import summarize_month

LOGGER = logging.getLogger(__name__)


def _print_progress(state: ProgressState) -> None:
    print(f"[{state.progress:>3}%] {state.message}")


def _report(outcome: IngestionOutcome, settings: Settings) -> int:
    if outcome.ok:
        entry = outcome.entry
        print(f"{entry.date}: {entry.day_status} ({entry.name or 'unknown student'})")
        return 0

    print(f"Failed: {outcome.error.user_message}", file=sys.stderr)
    if outcome.needs_configuration:
        print(f"Set your credentials with 'configure' or edit {settings.config_path}", file=sys.stderr)
    return 1


def run_once(ingestion: Ingestion, settings: Settings) -> int:
    unsubscribe = ingestion.reporter.subscribe(_print_progress)
    try:
        outcome = ingestion.run()
    except IngestionInProgressError as exc:
        LOGGER.error("%s", exc)
        return 1
    finally:
        unsubscribe()
    return _report(outcome, settings)


def cmd_run(settings: Settings, args: argparse.Namespace) -> int:
    return run_once(Ingestion.from_settings(settings), settings)


def cmd_auto(settings: Settings, args: argparse.Namespace) -> int:
    ingestion = Ingestion.from_settings(settings)
    history = ingestion.get_time_series()
    holidays = HolidayStore(settings.holidays_path).read_all()
    now = datetime.now(settings.tz)

    if should_auto_scrape_today(history, holidays, now.date()):
        LOGGER.info("No data for today yet, fetching")
    elif should_auto_fetch(last_fetched(history), now):
        LOGGER.info("Auto-fetch window reached, fetching")
    else:
        LOGGER.info("Nothing to fetch right now")
        return 0
    return run_once(ingestion, settings)


def cmd_status(settings: Settings, args: argparse.Namespace) -> int:
    ingestion = Ingestion.from_settings(settings)
    if args.watch:
        for state in poll_progress(ingestion.get_progress, interval=settings.poll_interval):
            _print_progress(state)
    else:
        _print_progress(ingestion.get_progress())

    history = ingestion.get_time_series()
    fetched = last_fetched(history)
    today = datetime.now(settings.tz).date()
    print(f"Last fetched: {fetched.isoformat() if fetched else 'never'}")
    print(f"Scraped today: {'yes' if was_scraped_today(history, today) else 'no'}")
    return 1 if ingestion.get_progress().failed else 0


def cmd_history(settings: Settings, args: argparse.Namespace) -> int:
    if args.month:
        try:
            month_start = datetime.strptime(args.month, "%Y-%m")
        except ValueError:
            LOGGER.error("Invalid month %r, expected YYYY-MM", args.month)
            return 1
        year, month = month_start.year, month_start.month
    else:
        now = datetime.now(settings.tz)
        year, month = now.year, now.month

    history = Ingestion.from_settings(settings).get_time_series()
    holidays = HolidayStore(settings.holidays_path).read_all()

    for entry in history:
        counters = entry.counters.to_dict() if entry.counters else entry.error
        sent = " (notified)" if entry.notification_sent else ""
        print(f"{entry.date}  {entry.day_status.value:<12} {counters}{sent}")

    summary = summarize_month(history, year, month, holidays)
    print(
        f"{year}-{month:02d}: present {summary.present}, absent {summary.absent}, "
        f"leave {summary.leave}, working days {summary.working_days}"
    )
    return 0


def cmd_holidays(settings: Settings, args: argparse.Namespace) -> int:
    store = HolidayStore(settings.holidays_path)
    try:
        if args.action == "add" and args.to:
            store.add_range(parse_day(args.date), parse_day(args.to), args.name)
        elif args.action == "add":
            store.add(Holiday(date=parse_day(args.date), name=args.name))
        elif args.action == "remove":
            store.remove(parse_day(args.date))
    except (ValueError, KeyError) as exc:
        LOGGER.error("%s", exc)
        return 1

    for holiday in store.read_all():
        span = f"  ({holiday.total_days} days)" if holiday.is_range else ""
        print(f"{holiday.date}  {holiday.name}{span}")
    return 0


def cmd_configure(settings: Settings, args: argparse.Namespace) -> int:
    try:
        config = load_config(settings.config_path)
    except ConfigError as exc:
        LOGGER.error("%s", exc)
        return 1

    if args.username is not None:
        config.username = args.username
    if args.password is not None:
        config.password = args.password
    if args.notifications is not None:
        config.notifications = args.notifications == "on"
    if args.calendar_only is not None:
        config.calendar_only = args.calendar_only == "on"
    save_config(settings.config_path, config)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="attendance-tracker")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("run", help="fetch attendance now").set_defaults(handler=cmd_run)
    sub.add_parser("auto", help="fetch only if today's pull is due").set_defaults(handler=cmd_auto)

    status = sub.add_parser("status", help="show progress of the current or last pull")
    status.add_argument("--watch", action="store_true", help="poll until the pull finishes")
    status.set_defaults(handler=cmd_status)

    history = sub.add_parser("history", help="list the attendance time series")
    history.add_argument("--month", help="YYYY-MM for the summary (default: this month)")
    history.set_defaults(handler=cmd_history)

    holidays = sub.add_parser("holidays", help="list, add or remove holidays")
    holidays.add_argument("action", choices=("list", "add", "remove"), nargs="?", default="list")
    holidays.add_argument("date", nargs="?", help="YYYY-MM-DD (first day of a range with --to)")
    holidays.add_argument("name", nargs="?", default="")
    holidays.add_argument("--to", help="YYYY-MM-DD, last day of a range; goes after NAME")
    holidays.set_defaults(handler=cmd_holidays)

    configure = sub.add_parser("configure", help="update credentials and preferences")
    configure.add_argument("--username")
    configure.add_argument("--password")
    configure.add_argument("--notifications", choices=("on", "off"))
    configure.add_argument("--calendar-only", choices=("on", "off"))
    configure.set_defaults(handler=cmd_configure)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Run the attendance tracker CLI."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
    )

    try:
        settings = get_settings()
    except ValueError as exc:
        LOGGER.error("Configuration error: %s", exc)
        return 1

    if args.command == "holidays" and args.action != "list" and not args.date:
        LOGGER.error("holidays %s needs a date", args.action)
        return 1
    if args.command == "holidays" and args.to and args.action != "add":
        LOGGER.error("--to only applies to holidays add")
        return 1

    return args.handler(settings, args)


if __name__ == "__main__":
    sys.exit(main())
