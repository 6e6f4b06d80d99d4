#!/usr/bin/env python3
"""
Run the background sweeps once, or serve them on their schedules.

Settings come from an optional YAML file (--config) and the environment
(RENTAL_DATABASE_URL, RENTAL_LOG_LEVEL); --database-url overrides both.

Usage:
    python3 scripts/run_sweeps.py [--config settings.yaml] <command> [options]

Commands:
    overdue     Mark PENDING invoices past their due date OVERDUE.
    reminders   Send reminders for invoices due in N days (default 3).
    backfill    Generate invoices for ACTIVE contracts that have none.
    auto_archive
                Move CLOSED conversations idle for a year into the archive store.
    cleanup     Purge archived conversations older than the retention period.
    serve       Run all five on their configured intervals until interrupted.

Examples:
    # Mark overdue invoices as of today
    python3 scripts/run_sweeps.py --config rental.yaml overdue

    # Replay the overdue sweep for a past date
    python3 scripts/run_sweeps.py overdue --as-of 2024-03-02

    # Long-running scheduler
    python3 scripts/run_sweeps.py --config rental.yaml serve
"""

from __future__ import annotations

import argparse
import json
import os
import signal
import sys
from datetime import date
from pathlib import Path

# Project root on sys.path
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from rental_batch.scheduler import SweepScheduler  # noqa: E402
from rental_kernel.config import ENV_DATABASE_URL, load_settings, with_overrides  # noqa: E402
from rental_kernel.db.engine import (  # noqa: E402
    create_tables,
    get_session_factory,
    init_engine_from_url,
)
from rental_kernel.domain.clock import Clock, DeterministicClock, SystemClock  # noqa: E402
from rental_kernel.logging_config import configure_logging  # noqa: E402
from rental_services.notifications import LoggingDispatcher  # noqa: E402

ONE_SHOT_COMMANDS = ("overdue", "reminders", "backfill", "auto_archive", "cleanup")


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Run rental ledger background sweeps.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="YAML settings file.",
    )
    parser.add_argument(
        "--database-url",
        default=None,
        help="Override the database URL from settings/environment.",
    )
    parser.add_argument(
        "--create-tables",
        action="store_true",
        help="Create missing tables before running (local tooling).",
    )

    sub = parser.add_subparsers(dest="command", required=True)
    for name in ONE_SHOT_COMMANDS:
        cmd = sub.add_parser(name, help=f"Run the {name} sweep once.")
        cmd.add_argument(
            "--as-of",
            type=date.fromisoformat,
            default=None,
            help="Run as if today were this date (YYYY-MM-DD).",
        )
    reminders = sub.choices["reminders"]
    reminders.add_argument(
        "--lead-days",
        type=int,
        default=None,
        help="Days before the due date to remind (default from settings).",
    )
    auto_archive = sub.choices["auto_archive"]
    auto_archive.add_argument(
        "--inactive-days",
        type=int,
        default=None,
        help="Archive CLOSED conversations idle this many days (default from settings).",
    )
    cleanup = sub.choices["cleanup"]
    cleanup.add_argument(
        "--retention-days",
        type=int,
        default=None,
        help="Keep archived conversations this many days (default from settings).",
    )

    serve = sub.add_parser("serve", help="Run all sweeps on their schedules.")
    serve.add_argument(
        "--tick-seconds",
        type=float,
        default=1.0,
        help="Scheduler polling interval (default: 1.0).",
    )

    return parser.parse_args(argv)


def _clock_for(as_of: date | None) -> Clock:
    if as_of is None:
        return SystemClock()
    clock = DeterministicClock()
    clock.set_date(as_of)
    return clock


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    environ = dict(os.environ)
    if args.database_url:
        environ[ENV_DATABASE_URL] = args.database_url
    try:
        settings = with_overrides(
            load_settings(args.config, environ),
            reminder_lead_days=getattr(args, "lead_days", None),
            archive_retention_days=getattr(args, "retention_days", None),
            conversation_inactive_days=getattr(args, "inactive_days", None),
        )
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2

    configure_logging(level=settings.log_level)
    init_engine_from_url(
        settings.database_url,
        echo=settings.echo,
        pool_size=settings.pool_size,
        max_overflow=settings.max_overflow,
    )
    if args.create_tables:
        create_tables()

    clock = _clock_for(getattr(args, "as_of", None))
    scheduler = SweepScheduler.from_settings(
        settings,
        get_session_factory(),
        notifier=LoggingDispatcher(),
        clock=clock,
        tick_interval_seconds=getattr(args, "tick_seconds", 1.0),
    )

    if args.command == "serve":
        signal.signal(signal.SIGTERM, lambda *_: scheduler.stop())
        scheduler.start()
        try:
            scheduler.wait()
        except KeyboardInterrupt:
            pass
        finally:
            scheduler.stop()
        return 0

    result = scheduler.run_now(args.command)
    print(
        json.dumps(
            {
                "sweep": result.sweep,
                "as_of": result.as_of.isoformat(),
                "affected": result.affected,
                "skipped": result.skipped,
                "notifications": result.notifications,
            }
        )
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
