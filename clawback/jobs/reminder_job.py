"""Cron entry point for the reminder batch.

``clawback-reminders`` evaluates today's reminders against the configured
database and prints the run result as JSON. Without ``--commit`` it is a dry
run and writes nothing.
"""
from __future__ import annotations

import argparse
import json
import os
import sys
from typing import Sequence

from clawback.config import Settings, load_settings
from clawback.database import Base, SessionLocal, engine
from clawback.services.reminder_batch import run_reminder_batch
from clawback.utils import get_logger, setup_logging
from clawback.utils.time import format_elapsed, local_now, utc_now

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="clawback-reminders",
        description="Compute today's credit reset reminders.",
    )
    parser.add_argument(
        "--commit",
        action="store_true",
        help="append reminders to the notification log (default: dry run)",
    )
    parser.add_argument(
        "--timezone",
        default=None,
        help="zone deciding what 'today' is (default: REMINDER_TIMEZONE or UTC)",
    )
    return parser


def run(settings: Settings, *, commit: bool, timezone_name: str | None = None) -> dict:
    started = utc_now()
    tz_name = timezone_name or settings.reminder_timezone
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        result = run_reminder_batch(session, dry_run=not commit, now=local_now(tz_name))
    finally:
        session.close()
    payload = result.model_dump(mode="json", exclude_none=True)
    payload["elapsed"] = format_elapsed(started)
    return payload


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(log_level=os.getenv("LOG_LEVEL", "INFO"), log_file=os.getenv("LOG_FILE"), enable_console=False)
    try:
        payload = run(load_settings(), commit=args.commit, timezone_name=args.timezone)
    except Exception as e:
        logger.error("Reminder job failed", error=str(e), exc_info=True)
        print(json.dumps({"ok": False, "error": str(e) or "Unknown error"}), file=sys.stderr)
        return 1
    print(json.dumps(payload, indent=2))
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
