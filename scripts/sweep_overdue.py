#!/usr/bin/env python3
"""
Run the overdue sweep once and print how many purchase orders moved.

Meant to be called from cron or any scheduler.  Idempotent: running it
twice for the same day reports 0 the second time.

Usage:
  python3 scripts/sweep_overdue.py [--today 2026-02-01] [--config path.yaml]
                                   [--database-url postgresql://...]
"""

from __future__ import annotations

import argparse
import sys
from dataclasses import replace
from datetime import date
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from ledger_config import get_active_settings  # noqa: E402
from ledger_kernel.exceptions import LedgerError  # noqa: E402
from ledger_kernel.logging_config import configure_logging  # noqa: E402
from ledger_kernel.services.ledger_coordinator import LedgerCoordinator  # noqa: E402
from ledger_kernel.services.overdue_sweeper import OverdueSweeper  # noqa: E402


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Mark past-due purchase orders OVERDUE.")
    parser.add_argument(
        "--today",
        type=date.fromisoformat,
        default=None,
        help="Sweep as of this date (YYYY-MM-DD); defaults to today (UTC).",
    )
    parser.add_argument("--config", default=None, help="Settings YAML file.")
    parser.add_argument(
        "--database-url",
        default=None,
        help="Overrides database.url from the settings file.",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    settings = get_active_settings(args.config)
    if args.database_url:
        settings = replace(
            settings, database=replace(settings.database, url=args.database_url)
        )

    configure_logging(level=settings.logging.level.upper())

    coordinator = LedgerCoordinator.from_settings(settings)
    try:
        report = OverdueSweeper(coordinator).run(today=args.today)
    except LedgerError as exc:
        print(f"ERROR [{exc.code}]: {exc}", file=sys.stderr)
        return 1

    print(f"{report.affected} purchase order(s) marked overdue as of {report.today}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
