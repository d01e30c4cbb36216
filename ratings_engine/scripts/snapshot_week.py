#!/usr/bin/env python3
"""
Weekly leaderboard snapshot for the Teacher Ratings Engine.

Run once shortly after each Monday rollover (e.g. from cron) to freeze and
rank the week that just ended:

    5 0 * * 1  python -m ratings_engine.scripts.snapshot_week

Usage:
    python -m ratings_engine.scripts.snapshot_week [--week-start YYYY-MM-DD] [--init-db] [--check-db] [--verbose]

Options:
    --week-start   Any day of the week to snapshot (default: previous week)
    --init-db      Create missing tables before snapshotting
    --check-db     Only check the database connection and print row counts
    --verbose      Debug logging

Exit codes:
    0  snapshot written
    1  week still open, or already snapshotted
    2  invalid arguments
    3  database unreachable (--check-db)
"""

import argparse
import logging
import sys

from sqlalchemy.exc import SQLAlchemyError

from ratings_engine.config import get_settings
from ratings_engine.database.connection import (
    check_connection,
    get_table_counts,
    init_db,
    session_scope,
)
from ratings_engine.errors import ConflictError, InvalidState, ValidationError
from ratings_engine.leaderboard.service import RatingsService
from ratings_engine.utilities.common import setup_logging

logger = logging.getLogger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Snapshot a finished week's leaderboard")
    parser.add_argument(
        "--week-start",
        help="Any day of the week to snapshot, YYYY-MM-DD (default: previous week)",
    )
    parser.add_argument(
        "--init-db",
        action="store_true",
        help="Create missing tables first",
    )
    parser.add_argument(
        "--check-db",
        action="store_true",
        help="Only check the database connection and print row counts",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging",
    )
    return parser.parse_args(argv)


def run(week_start=None) -> int:
    """
    Write the snapshot and print a summary.

    Returns:
        Process exit code
    """
    try:
        with session_scope() as session:
            rows = RatingsService(session).write_snapshot(week_start)
            summary = [row.to_dict() for row in rows]
    except ValidationError as e:
        logger.error(str(e))
        return 2
    except (InvalidState, ConflictError) as e:
        logger.error(f"Snapshot not written: {e}")
        return 1

    if not summary:
        print("Snapshot written: no ratings that week")
        return 0

    first = summary[0]
    print(f"Snapshot written for {first['week_start']} - {first['week_end']}: {len(summary)} teachers")
    for row in summary:
        average = f"{row['average_rating']:.2f}" if row["average_rating"] is not None else "  -  "
        print(f"  #{row['rank_position']:<3} {row['teacher_id']}  avg {average}  ({row['total_ratings']} ratings)")
    return 0


def check_database() -> int:
    """
    Report whether the database is reachable, with per-table row counts.

    Returns:
        Process exit code (0 reachable, 3 unreachable or schema missing)
    """
    if not check_connection():
        print("Database unreachable")
        return 3
    try:
        counts = get_table_counts()
    except SQLAlchemyError as e:
        logger.error(f"Could not count rows (run with --init-db?): {e}")
        return 3

    print("Database OK")
    for table, count in counts.items():
        print(f"  {table:<28} {count}")
    return 0


def main(argv=None) -> int:
    args = parse_args(argv)
    setup_logging("DEBUG" if args.verbose else get_settings().log_level)

    if args.init_db:
        init_db()

    if args.check_db:
        return check_database()

    return run(args.week_start)


if __name__ == "__main__":
    sys.exit(main())
