"""
Week snapshot store.

Once a week is over, its live aggregates are ranked and frozen into
leaderboard_snapshots, one row per teacher, plus a run marker in
leaderboard_snapshot_runs. That write happens at most once per week;
afterwards the week is only ever read back, never recomputed.

Per-week lifecycle:

    OPEN         the current (or a future) week; only live aggregation applies
    CLOSED       the week is over but has not been snapshotted yet
    SNAPSHOTTED  terminal; only read_snapshot applies
"""

import logging
from datetime import date, datetime
from enum import Enum
from typing import List, Optional, Union

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ratings_engine.config import Settings, get_settings
from ratings_engine.database import queries
from ratings_engine.database.models import WeekSnapshotRecord, WeekSnapshotRun
from ratings_engine.errors import ConflictError, InvalidState, NotFound
from ratings_engine.leaderboard.aggregation import week_aggregates
from ratings_engine.leaderboard.ranking import TOP, rank
from ratings_engine.leaderboard.time_window import (
    current_week_start,
    parse_week_start,
    week_range,
)

logger = logging.getLogger(__name__)

# First key of the two-key PostgreSQL advisory lock; the second is the week ordinal
SNAPSHOT_LOCK_NAMESPACE = 0x52415445


class WeekState(str, Enum):
    OPEN = "open"
    CLOSED = "closed"
    SNAPSHOTTED = "snapshotted"


def week_state(
    session: Session,
    week_start: Union[str, date],
    now: datetime,
    settings: Optional[Settings] = None,
) -> WeekState:
    """Where ``week_start`` is in its lifecycle as of ``now``."""
    settings = settings or get_settings()
    week_start = parse_week_start(week_start)
    if queries.get_snapshot_run(session, week_start) is not None:
        return WeekState.SNAPSHOTTED
    if week_start >= current_week_start(now, settings.tzinfo):
        return WeekState.OPEN
    return WeekState.CLOSED


def _acquire_week_lock(session: Session, week_start: date) -> None:
    """
    Take a transaction-scoped advisory lock on the week (PostgreSQL only).

    A second writer for the same week fails immediately instead of waiting.
    On other backends the run marker's primary key is the only guard.
    """
    if session.get_bind().dialect.name != "postgresql":
        return
    acquired = session.execute(
        text("SELECT pg_try_advisory_xact_lock(:namespace, :week)"),
        {"namespace": SNAPSHOT_LOCK_NAMESPACE, "week": week_start.toordinal()},
    ).scalar()
    if not acquired:
        raise ConflictError(f"Snapshot for week {week_start} is already being written")


def write_snapshot(
    session: Session,
    week_start: Union[str, date],
    now: datetime,
    settings: Optional[Settings] = None,
) -> List[WeekSnapshotRecord]:
    """
    Freeze and rank a finished week.

    Args:
        session: Open session; the caller commits
        week_start: Any day of the week to snapshot (normalized to Monday)
        now: Current time, used to decide whether the week is over
        settings: Optional settings override

    Returns:
        The written rows in rank order (may be empty for a week without ratings)

    Raises:
        InvalidState: The week is the current week or in the future
        ConflictError: The week was already snapshotted, or another writer
            holds it right now
    """
    settings = settings or get_settings()
    week_start = parse_week_start(week_start)
    week_start, week_end = week_range(week_start)

    current = current_week_start(now, settings.tzinfo)
    if week_start >= current:
        logger.warning(f"Refusing to snapshot open week {week_start} (current week {current})")
        raise InvalidState(f"Week {week_start} is still open and cannot be snapshotted")

    _acquire_week_lock(session, week_start)

    if queries.get_snapshot_run(session, week_start) is not None:
        logger.warning(f"Snapshot for week {week_start} already exists; leaving it untouched")
        raise ConflictError(f"Week {week_start} has already been snapshotted")

    ranked = rank(week_aggregates(session, week_start, settings), TOP)

    # Marker first: its primary key is what a racing writer collides on
    session.add(
        WeekSnapshotRun(
            week_start=week_start,
            week_end=week_end,
            teacher_count=len(ranked),
            created_at=now,
        )
    )
    try:
        session.flush()
    except IntegrityError:
        logger.warning(f"Concurrent snapshot detected for week {week_start}")
        raise ConflictError(f"Week {week_start} has already been snapshotted")

    records = [
        WeekSnapshotRecord(
            teacher_id=entry.teacher_id,
            week_start=week_start,
            week_end=week_end,
            total_ratings=entry.count,
            average_rating=entry.average,
            rank_position=entry.rank_position,
            created_at=now,
        )
        for entry in ranked
    ]
    session.add_all(records)
    try:
        session.flush()
    except IntegrityError:
        raise ConflictError(f"Snapshot rows for week {week_start} already exist")

    logger.info(f"Snapshotted week {week_start}..{week_end}: {len(records)} teachers ranked")
    return records


def read_snapshot(session: Session, week_start: Union[str, date]) -> List[WeekSnapshotRecord]:
    """Stored rows for a week in rank order. Never recomputes."""
    return queries.get_snapshot_rows(session, parse_week_start(week_start))


def require_snapshot_run(session: Session, week_start: Union[str, date]) -> WeekSnapshotRun:
    """Run marker for a week, or NotFound if the week was never snapshotted."""
    week_start = parse_week_start(week_start)
    run = queries.get_snapshot_run(session, week_start)
    if run is None:
        raise NotFound(f"No snapshot exists for week {week_start}")
    return run


def list_snapshot_weeks(session: Session, limit: int = 52) -> List[WeekSnapshotRun]:
    """Snapshotted weeks, most recent first."""
    return queries.list_snapshot_runs(session, limit)
