# ratings_engine/database/queries.py
"""
Database query utilities for the teacher ratings engine.

Thin, reusable query functions. Business rules (dedup policy, minimum
sample size, ranking) live in ratings_engine.leaderboard; this module only
knows how to read and write rows.
"""

from datetime import date, datetime
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import desc, func, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from .models import (
    RatingEvent,
    Teacher,
    WeeklyRatingRecord,
    WeekSnapshotRecord,
    WeekSnapshotRun,
)

WEEKLY_KEY_COLUMNS = ["teacher_id", "submitter_id", "week_start"]


# =============================================================================
# TEACHER QUERIES
# =============================================================================


def get_teacher(session: Session, teacher_id: str) -> Optional[Teacher]:
    """Get a single teacher by id."""
    return session.get(Teacher, teacher_id)


def get_active_teacher_ids(session: Session, teacher_ids: Iterable[str]) -> set:
    """Return the subset of ``teacher_ids`` that are active."""
    ids = list(teacher_ids)
    if not ids:
        return set()
    rows = (
        session.query(Teacher.id)
        .filter(Teacher.id.in_(ids), Teacher.is_active.is_(True))
        .all()
    )
    return {row[0] for row in rows}


# =============================================================================
# WEEKLY RATING QUERIES
# =============================================================================


def get_weekly_record(
    session: Session,
    teacher_id: str,
    submitter_id: str,
    week_start: date,
    for_update: bool = False,
) -> Optional[WeeklyRatingRecord]:
    """Get the weekly record for one (teacher, submitter, week) key."""
    query = session.query(WeeklyRatingRecord).filter(
        WeeklyRatingRecord.teacher_id == teacher_id,
        WeeklyRatingRecord.submitter_id == submitter_id,
        WeeklyRatingRecord.week_start == week_start,
    )
    if for_update:
        query = query.with_for_update()
    return query.first()


def insert_weekly_record_if_absent(
    session: Session,
    teacher_id: str,
    submitter_id: str,
    week_start: date,
    stars: int,
    now: datetime,
) -> bool:
    """
    Insert a weekly record unless one already exists for the key.

    On PostgreSQL and SQLite this is a single ``INSERT ... ON CONFLICT DO
    NOTHING`` against the unique key, so two concurrent first submissions
    cannot both report an insert. Other dialects fall back to a locking
    read followed by an insert.

    Returns:
        True if a new row was inserted, False if the key already existed
    """
    values = {
        "teacher_id": teacher_id,
        "submitter_id": submitter_id,
        "week_start": week_start,
        "stars": stars,
        "created_at": now,
        "updated_at": now,
    }

    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        stmt = pg_insert(WeeklyRatingRecord.__table__).values(**values).on_conflict_do_nothing(
            index_elements=WEEKLY_KEY_COLUMNS
        )
    elif dialect == "sqlite":
        stmt = sqlite_insert(WeeklyRatingRecord.__table__).values(**values).on_conflict_do_nothing(
            index_elements=WEEKLY_KEY_COLUMNS
        )
    else:
        existing = get_weekly_record(session, teacher_id, submitter_id, week_start, for_update=True)
        if existing is not None:
            return False
        session.add(WeeklyRatingRecord(**values))
        session.flush()
        return True

    result = session.execute(stmt)
    return result.rowcount == 1


def update_weekly_stars(
    session: Session,
    teacher_id: str,
    submitter_id: str,
    week_start: date,
    stars: int,
    now: datetime,
) -> int:
    """Overwrite stars on an existing weekly record. Returns rows updated."""
    result = session.execute(
        update(WeeklyRatingRecord)
        .where(
            WeeklyRatingRecord.teacher_id == teacher_id,
            WeeklyRatingRecord.submitter_id == submitter_id,
            WeeklyRatingRecord.week_start == week_start,
        )
        .values(stars=stars, updated_at=now)
    )
    return result.rowcount


def get_week_totals(
    session: Session, week_start: date, teacher_id: Optional[str] = None
) -> Dict[str, Tuple[int, int]]:
    """
    Count and star sum per teacher for one week.

    Returns:
        Mapping of teacher_id -> (count, sum_of_stars); teachers without
        records that week are absent
    """
    query = (
        session.query(
            WeeklyRatingRecord.teacher_id,
            func.count(WeeklyRatingRecord.id),
            func.sum(WeeklyRatingRecord.stars),
        )
        .filter(WeeklyRatingRecord.week_start == week_start)
    )
    if teacher_id is not None:
        query = query.filter(WeeklyRatingRecord.teacher_id == teacher_id)

    rows = query.group_by(WeeklyRatingRecord.teacher_id).all()
    return {tid: (int(count), int(total)) for tid, count, total in rows}


# =============================================================================
# ALL-TIME LEDGER QUERIES
# =============================================================================


def append_rating_event(
    session: Session,
    teacher_id: str,
    submitter_id: str,
    stars: int,
    now: datetime,
) -> RatingEvent:
    """Append a row to the all-time rating ledger."""
    rating = RatingEvent(
        teacher_id=teacher_id,
        submitter_id=submitter_id,
        stars=stars,
        created_at=now,
    )
    session.add(rating)
    session.flush()
    return rating


def get_rating_events(
    session: Session, teacher_id: str, submitter_id: Optional[str] = None
) -> List[RatingEvent]:
    """All-time ledger rows for a teacher, oldest first."""
    query = session.query(RatingEvent).filter(RatingEvent.teacher_id == teacher_id)
    if submitter_id is not None:
        query = query.filter(RatingEvent.submitter_id == submitter_id)
    return query.order_by(RatingEvent.created_at, RatingEvent.id).all()


def get_all_time_totals(
    session: Session, teacher_id: Optional[str] = None
) -> Dict[str, Tuple[int, int]]:
    """Count and star sum per teacher over the whole ledger."""
    query = session.query(
        RatingEvent.teacher_id,
        func.count(RatingEvent.id),
        func.sum(RatingEvent.stars),
    )
    if teacher_id is not None:
        query = query.filter(RatingEvent.teacher_id == teacher_id)

    rows = query.group_by(RatingEvent.teacher_id).all()
    return {tid: (int(count), int(total)) for tid, count, total in rows}


# =============================================================================
# SNAPSHOT QUERIES
# =============================================================================


def get_snapshot_run(session: Session, week_start: date) -> Optional[WeekSnapshotRun]:
    """Get the run marker for a week, if that week was snapshotted."""
    return session.get(WeekSnapshotRun, week_start)


def get_snapshot_rows(session: Session, week_start: date) -> List[WeekSnapshotRecord]:
    """Snapshot rows for a week in rank order."""
    return (
        session.query(WeekSnapshotRecord)
        .filter(WeekSnapshotRecord.week_start == week_start)
        .order_by(WeekSnapshotRecord.rank_position)
        .all()
    )


def list_snapshot_runs(session: Session, limit: int = 52) -> List[WeekSnapshotRun]:
    """Most recent snapshotted weeks first."""
    return (
        session.query(WeekSnapshotRun)
        .order_by(desc(WeekSnapshotRun.week_start))
        .limit(limit)
        .all()
    )
