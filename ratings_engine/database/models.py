# ratings_engine/database/models.py
"""
SQLAlchemy ORM models for the teacher ratings engine.

Four record shapes are owned by the engine (all-time rating events, weekly
rating records, week snapshots and the snapshot run marker). The teachers
table belongs to the catalogue side of the product; the engine only reads
its id and active flag.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    event,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from ratings_engine.errors import InvalidState


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class Teacher(Base):
    """
    Minimal teacher record.

    Managed by the catalogue/admin side. The engine checks existence and
    ``is_active`` before accepting a rating.
    """
    __tablename__ = "teachers"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )

    # Relationships
    rating_events: Mapped[List["RatingEvent"]] = relationship(back_populates="teacher")
    weekly_ratings: Mapped[List["WeeklyRatingRecord"]] = relationship(back_populates="teacher")

    def __repr__(self) -> str:
        state = "active" if self.is_active else "inactive"
        return f"<Teacher {self.id}: {self.name} ({state})>"


class RatingEvent(Base):
    """
    All-time rating ledger entry.

    Append-only. One row is written for the first submission a submitter
    makes for a teacher in a given week; edits within the week never touch it.
    """
    __tablename__ = "ratings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    teacher_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("teachers.id", ondelete="CASCADE"), nullable=False
    )
    stars: Mapped[int] = mapped_column(Integer, nullable=False)
    submitter_id: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    teacher: Mapped["Teacher"] = relationship(back_populates="rating_events")

    __table_args__ = (
        CheckConstraint("stars BETWEEN 1 AND 5", name="chk_rating_stars"),
        Index("ix_ratings_teacher", "teacher_id"),
    )

    def __repr__(self) -> str:
        return f"<RatingEvent {self.id}: teacher={self.teacher_id} stars={self.stars}>"


class WeeklyRatingRecord(Base):
    """
    Current rating of one submitter for one teacher in one week.

    Unique per (teacher_id, submitter_id, week_start); a resubmission in the
    same week overwrites ``stars`` in place.
    """
    __tablename__ = "weekly_ratings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    teacher_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("teachers.id", ondelete="CASCADE"), nullable=False
    )
    submitter_id: Mapped[str] = mapped_column(String(255), nullable=False)
    week_start: Mapped[date] = mapped_column(Date, nullable=False)
    stars: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    teacher: Mapped["Teacher"] = relationship(back_populates="weekly_ratings")

    __table_args__ = (
        UniqueConstraint("teacher_id", "submitter_id", "week_start", name="uq_weekly_rating"),
        CheckConstraint("stars BETWEEN 1 AND 5", name="chk_weekly_stars"),
        Index("ix_weekly_ratings_week_teacher", "week_start", "teacher_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<WeeklyRatingRecord {self.teacher_id}/{self.submitter_id} "
            f"week={self.week_start} stars={self.stars}>"
        )


class WeekSnapshotRecord(Base):
    """
    Frozen, ranked aggregate of one teacher for one past week.

    Written exactly once when the week is snapshotted, never updated.
    ``average_rating`` is NULL when the week had fewer ratings than the
    minimum sample size.
    """
    __tablename__ = "leaderboard_snapshots"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    teacher_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("teachers.id", ondelete="CASCADE"), nullable=False
    )
    week_start: Mapped[date] = mapped_column(
        Date, ForeignKey("leaderboard_snapshot_runs.week_start"), nullable=False
    )
    week_end: Mapped[date] = mapped_column(Date, nullable=False)
    total_ratings: Mapped[int] = mapped_column(Integer, nullable=False)
    average_rating: Mapped[Optional[Decimal]] = mapped_column(Numeric(3, 2))
    rank_position: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    __table_args__ = (
        UniqueConstraint("teacher_id", "week_start", name="uq_snapshot_teacher_week"),
        UniqueConstraint("week_start", "rank_position", name="uq_snapshot_week_rank"),
        CheckConstraint("total_ratings >= 1", name="chk_snapshot_total_ratings"),
        CheckConstraint("rank_position >= 1", name="chk_snapshot_rank_position"),
    )

    def __repr__(self) -> str:
        return (
            f"<WeekSnapshotRecord week={self.week_start} #{self.rank_position} "
            f"teacher={self.teacher_id} avg={self.average_rating} n={self.total_ratings}>"
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON export."""
        return {
            "teacher_id": self.teacher_id,
            "week_start": self.week_start.isoformat(),
            "week_end": self.week_end.isoformat(),
            "total_ratings": self.total_ratings,
            "average_rating": float(self.average_rating) if self.average_rating is not None else None,
            "rank_position": self.rank_position,
        }


class WeekSnapshotRun(Base):
    """
    Write-once marker for a snapshotted week.

    Its primary key on ``week_start`` is what makes a second snapshot of the
    same week fail, including weeks that had no ratings at all.
    """
    __tablename__ = "leaderboard_snapshot_runs"

    week_start: Mapped[date] = mapped_column(Date, primary_key=True)
    week_end: Mapped[date] = mapped_column(Date, nullable=False)
    teacher_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    def __repr__(self) -> str:
        return f"<WeekSnapshotRun {self.week_start}: {self.teacher_count} teachers>"


@event.listens_for(WeekSnapshotRecord, "before_update")
@event.listens_for(WeekSnapshotRun, "before_update")
def _reject_snapshot_update(mapper, connection, target):
    raise InvalidState(f"Snapshot rows are immutable: {target!r}")


@event.listens_for(WeekSnapshotRecord, "before_delete")
@event.listens_for(WeekSnapshotRun, "before_delete")
def _reject_snapshot_delete(mapper, connection, target):
    raise InvalidState(f"Snapshot rows cannot be deleted: {target!r}")
