"""
Ratings service: the entry points used by the web layer and the scheduler.

Wraps the ledger, aggregators, ranker and snapshot store behind one object
bound to a session, a clock and settings. Read paths branch on the week:
the current week is aggregated live, past weeks come from their snapshot.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Callable, List, Optional, Union

from sqlalchemy.orm import Session

from ratings_engine.config import Settings, get_settings
from ratings_engine.database import queries
from ratings_engine.database.models import WeekSnapshotRecord
from ratings_engine.errors import NotFound, ValidationError
from ratings_engine.leaderboard import aggregation, ledger, snapshots
from ratings_engine.leaderboard.aggregation import TeacherAggregate
from ratings_engine.leaderboard.ranking import TOP, RankedEntry, rank, validate_direction
from ratings_engine.leaderboard.time_window import (
    WeekWindow,
    current_week_start,
    is_current_week,
    parse_week_start,
    previous_week_start,
    recent_weeks,
    week_range,
)

logger = logging.getLogger(__name__)

WEEKLY = "weekly"
ALL_TIME = "all_time"
MODES = (WEEKLY, ALL_TIME)

LIVE = "live"
SNAPSHOT = "snapshot"


def system_clock() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class RatingView:
    teacher_id: str
    mode: str
    count: int
    average: Optional[Decimal]

    def to_dict(self) -> dict:
        return {
            "teacher_id": self.teacher_id,
            "mode": self.mode,
            "count": self.count,
            "average": float(self.average) if self.average is not None else None,
        }


@dataclass(frozen=True)
class Leaderboard:
    mode: str
    direction: str
    source: str
    week_start: Optional[date]
    week_end: Optional[date]
    entries: List[RankedEntry]

    def to_dict(self) -> dict:
        return {
            "mode": self.mode,
            "direction": self.direction,
            "source": self.source,
            "week_start": self.week_start.isoformat() if self.week_start else None,
            "week_end": self.week_end.isoformat() if self.week_end else None,
            "entries": [entry.to_dict() for entry in self.entries],
        }


def validate_mode(mode: str) -> str:
    if mode not in MODES:
        raise ValidationError(f"mode must be one of {', '.join(MODES)}, got {mode!r}")
    return mode


class RatingsService:
    """
    Rating submission and read API over one database session.

    The caller owns the transaction (usually via session_scope()). ``clock``
    supplies "now" when a method is called without an explicit ``now``.
    """

    def __init__(
        self,
        session: Session,
        clock: Optional[Callable[[], datetime]] = None,
        settings: Optional[Settings] = None,
    ):
        self.session = session
        self.clock = clock or system_clock
        self.settings = settings or get_settings()

    def _now(self, now: Optional[datetime]) -> datetime:
        return now if now is not None else self.clock()

    # -------------------------------------------------------------------------
    # Submission
    # -------------------------------------------------------------------------

    def submit_rating(
        self,
        teacher_id: str,
        stars: int,
        submitter_id: str,
        now: Optional[datetime] = None,
    ) -> ledger.SubmissionResult:
        return ledger.submit_rating(
            self.session, teacher_id, stars, submitter_id, self._now(now), self.settings
        )

    def has_rated(self, teacher_id: str, submitter_id: str, now: Optional[datetime] = None) -> bool:
        """Whether the submitter already rated the teacher this week."""
        return ledger.has_rated_this_week(
            self.session, teacher_id, submitter_id, self._now(now), self.settings
        )

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get_teacher_rating_view(
        self, teacher_id: str, mode: str = WEEKLY, now: Optional[datetime] = None
    ) -> RatingView:
        """
        Count and average for one teacher.

        The weekly view hides the average below the minimum sample size;
        the all-time view always shows it once there is a rating.
        """
        validate_mode(mode)
        teacher_id = ledger.normalize_teacher_id(teacher_id)
        if queries.get_teacher(self.session, teacher_id) is None:
            raise NotFound(f"Teacher not found: {teacher_id}")

        if mode == WEEKLY:
            agg = aggregation.current_aggregate(self.session, teacher_id, self._now(now), self.settings)
        else:
            agg = aggregation.all_time_aggregate(self.session, teacher_id)
        return RatingView(teacher_id=teacher_id, mode=mode, count=agg.count, average=agg.average)

    def get_leaderboard(
        self,
        mode: str = WEEKLY,
        week_start: Optional[Union[str, date]] = None,
        direction: str = TOP,
        limit: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> Leaderboard:
        """
        Ranked leaderboard.

        Args:
            mode: "weekly" or "all_time"
            week_start: Weekly mode only; any day of the wanted week.
                Defaults to the current week. Ignored for all_time.
            direction: "top" or "bottom"
            limit: Maximum entries (default from settings)
            now: Current time override

        Raises:
            ValidationError: Bad mode, direction, limit, or a future week
            NotFound: A past week that has not been snapshotted
        """
        validate_mode(mode)
        validate_direction(direction)
        limit = self._validate_limit(limit)
        now = self._now(now)

        if mode == ALL_TIME:
            aggregates = self._active_only(aggregation.all_time_aggregates(self.session))
            return Leaderboard(
                mode=mode,
                direction=direction,
                source=LIVE,
                week_start=None,
                week_end=None,
                entries=rank(aggregates, direction)[:limit],
            )

        current = current_week_start(now, self.settings.tzinfo)
        target = parse_week_start(week_start) if week_start is not None else current
        _, week_end = week_range(target)

        if target > current:
            raise ValidationError(f"Week {target} has not started yet")

        if is_current_week(target, now, self.settings.tzinfo):
            aggregates = self._active_only(
                aggregation.week_aggregates(self.session, target, self.settings)
            )
            entries = rank(aggregates, direction)
            source = LIVE
        else:
            entries = self._snapshot_entries(target, direction)
            source = SNAPSHOT

        return Leaderboard(
            mode=mode,
            direction=direction,
            source=source,
            week_start=target,
            week_end=week_end,
            entries=entries[:limit],
        )

    def _snapshot_entries(self, week_start: date, direction: str) -> List[RankedEntry]:
        snapshots.require_snapshot_run(self.session, week_start)
        rows = snapshots.read_snapshot(self.session, week_start)
        if direction == TOP:
            return [
                RankedEntry(
                    teacher_id=row.teacher_id,
                    average=row.average_rating,
                    count=row.total_ratings,
                    rank_position=row.rank_position,
                )
                for row in rows
            ]
        # Bottom view reorders the frozen values; it never recomputes them
        frozen = [
            TeacherAggregate(row.teacher_id, row.total_ratings, row.average_rating)
            for row in rows
        ]
        return rank(frozen, direction)

    def _active_only(self, aggregates: List[TeacherAggregate]) -> List[TeacherAggregate]:
        active = queries.get_active_teacher_ids(self.session, [a.teacher_id for a in aggregates])
        return [a for a in aggregates if a.teacher_id in active]

    def _validate_limit(self, limit: Optional[int]) -> int:
        if limit is None:
            return self.settings.default_leaderboard_limit
        if isinstance(limit, bool) or not isinstance(limit, int):
            raise ValidationError(f"limit must be an integer, got {limit!r}")
        if not (1 <= limit <= self.settings.max_leaderboard_limit):
            raise ValidationError(
                f"limit must be between 1 and {self.settings.max_leaderboard_limit}, got {limit}"
            )
        return limit

    # -------------------------------------------------------------------------
    # Weeks and snapshots
    # -------------------------------------------------------------------------

    def write_snapshot(
        self, week_start: Optional[Union[str, date]] = None, now: Optional[datetime] = None
    ) -> List[WeekSnapshotRecord]:
        """Snapshot a finished week; defaults to the week before ``now``."""
        now = self._now(now)
        if week_start is None:
            week_start = previous_week_start(now, self.settings.tzinfo)
        return snapshots.write_snapshot(self.session, week_start, now, self.settings)

    def read_snapshot(self, week_start: Union[str, date]) -> List[WeekSnapshotRecord]:
        snapshots.require_snapshot_run(self.session, week_start)
        return snapshots.read_snapshot(self.session, week_start)

    def week_state(
        self, week_start: Union[str, date], now: Optional[datetime] = None
    ) -> snapshots.WeekState:
        return snapshots.week_state(self.session, week_start, self._now(now), self.settings)

    def recent_weeks(self, count: int = 4, now: Optional[datetime] = None) -> List[WeekWindow]:
        return recent_weeks(self._now(now), count, self.settings.tzinfo)
