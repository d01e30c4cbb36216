"""
Live and all-time rating aggregation.

Weekly averages are gated by a minimum sample size; all-time averages are
shown from the first rating. Neither path caches: every call reads the
source rows.
"""

from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session

from ratings_engine.config import Settings, get_settings
from ratings_engine.database import queries
from ratings_engine.leaderboard.time_window import Instant, current_week_start


AVERAGE_QUANTUM = Decimal("0.01")


@dataclass(frozen=True)
class TeacherAggregate:
    teacher_id: str
    count: int
    average: Optional[Decimal]


def compute_average(count: int, total: int, min_count: int = 1) -> Optional[Decimal]:
    """
    Mean star value rounded half-up to 2 decimal places.

    Args:
        count: Number of ratings
        total: Sum of their stars
        min_count: Smallest sample that yields a number

    Returns:
        The rounded mean, or None if ``count`` is below ``min_count`` (or zero)

    Example:
        >>> compute_average(3, 13)
        Decimal('4.33')
        >>> compute_average(2, 9, min_count=3) is None
        True
    """
    if count <= 0 or count < min_count:
        return None
    return (Decimal(total) / Decimal(count)).quantize(AVERAGE_QUANTUM, rounding=ROUND_HALF_UP)


def compute_aggregate(teacher_id: str, stars: Iterable[int], min_count: int = 1) -> TeacherAggregate:
    """Aggregate a plain sequence of star values."""
    values = list(stars)
    return TeacherAggregate(
        teacher_id=teacher_id,
        count=len(values),
        average=compute_average(len(values), sum(values), min_count),
    )


def _from_totals(totals: Dict[str, Tuple[int, int]], min_count: int) -> List[TeacherAggregate]:
    return [
        TeacherAggregate(teacher_id=tid, count=count, average=compute_average(count, total, min_count))
        for tid, (count, total) in sorted(totals.items())
    ]


def week_aggregates(
    session: Session, week_start: date, settings: Optional[Settings] = None
) -> List[TeacherAggregate]:
    """
    One aggregate per teacher with at least one weekly record in the week.

    Used for the live leaderboard and, on a closed week, by the snapshot writer.
    """
    min_count = (settings or get_settings()).min_weekly_ratings
    return _from_totals(queries.get_week_totals(session, week_start), min_count)


def current_aggregate(
    session: Session, teacher_id: str, now: Instant, settings: Optional[Settings] = None
) -> TeacherAggregate:
    """Current-week aggregate for one teacher, recomputed on every call."""
    settings = settings or get_settings()
    min_count = settings.min_weekly_ratings
    week_start = current_week_start(now, settings.tzinfo)
    count, total = queries.get_week_totals(session, week_start, teacher_id).get(teacher_id, (0, 0))
    return TeacherAggregate(teacher_id, count, compute_average(count, total, min_count))


def all_time_aggregate(session: Session, teacher_id: str) -> TeacherAggregate:
    """All-time aggregate for one teacher. No minimum sample."""
    count, total = queries.get_all_time_totals(session, teacher_id).get(teacher_id, (0, 0))
    return TeacherAggregate(teacher_id, count, compute_average(count, total))


def all_time_aggregates(session: Session) -> List[TeacherAggregate]:
    """All-time aggregate for every teacher with at least one rating event."""
    return _from_totals(queries.get_all_time_totals(session), 1)
