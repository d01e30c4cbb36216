"""Rating aggregation and weekly leaderboard engine."""

from .aggregation import TeacherAggregate, compute_average
from .ledger import SubmissionResult, submit_rating
from .ranking import BOTTOM, TOP, RankedEntry, rank
from .snapshots import WeekState, read_snapshot, write_snapshot
from .service import Leaderboard, RatingsService, RatingView
from .time_window import current_week_start, is_current_week, week_range

__all__ = [
    "TeacherAggregate",
    "compute_average",
    "SubmissionResult",
    "submit_rating",
    "BOTTOM",
    "TOP",
    "RankedEntry",
    "rank",
    "Leaderboard",
    "RatingsService",
    "RatingView",
    "WeekState",
    "read_snapshot",
    "write_snapshot",
    "current_week_start",
    "is_current_week",
    "week_range",
]
