"""
Week window resolution.

Weeks are Monday-anchored and span seven days inclusive (Monday..Sunday).
This is the only place that computes week boundaries; everything else asks
these functions. "Now" is always passed in explicitly.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta, tzinfo
from typing import List, Optional, Tuple, Union

from ratings_engine.config import get_settings
from ratings_engine.errors import ValidationError

WEEK_LENGTH_DAYS = 7

Instant = Union[datetime, date]


@dataclass(frozen=True)
class WeekWindow:
    """One week with a display label."""
    start: date
    end: date
    label: str


def _local_date(now: Instant, tz: Optional[tzinfo] = None) -> date:
    """Calendar date of ``now`` in the engine timezone.

    Aware datetimes are converted to ``tz`` (default: configured timezone).
    Naive datetimes and plain dates are taken at face value.
    """
    if isinstance(now, datetime):
        if now.tzinfo is not None:
            return now.astimezone(tz or get_settings().tzinfo).date()
        return now.date()
    if isinstance(now, date):
        return now
    raise ValidationError(f"Expected a date or datetime, got {type(now).__name__}")


def current_week_start(now: Instant, tz: Optional[tzinfo] = None) -> date:
    """Most recent Monday at or before ``now``."""
    day = _local_date(now, tz)
    return day - timedelta(days=day.weekday())


def week_range(week_start: date) -> Tuple[date, date]:
    """Inclusive (start, end) of the week beginning at ``week_start``."""
    return week_start, week_start + timedelta(days=WEEK_LENGTH_DAYS - 1)


def is_current_week(week_start: date, now: Instant, tz: Optional[tzinfo] = None) -> bool:
    return week_start == current_week_start(now, tz)


def previous_week_start(now: Instant, tz: Optional[tzinfo] = None) -> date:
    return current_week_start(now, tz) - timedelta(days=WEEK_LENGTH_DAYS)


def next_week_start(now: Instant, tz: Optional[tzinfo] = None) -> date:
    return current_week_start(now, tz) + timedelta(days=WEEK_LENGTH_DAYS)


def parse_week_start(value: Union[str, date]) -> date:
    """
    Parse a week identifier and normalize it to that week's Monday.

    Args:
        value: ISO date string (YYYY-MM-DD) or a date

    Returns:
        Monday of the week containing ``value``

    Raises:
        ValidationError: If ``value`` is not a valid ISO date
    """
    if isinstance(value, datetime):
        value = value.date()
    if isinstance(value, date):
        return current_week_start(value)
    if not isinstance(value, str):
        raise ValidationError(f"week_start must be an ISO date string, got {value!r}")
    try:
        parsed = date.fromisoformat(value.strip())
    except ValueError:
        raise ValidationError(f"week_start is not a valid ISO date: {value!r}")
    return current_week_start(parsed)


def format_week_range(start: date, end: Optional[date] = None) -> str:
    """Display form of a week, e.g. ``Jan 6 - Jan 12, 2025``."""
    if end is None:
        _, end = week_range(start)
    return f"{start:%b} {start.day} - {end:%b} {end.day}, {end.year}"


def recent_weeks(now: Instant, count: int = 4, tz: Optional[tzinfo] = None) -> List[WeekWindow]:
    """
    The ``count`` most recent weeks, current week first.

    Labels are "This Week", "Last Week", then the formatted date range.
    """
    if count < 1:
        raise ValidationError(f"count must be positive, got {count}")

    weeks = []
    start = current_week_start(now, tz)
    for i in range(count):
        _, end = week_range(start)
        if i == 0:
            label = "This Week"
        elif i == 1:
            label = "Last Week"
        else:
            label = format_week_range(start, end)
        weeks.append(WeekWindow(start=start, end=end, label=label))
        start -= timedelta(days=WEEK_LENGTH_DAYS)

    return weeks
