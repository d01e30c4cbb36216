"""
Submission ledger: accepts star ratings and applies the weekly dedup rule.

A submission always upserts the submitter's weekly record for the teacher.
The all-time ledger gets a new RatingEvent only for the submitter's first
submission of the week; resubmissions in the same week change the weekly
value and nothing else. Both writes happen in the caller's transaction.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from sqlalchemy.orm import Session

from ratings_engine.config import Settings, get_settings
from ratings_engine.database import queries
from ratings_engine.database.models import WeeklyRatingRecord
from ratings_engine.errors import InvalidState, NotFound, ValidationError
from ratings_engine.leaderboard.time_window import current_week_start

logger = logging.getLogger(__name__)

MIN_STARS = 1
MAX_STARS = 5


@dataclass(frozen=True)
class SubmissionResult:
    accepted: bool
    updated_existing: bool
    week_start: date

    @property
    def weekly_updated(self) -> bool:
        return self.updated_existing


def validate_stars(stars) -> int:
    # bool is an int subclass; True must not count as one star
    if isinstance(stars, bool) or not isinstance(stars, int):
        raise ValidationError(f"stars must be an integer, got {stars!r}")
    if not (MIN_STARS <= stars <= MAX_STARS):
        raise ValidationError(f"stars must be between {MIN_STARS} and {MAX_STARS}, got {stars}")
    return stars


def normalize_teacher_id(teacher_id) -> str:
    """Canonical lowercase UUID string, or ValidationError."""
    if isinstance(teacher_id, uuid.UUID):
        return str(teacher_id)
    if not isinstance(teacher_id, str):
        raise ValidationError(f"Invalid teacher ID: {teacher_id!r}")
    try:
        return str(uuid.UUID(teacher_id.strip()))
    except ValueError:
        raise ValidationError(f"Invalid teacher ID: {teacher_id!r}")


def normalize_submitter_id(submitter_id, max_length: int = 255) -> str:
    """
    Validate the opaque submitter identity.

    The value is not interpreted; it only has to be a non-blank string no
    longer than ``max_length``.
    """
    if not isinstance(submitter_id, str):
        raise ValidationError("Submitter ID is required")
    value = submitter_id.strip()
    if not value:
        raise ValidationError("Submitter ID is required")
    if len(value) > max_length:
        raise ValidationError(f"Submitter ID too long (max {max_length} characters)")
    return value


def ensure_ratable_teacher(session: Session, teacher_id: str) -> None:
    teacher = queries.get_teacher(session, teacher_id)
    if teacher is None:
        raise NotFound(f"Teacher not found: {teacher_id}")
    if not teacher.is_active:
        raise InvalidState(f"Cannot rate inactive teacher: {teacher_id}")


def submit_rating(
    session: Session,
    teacher_id: str,
    stars: int,
    submitter_id: str,
    now: datetime,
    settings: Optional[Settings] = None,
) -> SubmissionResult:
    """
    Record a rating for the week containing ``now``.

    Args:
        session: Open session; the caller commits (see session_scope)
        teacher_id: Teacher UUID
        stars: Integer 1-5
        submitter_id: Opaque, stable anonymous identity
        now: Submission time; decides the week
        settings: Optional settings override

    Returns:
        SubmissionResult; updated_existing is True when this replaced an
        earlier submission of the same week

    Raises:
        ValidationError: Bad stars, teacher id or submitter id
        NotFound: Unknown teacher
        InvalidState: Inactive teacher, or the week was already snapshotted
    """
    settings = settings or get_settings()

    stars = validate_stars(stars)
    teacher_id = normalize_teacher_id(teacher_id)
    submitter_id = normalize_submitter_id(submitter_id, settings.max_submitter_id_length)
    if not isinstance(now, datetime):
        raise ValidationError(f"now must be a datetime, got {type(now).__name__}")

    ensure_ratable_teacher(session, teacher_id)

    week_start = current_week_start(now, settings.tzinfo)
    if queries.get_snapshot_run(session, week_start) is not None:
        logger.warning(f"Rejected rating for closed week {week_start} (teacher {teacher_id})")
        raise InvalidState(f"Week {week_start} is closed; ratings can no longer change")

    inserted = queries.insert_weekly_record_if_absent(
        session, teacher_id, submitter_id, week_start, stars, now
    )

    if inserted:
        queries.append_rating_event(session, teacher_id, submitter_id, stars, now)
        logger.debug(f"First rating this week: teacher={teacher_id} week={week_start} stars={stars}")
    else:
        queries.update_weekly_stars(session, teacher_id, submitter_id, week_start, stars, now)
        logger.debug(f"Updated weekly rating: teacher={teacher_id} week={week_start} stars={stars}")

    return SubmissionResult(accepted=True, updated_existing=not inserted, week_start=week_start)


def get_weekly_record(
    session: Session,
    teacher_id: str,
    submitter_id: str,
    now: datetime,
    settings: Optional[Settings] = None,
) -> Optional[WeeklyRatingRecord]:
    """The submitter's record for the teacher in the week containing ``now``."""
    settings = settings or get_settings()
    return queries.get_weekly_record(
        session,
        normalize_teacher_id(teacher_id),
        normalize_submitter_id(submitter_id, settings.max_submitter_id_length),
        current_week_start(now, settings.tzinfo),
    )


def has_rated_this_week(
    session: Session,
    teacher_id: str,
    submitter_id: str,
    now: datetime,
    settings: Optional[Settings] = None,
) -> bool:
    return get_weekly_record(session, teacher_id, submitter_id, now, settings) is not None
