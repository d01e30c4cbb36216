"""
Rating Routes

Endpoints for submitting ratings and checking a submitter's weekly status.
"""

import logging

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import BaseModel, StrictInt

from ratings_engine.api.dependencies import get_service
from ratings_engine.leaderboard.ledger import normalize_teacher_id
from ratings_engine.leaderboard.service import RatingsService

logger = logging.getLogger(__name__)

router = APIRouter()


class RatingRequest(BaseModel):
    """Request body for a rating submission."""
    teacher_id: str
    stars: StrictInt
    submitter_id: str


class RatingResponse(BaseModel):
    """Outcome of a rating submission."""
    accepted: bool
    weekly_updated: bool
    week_start: str
    message: str


class RatingStatusResponse(BaseModel):
    """Whether a submitter already rated a teacher this week."""
    teacher_id: str
    has_rated: bool


@router.post("", response_model=RatingResponse, status_code=status.HTTP_201_CREATED)
def submit_rating(
    request: RatingRequest,
    response: Response,
    service: RatingsService = Depends(get_service),
):
    """
    Submit a 1-5 star rating for a teacher.

    The first submission of the week returns 201. Resubmitting in the same
    week replaces the weekly value and returns 200.
    """
    result = service.submit_rating(request.teacher_id, request.stars, request.submitter_id)
    service.session.commit()

    if result.weekly_updated:
        response.status_code = status.HTTP_200_OK
        message = "Rating updated for this week"
    else:
        message = "Rating submitted successfully"

    return RatingResponse(
        accepted=result.accepted,
        weekly_updated=result.weekly_updated,
        week_start=result.week_start.isoformat(),
        message=message,
    )


@router.get("/status", response_model=RatingStatusResponse)
def rating_status(
    teacher_id: str = Query(...),
    submitter_id: str = Query(...),
    service: RatingsService = Depends(get_service),
):
    """Check whether the submitter has rated the teacher in the current week."""
    return RatingStatusResponse(
        teacher_id=normalize_teacher_id(teacher_id),
        has_rated=service.has_rated(teacher_id, submitter_id),
    )
