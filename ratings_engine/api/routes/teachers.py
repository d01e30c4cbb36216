"""
Teacher Routes

Per-teacher rating views used by teacher detail and listing pages.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from ratings_engine.api.dependencies import get_service
from ratings_engine.leaderboard.service import WEEKLY, RatingsService

router = APIRouter()


class RatingViewResponse(BaseModel):
    """Count and average for one teacher; average is null when hidden."""
    teacher_id: str
    mode: str
    count: int
    average: Optional[float] = None


@router.get("/{teacher_id}/rating", response_model=RatingViewResponse)
def get_teacher_rating(
    teacher_id: str,
    mode: str = Query(WEEKLY),
    service: RatingsService = Depends(get_service),
):
    """Weekly (deduplicated, minimum sample gated) or all-time rating view."""
    view = service.get_teacher_rating_view(teacher_id, mode)
    return RatingViewResponse(**view.to_dict())
