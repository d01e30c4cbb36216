"""
Leaderboard Routes

Live rankings for the current week and all time; stored snapshots for
past weeks.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from ratings_engine.api.dependencies import get_service
from ratings_engine.leaderboard.ranking import TOP
from ratings_engine.leaderboard.service import WEEKLY, RatingsService

router = APIRouter()


class LeaderboardEntry(BaseModel):
    teacher_id: str
    average: Optional[float] = None
    count: int
    rank_position: int


class LeaderboardResponse(BaseModel):
    mode: str
    direction: str
    source: str
    week_start: Optional[str] = None
    week_end: Optional[str] = None
    entries: List[LeaderboardEntry]


class WeekOption(BaseModel):
    week_start: str
    week_end: str
    label: str


@router.get("", response_model=LeaderboardResponse)
def get_leaderboard(
    mode: str = Query(WEEKLY),
    week_start: Optional[str] = Query(None),
    direction: str = Query(TOP),
    limit: Optional[int] = Query(None),
    service: RatingsService = Depends(get_service),
):
    """
    Ranked teachers.

    - mode=all_time: live ranking over the all-time ledger
    - mode=weekly, current week (default): live ranking
    - mode=weekly, past week_start: the stored snapshot (404 if none)
    """
    board = service.get_leaderboard(mode=mode, week_start=week_start, direction=direction, limit=limit)
    return LeaderboardResponse(**board.to_dict())


@router.get("/weeks", response_model=List[WeekOption])
def get_recent_weeks(
    count: int = Query(4, ge=1, le=52),
    service: RatingsService = Depends(get_service),
):
    """Recent weeks for the leaderboard week picker, current week first."""
    return [
        WeekOption(week_start=w.start.isoformat(), week_end=w.end.isoformat(), label=w.label)
        for w in service.recent_weeks(count)
    ]
