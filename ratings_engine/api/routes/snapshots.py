"""
Snapshot Routes

Trigger and read write-once weekly leaderboard snapshots. The weekly
scheduler calls POST /snapshots shortly after each Monday rollover.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel

from ratings_engine.api.dependencies import get_service
from ratings_engine.leaderboard import snapshots as snapshot_store
from ratings_engine.leaderboard.service import RatingsService
from ratings_engine.leaderboard.time_window import parse_week_start, previous_week_start, week_range

logger = logging.getLogger(__name__)

router = APIRouter()


class SnapshotRequest(BaseModel):
    """Week to snapshot; defaults to the previous week."""
    week_start: Optional[str] = None


class SnapshotRow(BaseModel):
    teacher_id: str
    week_start: str
    week_end: str
    total_ratings: int
    average_rating: Optional[float] = None
    rank_position: int


class SnapshotResponse(BaseModel):
    week_start: str
    week_end: str
    rows: List[SnapshotRow]


class SnapshotWeek(BaseModel):
    week_start: str
    week_end: str
    teacher_count: int


@router.post("", response_model=SnapshotResponse, status_code=status.HTTP_201_CREATED)
def create_snapshot(
    request: Optional[SnapshotRequest] = None,
    service: RatingsService = Depends(get_service),
):
    """
    Freeze and rank a finished week.

    Returns 400 for the current week and 409 if the week already has a snapshot.
    """
    now = service.clock()
    if request is not None and request.week_start:
        target = parse_week_start(request.week_start)
    else:
        target = previous_week_start(now, service.settings.tzinfo)

    rows = service.write_snapshot(target, now=now)
    service.session.commit()

    start, end = week_range(target)
    logger.info(f"Snapshot written via API for week {start} ({len(rows)} rows)")

    return SnapshotResponse(
        week_start=start.isoformat(),
        week_end=end.isoformat(),
        rows=[SnapshotRow(**row.to_dict()) for row in rows],
    )


@router.get("", response_model=List[SnapshotWeek])
def list_snapshots(
    limit: int = Query(52, ge=1, le=520),
    service: RatingsService = Depends(get_service),
):
    """Snapshotted weeks, most recent first."""
    return [
        SnapshotWeek(
            week_start=run.week_start.isoformat(),
            week_end=run.week_end.isoformat(),
            teacher_count=run.teacher_count,
        )
        for run in snapshot_store.list_snapshot_weeks(service.session, limit)
    ]


@router.get("/{week_start}", response_model=SnapshotResponse)
def get_snapshot(
    week_start: str,
    service: RatingsService = Depends(get_service),
):
    """Stored snapshot rows for a week in rank order (404 if never snapshotted)."""
    start, end = week_range(parse_week_start(week_start))
    rows = service.read_snapshot(start)
    return SnapshotResponse(
        week_start=start.isoformat(),
        week_end=end.isoformat(),
        rows=[SnapshotRow(**row.to_dict()) for row in rows],
    )
