"""
Request-scoped dependencies for the ratings API.
"""

from datetime import datetime
from typing import Callable, Generator

from fastapi import Depends
from sqlalchemy.orm import Session

from ratings_engine.config import get_settings
from ratings_engine.database.connection import get_session
from ratings_engine.leaderboard.service import RatingsService, system_clock


def get_db() -> Generator[Session, None, None]:
    """
    One session per request.

    Write routes commit explicitly before responding; anything left
    uncommitted is rolled back when the session closes.
    """
    session = get_session()
    try:
        yield session
    finally:
        session.close()


def get_clock() -> Callable[[], datetime]:
    return system_clock


def get_service(
    session: Session = Depends(get_db),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> RatingsService:
    return RatingsService(session, clock=clock, settings=get_settings())
