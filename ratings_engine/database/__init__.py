"""
Database module for the teacher ratings engine.

Provides SQLAlchemy models, connection management, and query helpers.
"""

from .connection import get_engine, get_session, init_db, session_scope
from .models import (
    Base,
    RatingEvent,
    Teacher,
    WeeklyRatingRecord,
    WeekSnapshotRecord,
    WeekSnapshotRun,
)

__all__ = [
    "get_engine",
    "get_session",
    "init_db",
    "session_scope",
    "Base",
    "RatingEvent",
    "Teacher",
    "WeeklyRatingRecord",
    "WeekSnapshotRecord",
    "WeekSnapshotRun",
]
