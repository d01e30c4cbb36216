"""
Test fixtures for the ratings engine.

Every test gets a fresh in-memory SQLite database with the full schema, a
handful of teachers, and a fixed clock so week boundaries are deterministic.

Usage:
    pytest tests/ -v
"""

from datetime import date, datetime, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from ratings_engine.config import Settings
from ratings_engine.database.models import Base, Teacher
from ratings_engine.leaderboard.service import RatingsService


# --- Fixed time ---

# Wednesday; its week runs Mon 2025-01-13 .. Sun 2025-01-19
NOW = datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)
CURRENT_WEEK = date(2025, 1, 13)
LAST_WEEK = date(2025, 1, 6)
LAST_WEEK_NOW = datetime(2025, 1, 8, 9, 30, tzinfo=timezone.utc)
TWO_WEEKS_AGO = date(2024, 12, 30)


# --- Teacher ids ---

ALICE = "11111111-1111-1111-1111-111111111111"
BOB = "22222222-2222-2222-2222-222222222222"
CAROL = "33333333-3333-3333-3333-333333333333"
RETIRED = "44444444-4444-4444-4444-444444444444"
UNKNOWN = "99999999-9999-9999-9999-999999999999"


@pytest.fixture
def settings():
    """Default settings: UTC weeks, minimum weekly sample of 3."""
    return Settings()


@pytest.fixture
def engine():
    """Fresh in-memory database shared across threads of one test."""
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def session(session_factory, teachers):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def teachers(session_factory):
    """Three active teachers and one inactive one."""
    with session_factory() as s:
        s.add_all([
            Teacher(id=ALICE, name="Alice Adams", is_active=True),
            Teacher(id=BOB, name="Bob Brown", is_active=True),
            Teacher(id=CAROL, name="Carol Chen", is_active=True),
            Teacher(id=RETIRED, name="Rita Retired", is_active=False),
        ])
        s.commit()
    return {"alice": ALICE, "bob": BOB, "carol": CAROL, "retired": RETIRED}


@pytest.fixture
def service(session, settings):
    """Service bound to the test session with the clock pinned to NOW."""
    return RatingsService(session, clock=lambda: NOW, settings=settings)


@pytest.fixture
def rate(service):
    """
    Submit ratings quickly.

    Usage:
        rate(ALICE, [5, 4, 3])                  # three submitters, this week
        rate(BOB, [4, 4], now=LAST_WEEK_NOW)    # two submitters, last week
    """
    def submit(teacher_id, stars_list, now=None, prefix="student"):
        results = []
        for i, stars in enumerate(stars_list):
            results.append(
                service.submit_rating(teacher_id, stars, f"{prefix}-{i}", now=now)
            )
        service.session.commit()
        return results
    return submit
