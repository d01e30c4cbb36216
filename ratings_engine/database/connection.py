# ratings_engine/database/connection.py
"""
Database connection management for the teacher ratings engine.

Provides connection pooling, session management, and initialization utilities.
PostgreSQL is the production backend; SQLite URLs work for local runs and tests.
"""

import logging
from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ratings_engine.config import get_database_url

logger = logging.getLogger(__name__)

# Global engine instance (created lazily)
_engine: Optional[Engine] = None
_SessionLocal: Optional[sessionmaker] = None

TABLES = [
    "teachers",
    "ratings",
    "weekly_ratings",
    "leaderboard_snapshot_runs",
    "leaderboard_snapshots",
]


def get_engine(database_url: Optional[str] = None, echo: bool = False) -> Engine:
    """
    Get or create the SQLAlchemy engine.

    Uses connection pooling for server databases.

    Args:
        database_url: Optional override for database URL
        echo: If True, log all SQL statements (useful for debugging)

    Returns:
        SQLAlchemy Engine instance
    """
    global _engine

    if _engine is None or database_url is not None:
        url = database_url or get_database_url()
        if url.startswith("sqlite"):
            _engine = create_engine(
                url,
                echo=echo,
                connect_args={"check_same_thread": False},
            )
        else:
            _engine = create_engine(
                url,
                echo=echo,
                pool_size=5,  # Maximum number of connections in pool
                max_overflow=10,  # Additional connections beyond pool_size
                pool_timeout=30,  # Seconds to wait for available connection
                pool_recycle=1800,  # Recycle connections after 30 minutes
            )

    return _engine


def get_session_factory(engine: Optional[Engine] = None) -> sessionmaker:
    """
    Get the session factory.

    Args:
        engine: Optional engine instance (uses global if not provided)

    Returns:
        SQLAlchemy sessionmaker instance
    """
    global _SessionLocal

    if _SessionLocal is None or engine is not None:
        eng = engine or get_engine()
        _SessionLocal = sessionmaker(
            bind=eng,
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
        )

    return _SessionLocal


def get_session() -> Session:
    """
    Create a new database session.

    Note: Caller is responsible for closing the session.
    For automatic cleanup, use the session_scope() context manager.

    Returns:
        New SQLAlchemy Session instance
    """
    SessionLocal = get_session_factory()
    return SessionLocal()


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """
    Provide a transactional scope around a series of operations.

    Usage:
        with session_scope() as session:
            RatingsService(session).submit_rating(teacher_id, 4, submitter_id)
            # Commits automatically on success
            # Rolls back on exception

    Yields:
        SQLAlchemy Session instance
    """
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db(engine: Optional[Engine] = None) -> None:
    """
    Initialize the database schema.

    Creates all tables defined in models.py if they don't exist.

    Args:
        engine: Optional engine instance (uses global if not provided)
    """
    from .models import Base

    eng = engine or get_engine()
    Base.metadata.create_all(bind=eng)
    logger.info("Database schema initialized")


def check_connection(engine: Optional[Engine] = None) -> bool:
    """
    Check that the database answers a trivial query.

    Args:
        engine: Optional engine instance (uses global if not provided)

    Returns:
        True if connection successful, False otherwise
    """
    eng = engine or get_engine()
    try:
        with eng.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError as e:
        logger.error(f"Database connection failed: {e}")
        return False


def get_table_counts(engine: Optional[Engine] = None) -> dict:
    """
    Get row counts for all engine tables.

    Args:
        engine: Optional engine instance (uses global if not provided)

    Returns:
        Dictionary mapping table names to row counts
    """
    eng = engine or get_engine()
    counts = {}

    with eng.connect() as conn:
        for table in TABLES:
            result = conn.execute(text(f"SELECT COUNT(*) FROM {table}"))
            counts[table] = result.scalar()

    return counts


