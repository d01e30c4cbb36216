"""
Tests for the weekly snapshot command.

Run: pytest tests/test_snapshot_week.py -v
"""

import pytest
from sqlalchemy import create_engine

from ratings_engine.database import connection
from ratings_engine.database.models import WeekSnapshotRun
from ratings_engine.scripts import snapshot_week

from conftest import ALICE, BOB, LAST_WEEK, LAST_WEEK_NOW


@pytest.fixture
def bound_sessions(session_factory, monkeypatch):
    """Point session_scope() at the test database."""
    monkeypatch.setattr(connection, "_SessionLocal", session_factory)
    return session_factory


@pytest.fixture
def last_week(service, session):
    for i in range(3):
        service.submit_rating(ALICE, 4, f"s{i}", now=LAST_WEEK_NOW)
    service.submit_rating(BOB, 2, "s0", now=LAST_WEEK_NOW)
    session.commit()


class TestSnapshotCommand:
    """python -m ratings_engine.scripts.snapshot_week"""

    def test_writes_snapshot(self, bound_sessions, last_week, capsys):
        assert snapshot_week.main(["--week-start", LAST_WEEK.isoformat()]) == 0

        out = capsys.readouterr().out
        assert "2025-01-06 - 2025-01-12: 2 teachers" in out
        assert ALICE in out

        with bound_sessions() as s:
            assert s.get(WeekSnapshotRun, LAST_WEEK).teacher_count == 2

    def test_second_run_fails(self, bound_sessions, last_week):
        assert snapshot_week.main(["--week-start", "2025-01-08"]) == 0
        assert snapshot_week.main(["--week-start", "2025-01-08"]) == 1

    def test_empty_week(self, bound_sessions, capsys):
        assert snapshot_week.main(["--week-start", "2024-12-30"]) == 0
        assert "no ratings" in capsys.readouterr().out

    def test_bad_date(self, bound_sessions):
        assert snapshot_week.main(["--week-start", "someday"]) == 2

    def test_failed_run_writes_nothing(self, bound_sessions):
        """A rejected run leaves no partial marker behind"""
        snapshot_week.main(["--week-start", "2100-01-04"])
        with bound_sessions() as s:
            assert s.query(WeekSnapshotRun).count() == 0


class TestCheckDatabase:
    """--check-db reports reachability and row counts"""

    def test_reachable(self, engine, last_week, monkeypatch, capsys):
        monkeypatch.setattr(connection, "_engine", engine)
        assert snapshot_week.main(["--check-db"]) == 0

        out = capsys.readouterr().out
        assert "Database OK" in out
        assert "weekly_ratings" in out
        assert "leaderboard_snapshots" in out

    def test_counts_rows(self, engine, last_week):
        counts = connection.get_table_counts(engine)
        assert counts["teachers"] == 4
        assert counts["ratings"] == 4
        assert counts["leaderboard_snapshot_runs"] == 0

    def test_unreachable(self, tmp_path, monkeypatch, capsys):
        unreachable = create_engine(f"sqlite:///{tmp_path / 'missing' / 'ratings.db'}")
        monkeypatch.setattr(connection, "_engine", unreachable)
        assert snapshot_week.main(["--check-db"]) == 3
        assert "unreachable" in capsys.readouterr().out

    def test_missing_schema(self, tmp_path, monkeypatch):
        """A reachable but empty database is reported, not crashed on"""
        empty = create_engine(f"sqlite:///{tmp_path / 'empty.db'}")
        monkeypatch.setattr(connection, "_engine", empty)
        assert snapshot_week.main(["--check-db"]) == 3

    def test_check_after_init(self, tmp_path, monkeypatch):
        """--init-db runs first, so the check then finds every table"""
        fresh = create_engine(f"sqlite:///{tmp_path / 'fresh.db'}")
        monkeypatch.setattr(connection, "_engine", fresh)
        assert snapshot_week.main(["--init-db", "--check-db"]) == 0
