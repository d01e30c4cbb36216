"""
Tests for the ratings service: rating views and leaderboards.

Run: pytest tests/test_service.py -v
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from ratings_engine.config import Settings
from ratings_engine.database.models import Teacher
from ratings_engine.errors import NotFound, ValidationError
from ratings_engine.leaderboard.ranking import BOTTOM
from ratings_engine.leaderboard.service import ALL_TIME, LIVE, SNAPSHOT, WEEKLY, RatingsService

from conftest import (
    ALICE,
    BOB,
    CAROL,
    CURRENT_WEEK,
    LAST_WEEK,
    LAST_WEEK_NOW,
    NOW,
    TWO_WEEKS_AGO,
    UNKNOWN,
)


def ids(board):
    return [entry.teacher_id for entry in board.entries]


class TestRatingView:
    """Per-teacher weekly and all-time views"""

    def test_weekly_three_ratings_of_four(self, service, rate):
        """Three submitters at 4 stars: count 3, average 4.00"""
        rate(ALICE, [4, 4, 4])
        view = service.get_teacher_rating_view(ALICE, WEEKLY)
        assert view.count == 3
        assert view.average == Decimal("4.00")

    def test_weekly_two_ratings_hidden(self, service, rate):
        rate(ALICE, [4, 5])
        view = service.get_teacher_rating_view(ALICE, WEEKLY)
        assert view.count == 2
        assert view.average is None
        assert view.to_dict()["average"] is None

    def test_all_time_shown_from_first_rating(self, service, rate):
        rate(ALICE, [4, 5])
        view = service.get_teacher_rating_view(ALICE, ALL_TIME)
        assert view.count == 2
        assert view.average == Decimal("4.50")

    def test_weekly_edit_all_time_original(self, service, session):
        """5 then 2 in one week: weekly reflects 2, all-time still counts the 5"""
        service.submit_rating(ALICE, 5, "anon-1")
        service.submit_rating(ALICE, 2, "anon-1")
        session.commit()

        relaxed = RatingsService(session, clock=lambda: NOW, settings=Settings(min_weekly_ratings=1))
        assert relaxed.get_teacher_rating_view(ALICE, WEEKLY).average == Decimal("2.00")
        all_time = service.get_teacher_rating_view(ALICE, ALL_TIME)
        assert all_time.count == 1
        assert all_time.average == Decimal("5.00")

    def test_unknown_teacher(self, service):
        with pytest.raises(NotFound):
            service.get_teacher_rating_view(UNKNOWN, WEEKLY)

    def test_bad_mode(self, service):
        with pytest.raises(ValidationError):
            service.get_teacher_rating_view(ALICE, "monthly")

    def test_has_rated(self, service, rate):
        rate(ALICE, [4])
        assert service.has_rated(ALICE, "student-0")
        assert not service.has_rated(ALICE, "student-1")


class TestLiveLeaderboard:
    """Current week and all-time rankings"""

    def test_current_week_is_live(self, service, rate):
        rate(ALICE, [3, 3, 3])
        rate(BOB, [5, 5, 4])
        board = service.get_leaderboard(WEEKLY)
        assert board.source == LIVE
        assert board.week_start == CURRENT_WEEK
        assert board.week_end == CURRENT_WEEK + timedelta(days=6)
        assert ids(board) == [BOB, ALICE]

    def test_bottom_direction(self, service, rate):
        rate(ALICE, [3, 3, 3])
        rate(BOB, [5, 5, 4])
        rate(CAROL, [1])
        board = service.get_leaderboard(WEEKLY, direction=BOTTOM)
        assert ids(board) == [ALICE, BOB, CAROL]

    def test_tie_broken_by_count(self, service, rate):
        """Equal 4.50 averages: the bigger sample ranks first"""
        rate(ALICE, [5, 4] * 2)
        rate(BOB, [5, 4] * 3)
        board = service.get_leaderboard(WEEKLY)
        assert ids(board) == [BOB, ALICE]
        assert board.entries[0].average == board.entries[1].average == Decimal("4.50")

    def test_reflects_latest_edit(self, service, session, rate):
        """Live views are recomputed on each read"""
        rate(ALICE, [4, 4, 4])
        rate(BOB, [3, 3, 3])
        assert ids(service.get_leaderboard(WEEKLY))[0] == ALICE

        for i in range(3):
            service.submit_rating(BOB, 5, f"student-{i}")
        session.commit()
        assert ids(service.get_leaderboard(WEEKLY))[0] == BOB

    def test_all_time(self, service, rate):
        rate(ALICE, [2, 2], now=LAST_WEEK_NOW)
        rate(BOB, [4])
        board = service.get_leaderboard(ALL_TIME)
        assert board.source == LIVE
        assert board.week_start is None
        assert ids(board) == [BOB, ALICE]

    def test_limit(self, service, rate):
        rate(ALICE, [5, 5, 5])
        rate(BOB, [4, 4, 4])
        rate(CAROL, [3, 3, 3])
        assert ids(service.get_leaderboard(WEEKLY, limit=2)) == [ALICE, BOB]

    def test_inactive_teachers_hidden(self, service, session, rate):
        """Ratings on a since-deactivated teacher are not listed live"""
        rate(ALICE, [4, 4, 4])
        rate(CAROL, [5, 5, 5])
        session.get(Teacher, CAROL).is_active = False
        session.commit()

        assert ids(service.get_leaderboard(WEEKLY)) == [ALICE]
        assert ids(service.get_leaderboard(ALL_TIME)) == [ALICE]

    @pytest.mark.parametrize("limit", [0, -1, 101, True])
    def test_invalid_limit(self, service, limit):
        with pytest.raises(ValidationError):
            service.get_leaderboard(WEEKLY, limit=limit)

    def test_invalid_direction(self, service):
        with pytest.raises(ValidationError):
            service.get_leaderboard(WEEKLY, direction="up")

    def test_empty_week(self, service):
        assert service.get_leaderboard(WEEKLY).entries == []


class TestPastWeekLeaderboard:
    """Past weeks come from their snapshot"""

    def test_past_week_served_from_snapshot(self, service, session, rate):
        rate(ALICE, [5, 5, 5], now=LAST_WEEK_NOW)
        rate(BOB, [2, 2, 2], now=LAST_WEEK_NOW)
        service.write_snapshot()
        session.commit()

        board = service.get_leaderboard(WEEKLY, week_start=LAST_WEEK)
        assert board.source == SNAPSHOT
        assert ids(board) == [ALICE, BOB]
        assert [e.rank_position for e in board.entries] == [1, 2]

    def test_bottom_view_of_snapshot(self, service, session, rate):
        """Bottom order reuses the frozen values"""
        rate(ALICE, [5, 5, 5], now=LAST_WEEK_NOW)
        rate(BOB, [2, 2, 2], now=LAST_WEEK_NOW)
        rate(CAROL, [1], now=LAST_WEEK_NOW)
        service.write_snapshot(LAST_WEEK)
        session.commit()

        board = service.get_leaderboard(WEEKLY, week_start=LAST_WEEK, direction=BOTTOM)
        assert ids(board) == [BOB, ALICE, CAROL]

    def test_snapshot_unaffected_by_deactivation(self, service, session, rate):
        """Stored weeks list every teacher that was ranked"""
        rate(BOB, [4, 4, 4], now=LAST_WEEK_NOW)
        service.write_snapshot(LAST_WEEK)
        session.commit()

        session.get(Teacher, BOB).is_active = False
        session.commit()

        assert ids(service.get_leaderboard(WEEKLY, week_start=LAST_WEEK)) == [BOB]

    def test_week_closes_at_monday_midnight(self, service, session, rate):
        """From Monday 00:00 the week just ended is read from its snapshot"""
        monday = datetime(2025, 1, 20, tzinfo=timezone.utc)
        rate(ALICE, [4, 4, 4])
        service.write_snapshot(now=monday)
        session.commit()

        board = service.get_leaderboard(WEEKLY, week_start=CURRENT_WEEK, now=monday)
        assert board.source == SNAPSHOT
        assert ids(board) == [ALICE]
        assert service.get_leaderboard(WEEKLY, now=monday).source == LIVE

    def test_current_week_follows_configured_timezone(self, session, rate):
        """Sunday evening in New York is still the live week there"""
        service = RatingsService(
            session,
            clock=lambda: datetime(2025, 1, 20, 3, 0, tzinfo=timezone.utc),
            settings=Settings(timezone="America/New_York"),
        )
        rate(ALICE, [5, 5, 5])

        board = service.get_leaderboard(WEEKLY, week_start=CURRENT_WEEK)
        assert board.source == LIVE
        assert ids(board) == [ALICE]

    def test_unsnapshotted_past_week_not_found(self, service):
        with pytest.raises(NotFound):
            service.get_leaderboard(WEEKLY, week_start=TWO_WEEKS_AGO)

    def test_future_week_rejected(self, service):
        with pytest.raises(ValidationError):
            service.get_leaderboard(WEEKLY, week_start=CURRENT_WEEK + timedelta(days=7))

    def test_default_snapshot_target_is_previous_week(self, service, session, rate):
        rate(ALICE, [4, 4, 4], now=LAST_WEEK_NOW)
        rows = service.write_snapshot()
        assert rows[0].week_start == LAST_WEEK

    def test_recent_weeks(self, service):
        weeks = service.recent_weeks(2)
        assert [w.start for w in weeks] == [CURRENT_WEEK, LAST_WEEK]
