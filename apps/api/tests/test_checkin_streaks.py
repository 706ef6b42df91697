"""
Tests for the current check-in streak.

Pure function, no data source.
"""
from datetime import date, datetime, timedelta, timezone

from services.checkin_streaks import calculate_current_streak


TODAY = date(2024, 3, 13)
NOW = datetime(2024, 3, 13, 9, 0, tzinfo=timezone.utc)


def days_ago(*offsets):
    return [TODAY - timedelta(days=o) for o in offsets]


class TestCurrentStreak:

    def test_no_check_ins(self):
        assert calculate_current_streak([], NOW) == 0

    def test_today_only(self):
        assert calculate_current_streak(days_ago(0), NOW) == 1

    def test_five_consecutive_days_ending_today(self):
        """Today plus the prior 4 days, nothing before that."""
        assert calculate_current_streak(days_ago(0, 1, 2, 3, 4), NOW) == 5

    def test_gap_stops_the_count(self):
        assert calculate_current_streak(days_ago(0, 1, 2, 4, 5, 6), NOW) == 3

    def test_yesterday_but_not_today_is_zero(self):
        """A long run ending yesterday does not count until today is logged."""
        assert calculate_current_streak(days_ago(1, 2, 3, 4, 5, 6, 7), NOW) == 0

    def test_time_of_day_is_ignored(self):
        late_tonight = datetime(2024, 3, 13, 23, 59, tzinfo=timezone.utc)
        early_yesterday = datetime(2024, 3, 12, 0, 1, tzinfo=timezone.utc)
        assert calculate_current_streak([late_tonight, early_yesterday], NOW) == 2

    def test_accepts_date_as_reference(self):
        assert calculate_current_streak(days_ago(0, 1), TODAY) == 2

    def test_streak_never_exceeds_number_of_dates(self):
        dates = days_ago(0, 1, 2, 3, 10, 11)
        assert calculate_current_streak(dates, NOW) <= len(dates)

    def test_future_newest_date_is_zero(self):
        assert calculate_current_streak([TODAY + timedelta(days=1), TODAY], NOW) == 0
