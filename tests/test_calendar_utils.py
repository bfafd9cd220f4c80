"""
Tests for calendar helpers: day of year, week numbers and relative phrases.
"""

import pytest
from datetime import datetime

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from modules.calendar_utils import (
    calendar_phrase,
    day_of_year,
    subtract_days,
    subtract_hours,
    week_of_year,
)


NOW = datetime(2026, 10, 14, 15, 30)  # Wednesday


class TestDayOfYear:

    def test_first_of_february(self):
        assert day_of_year(datetime(2026, 2, 1)) == 32

    def test_leap_year_end(self):
        assert day_of_year(datetime(2024, 12, 31, 23, 0)) == 366


class TestWeekOfYear:
    """Sunday-first weeks; week 1 contains January 1."""

    def test_new_year_is_week_one(self):
        # 2026-01-01 is a Thursday
        assert week_of_year(datetime(2026, 1, 1)) == 1
        assert week_of_year(datetime(2026, 1, 3)) == 1

    def test_first_sunday_starts_week_two(self):
        assert week_of_year(datetime(2026, 1, 4)) == 2

    def test_week_number_mid_year(self):
        # Sunday 2026-10-11 through Saturday 2026-10-17
        assert week_of_year(datetime(2026, 10, 11)) == week_of_year(NOW)
        assert week_of_year(datetime(2026, 10, 10)) == week_of_year(NOW) - 1

    def test_december_days_sharing_week_with_new_year(self):
        # Sunday 2026-12-27 starts the week containing 2027-01-01
        assert week_of_year(datetime(2026, 12, 27)) == 1
        assert week_of_year(datetime(2026, 12, 31)) == 1
        assert week_of_year(datetime(2026, 12, 26)) == 52

    def test_year_starting_on_sunday(self):
        # 2023-01-01 is a Sunday
        assert week_of_year(datetime(2023, 1, 1)) == 1
        assert week_of_year(datetime(2023, 1, 7)) == 1
        assert week_of_year(datetime(2023, 1, 8)) == 2


class TestSubtraction:

    def test_subtract_days_keeps_wall_clock(self):
        assert subtract_days(NOW, 30) == datetime(2026, 9, 14, 15, 30)

    def test_subtract_hours(self):
        assert subtract_hours(NOW, 3) == datetime(2026, 10, 14, 12, 30)

    def test_subtract_hours_crosses_midnight(self):
        assert subtract_hours(datetime(2026, 10, 14, 1, 0), 2) == datetime(2026, 10, 13, 23, 0)


class TestCalendarPhrase:
    """Phrases relative to the start of today."""

    @pytest.mark.parametrize("moment,expected", [
        (datetime(2026, 10, 14, 9, 5), "Today at 9:05 AM"),
        (datetime(2026, 10, 14, 0, 5), "Today at 12:05 AM"),
        (datetime(2026, 10, 13, 15, 30), "Yesterday at 3:30 PM"),
        (datetime(2026, 10, 12, 15, 30), "Last Monday at 3:30 PM"),
        (datetime(2026, 10, 8, 12, 0), "Last Thursday at 12:00 PM"),
        (datetime(2026, 10, 7, 15, 30), "10/07/2026"),
        (datetime(2026, 10, 15, 8, 0), "Tomorrow at 8:00 AM"),
        (datetime(2026, 10, 17, 12, 0), "Saturday at 12:00 PM"),
        (datetime(2026, 10, 30, 12, 0), "10/30/2026"),
    ])
    def test_phrases(self, moment, expected):
        assert calendar_phrase(moment, NOW) == expected
