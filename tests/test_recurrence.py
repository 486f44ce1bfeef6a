"""
Unit Tests for the Recurrence Calculator

Covers every frequency, the day-of-month cap and weekly schedules that cross
daylight-saving transitions.

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

import pytest
from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from hypothesis import given, settings, strategies as st

from lotwise.modules.dca.models import Frequency
from lotwise.modules.dca.recurrence import (
    add_months,
    align_to_schedule,
    calendar_weekday,
    earliest_on_or_after,
    iter_execution_dates,
    localize,
    next_date,
)

NEW_YORK = ZoneInfo("America/New_York")
LONDON = ZoneInfo("Europe/London")

MONDAY, WEDNESDAY, FRIDAY = 2, 4, 6


class TestNextDate:

    def test_monthly_scenario(self):
        current = datetime(2024, 1, 15)
        results = []
        for _ in range(3):
            current = next_date(current, Frequency.MONTHLY)
            results.append(current)
        assert results == [datetime(2024, 2, 15), datetime(2024, 3, 15), datetime(2024, 4, 15)]

    def test_daily_crosses_leap_day(self):
        assert next_date(date(2024, 2, 28), Frequency.DAILY) == date(2024, 2, 29)

    def test_weekly_without_preference(self):
        assert next_date(date(2024, 1, 3), Frequency.WEEKLY) == date(2024, 1, 10)

    def test_weekly_shifts_forward_to_preferred_day(self):
        # 2024-01-03 is a Wednesday; +7 days is Wednesday 01-10, next Monday is 01-15
        assert next_date(date(2024, 1, 3), Frequency.WEEKLY, preferred_day_of_week=MONDAY) == date(2024, 1, 15)

    def test_weekly_same_weekday_is_not_shifted(self):
        assert next_date(date(2024, 1, 3), Frequency.WEEKLY, preferred_day_of_week=WEDNESDAY) == date(2024, 1, 10)

    def test_biweekly_honours_preferred_day(self):
        assert next_date(date(2024, 1, 3), Frequency.BIWEEKLY) == date(2024, 1, 17)
        assert next_date(date(2024, 1, 3), Frequency.BIWEEKLY, preferred_day_of_week=FRIDAY) == date(2024, 1, 19)

    def test_monthly_clamps_to_short_month(self):
        assert next_date(date(2024, 1, 31), Frequency.MONTHLY) == date(2024, 2, 29)
        assert next_date(date(2023, 1, 31), Frequency.MONTHLY) == date(2023, 2, 28)

    @pytest.mark.parametrize("anchor", [date(2024, 1, 15), date(2024, 3, 31), date(2024, 12, 5)])
    def test_monthly_preferred_day_capped_at_28(self, anchor):
        result = next_date(anchor, Frequency.MONTHLY, preferred_day_of_month=31)
        assert result.day == 28
        assert result == add_months(anchor, 1).replace(day=28)

    def test_monthly_preferred_day_below_cap(self):
        assert next_date(date(2024, 1, 20), Frequency.MONTHLY, preferred_day_of_month=5) == date(2024, 2, 5)

    def test_quarterly(self):
        assert next_date(date(2024, 11, 30), Frequency.QUARTERLY) == date(2025, 2, 28)
        assert next_date(date(2024, 1, 15), Frequency.QUARTERLY, preferred_day_of_month=3) == date(2024, 4, 15)

    def test_input_type_preserved(self):
        assert type(next_date(date(2024, 1, 1), Frequency.DAILY)) is date
        assert type(next_date(datetime(2024, 1, 1), Frequency.DAILY)) is datetime

    def test_weekday_convention(self):
        assert calendar_weekday(date(2024, 1, 7)) == 1   # Sunday
        assert calendar_weekday(date(2024, 1, 8)) == 2   # Monday
        assert calendar_weekday(date(2024, 1, 13)) == 7  # Saturday


class TestDaylightSaving:

    def test_weekly_across_spring_forward(self):
        start = datetime(2024, 3, 5, 10, 0, tzinfo=NEW_YORK)
        result = next_date(start, Frequency.WEEKLY)

        assert result.date() == date(2024, 3, 12)
        assert (result.hour, result.minute) == (10, 0)
        # The wall clock advanced 7 days; only 6 days 23 hours of real time passed
        elapsed = result.astimezone(timezone.utc) - start.astimezone(timezone.utc)
        assert elapsed == timedelta(days=6, hours=23)

    def test_weekly_across_fall_back(self):
        start = datetime(2024, 10, 29, 9, 0, tzinfo=NEW_YORK)
        result = next_date(start, Frequency.WEEKLY)

        assert result.date() == date(2024, 11, 5)
        assert result.hour == 9
        elapsed = result.astimezone(timezone.utc) - start.astimezone(timezone.utc)
        assert elapsed == timedelta(days=7, hours=1)

    def test_daily_into_nonexistent_hour_keeps_the_day(self):
        # 02:30 does not exist in New York on 2024-03-10
        result = next_date(datetime(2024, 3, 9, 2, 30, tzinfo=NEW_YORK), Frequency.DAILY)
        assert result.date() == date(2024, 3, 10)
        assert result.hour == 3

    def test_tz_argument_converts_anchor(self):
        anchor = datetime(2024, 6, 10, 23, 30, tzinfo=timezone.utc)
        result = next_date(anchor, Frequency.WEEKLY, tz="Europe/London")
        # 23:30 UTC on 06-10 is 00:30 BST on 06-11
        assert result.tzinfo == LONDON
        assert result.date() == date(2024, 6, 18)
        assert (result.hour, result.minute) == (0, 30)

    def test_localize_naive(self):
        moment = localize(datetime(2024, 7, 1, 12, 0), "America/New_York")
        assert moment.utcoffset() == timedelta(hours=-4)
        assert localize(date(2024, 1, 1), "UTC") == datetime(2024, 1, 1, tzinfo=ZoneInfo("UTC"))


@given(offset=st.integers(min_value=0, max_value=730), hour=st.integers(min_value=0, max_value=23))
@settings(max_examples=200, deadline=None)
def test_weekly_always_advances_seven_calendar_days(offset, hour):
    start = datetime(2024, 1, 1, hour, 0, tzinfo=NEW_YORK) + timedelta(days=offset)
    result = next_date(start, Frequency.WEEKLY)
    assert result.date() - start.date() == timedelta(days=7)


@given(
    day=st.dates(min_value=date(2000, 1, 1), max_value=date(2040, 12, 31)),
    preferred=st.integers(min_value=28, max_value=31),
)
def test_monthly_preference_never_exceeds_cap(day, preferred):
    assert next_date(day, Frequency.MONTHLY, preferred_day_of_month=preferred).day == 28


@given(
    day=st.dates(min_value=date(2000, 1, 1), max_value=date(2040, 12, 31)),
    preferred=st.integers(min_value=1, max_value=7),
    frequency=st.sampled_from([Frequency.WEEKLY, Frequency.BIWEEKLY]),
)
def test_preferred_weekday_is_forward_and_exact(day, preferred, frequency):
    step = 7 if frequency == Frequency.WEEKLY else 14
    result = next_date(day, frequency, preferred_day_of_week=preferred)
    assert calendar_weekday(result) == preferred
    assert timedelta(days=step) <= result - day < timedelta(days=step + 7)


class TestAlignment:

    def test_align_monthly_rolls_to_next_month(self):
        assert align_to_schedule(date(2024, 1, 20), Frequency.MONTHLY, preferred_day_of_month=10) == date(2024, 2, 10)
        assert align_to_schedule(date(2024, 1, 5), Frequency.MONTHLY, preferred_day_of_month=10) == date(2024, 1, 10)

    def test_align_weekly(self):
        assert align_to_schedule(date(2024, 1, 3), Frequency.WEEKLY, preferred_day_of_week=MONDAY) == date(2024, 1, 8)

    def test_align_without_preference_is_identity(self):
        assert align_to_schedule(date(2024, 1, 3), Frequency.QUARTERLY) == date(2024, 1, 3)

    def test_earliest_on_or_after_stays_on_cadence(self):
        assert earliest_on_or_after(date(2024, 1, 15), date(2024, 3, 20), Frequency.MONTHLY) == date(2024, 4, 15)
        assert earliest_on_or_after(
            date(2024, 1, 15), date(2024, 3, 20), Frequency.MONTHLY, preferred_day_of_month=10
        ) == date(2024, 4, 10)
        assert earliest_on_or_after(date(2024, 1, 15), date(2024, 1, 15), Frequency.MONTHLY) == date(2024, 1, 15)

    def test_iter_execution_dates_inclusive(self):
        dates = list(iter_execution_dates(date(2024, 1, 15), date(2024, 6, 15), Frequency.MONTHLY))
        assert dates[0] == date(2024, 1, 15)
        assert dates[-1] == date(2024, 6, 15)
        assert len(dates) == 6

    def test_iter_execution_dates_limit_and_empty(self):
        assert len(list(iter_execution_dates(date(2024, 1, 1), date(2024, 12, 31), Frequency.DAILY, limit=3))) == 3
        assert list(iter_execution_dates(date(2024, 2, 1), date(2024, 1, 1), Frequency.DAILY)) == []
