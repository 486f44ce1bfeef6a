"""
Recurrence Calculator

Computes execution dates for recurring schedules. All arithmetic is done on
the wall clock of the moment's own timezone, so a weekly schedule that
crosses a daylight-saving transition still advances exactly 7 calendar days
and keeps its local time of day.

Input types are preserved: a date yields a date, a naive datetime a naive
datetime, and an aware datetime an aware datetime in the same zone (or in the
zone passed as tz).

Weekday convention: 1 = Sunday ... 7 = Saturday.

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

import calendar
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Iterator, Optional, TypeVar, Union
from zoneinfo import ZoneInfo

from lotwise.config import DEFAULT_TIMEZONE, MAX_PREFERRED_DAY_OF_MONTH
from lotwise.modules.dca.models import Frequency

Moment = TypeVar('Moment', date, datetime)


def resolve_timezone(tz: Union[str, tzinfo, None]) -> tzinfo:
    """ZoneInfo for a name, the given tzinfo, or the configured default."""
    if tz is None:
        return ZoneInfo(DEFAULT_TIMEZONE)
    if isinstance(tz, str):
        return ZoneInfo(tz)
    return tz


def localize(moment: Union[date, datetime], tz: Union[str, tzinfo, None] = None) -> datetime:
    """
    Attach a timezone to a date or naive datetime (wall clock unchanged).

    Aware datetimes are converted to tz when one is given.
    """
    zone = resolve_timezone(tz)
    if not isinstance(moment, datetime):
        return datetime(moment.year, moment.month, moment.day, tzinfo=zone)
    if moment.tzinfo is None:
        return _normalize(moment.replace(tzinfo=zone))
    if tz is not None:
        return moment.astimezone(zone)
    return moment


def _normalize(moment: Moment) -> Moment:
    """Move a wall time that falls into a DST gap onto a real instant."""
    if not isinstance(moment, datetime) or moment.tzinfo is None:
        return moment
    return moment.astimezone(timezone.utc).astimezone(moment.tzinfo)


def calendar_weekday(moment: Union[date, datetime]) -> int:
    """Weekday as 1 = Sunday ... 7 = Saturday."""
    return (moment.weekday() + 1) % 7 + 1


def add_days(moment: Moment, days: int) -> Moment:
    return _normalize(moment + timedelta(days=days))


def add_months(moment: Moment, months: int) -> Moment:
    """Add calendar months, clamping to the last day of shorter months."""
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return _normalize(moment.replace(year=year, month=month, day=day))


def _shift_to_weekday(moment: Moment, preferred_day_of_week: int) -> Moment:
    """Shift forward (0-6 days) onto the preferred weekday."""
    adjustment = (preferred_day_of_week - calendar_weekday(moment) + 7) % 7
    return add_days(moment, adjustment)


def _capped_day(preferred_day_of_month: int, cap: int) -> int:
    return min(preferred_day_of_month, cap)


def next_date(
    from_: Moment,
    frequency: Frequency,
    preferred_day_of_week: Optional[int] = None,
    preferred_day_of_month: Optional[int] = None,
    tz: Union[str, tzinfo, None] = None,
    max_day_of_month: int = MAX_PREFERRED_DAY_OF_MONTH
) -> Moment:
    """
    Next execution date after from_.

    - daily: +1 day
    - weekly: +7 days, then forward onto preferred_day_of_week if set
    - biweekly: +14 days, then forward onto preferred_day_of_week if set
    - monthly: +1 calendar month, then day set to min(preferred_day_of_month, 28)
    - quarterly: +3 calendar months, no day adjustment

    Args:
        from_: Anchor date
        frequency: Schedule frequency
        preferred_day_of_week: 1 (Sunday) to 7 (Saturday)
        preferred_day_of_month: 1 to 31, capped at max_day_of_month
        tz: Evaluate an aware anchor in this timezone
        max_day_of_month: Cap for preferred_day_of_month

    Returns:
        Next execution date, same type as from_
    """
    if tz is not None and isinstance(from_, datetime) and from_.tzinfo is not None:
        from_ = from_.astimezone(resolve_timezone(tz))

    if frequency == Frequency.DAILY:
        return add_days(from_, 1)

    if frequency in (Frequency.WEEKLY, Frequency.BIWEEKLY):
        step = 7 if frequency == Frequency.WEEKLY else 14
        candidate = add_days(from_, step)
        if preferred_day_of_week is not None:
            candidate = _shift_to_weekday(candidate, preferred_day_of_week)
        return candidate

    if frequency == Frequency.MONTHLY:
        candidate = add_months(from_, 1)
        if preferred_day_of_month is not None:
            candidate = _normalize(candidate.replace(
                day=_capped_day(preferred_day_of_month, max_day_of_month)
            ))
        return candidate

    if frequency == Frequency.QUARTERLY:
        return add_months(from_, 3)

    raise ValueError(f"Unsupported frequency: {frequency}")


def align_to_schedule(
    moment: Moment,
    frequency: Frequency,
    preferred_day_of_week: Optional[int] = None,
    preferred_day_of_month: Optional[int] = None,
    max_day_of_month: int = MAX_PREFERRED_DAY_OF_MONTH
) -> Moment:
    """
    Earliest date on or after moment that satisfies the day preference.

    Frequencies without a day preference return moment unchanged.
    """
    if frequency in (Frequency.WEEKLY, Frequency.BIWEEKLY) and preferred_day_of_week is not None:
        return _shift_to_weekday(moment, preferred_day_of_week)

    if frequency == Frequency.MONTHLY and preferred_day_of_month is not None:
        day = _capped_day(preferred_day_of_month, max_day_of_month)
        if moment.day > day:
            moment = add_months(moment, 1)
        return _normalize(moment.replace(day=day))

    return moment


def earliest_on_or_after(
    start: Moment,
    anchor: Moment,
    frequency: Frequency,
    preferred_day_of_week: Optional[int] = None,
    preferred_day_of_month: Optional[int] = None,
    max_day_of_month: int = MAX_PREFERRED_DAY_OF_MONTH
) -> Moment:
    """
    First execution date of a schedule starting at start that is >= anchor.

    Walks the recurrence from the aligned start date, so the result is always
    on the schedule's own cadence.
    """
    candidate = align_to_schedule(
        start, frequency, preferred_day_of_week, preferred_day_of_month, max_day_of_month
    )
    while candidate < anchor:
        candidate = next_date(
            candidate, frequency, preferred_day_of_week, preferred_day_of_month,
            max_day_of_month=max_day_of_month
        )
    return candidate


def iter_execution_dates(
    start: Moment,
    end: Moment,
    frequency: Frequency,
    preferred_day_of_week: Optional[int] = None,
    preferred_day_of_month: Optional[int] = None,
    limit: Optional[int] = None,
    max_day_of_month: int = MAX_PREFERRED_DAY_OF_MONTH
) -> Iterator[Moment]:
    """Execution dates from start to end inclusive."""
    current = align_to_schedule(
        start, frequency, preferred_day_of_week, preferred_day_of_month, max_day_of_month
    )
    count = 0
    while current <= end:
        if limit is not None and count >= limit:
            return
        yield current
        count += 1
        current = next_date(
            current, frequency, preferred_day_of_week, preferred_day_of_month,
            max_day_of_month=max_day_of_month
        )
