"""
Date helpers for the calendar view and memory timestamps.
"""

import calendar
from datetime import date, datetime, time, timedelta
from typing import Iterable, List, Optional, Union

CALENDAR_CELLS = 42  # 6 rows of 7 days

DateLike = Union[date, datetime]


def _as_date(value: DateLike) -> date:
    return value.date() if isinstance(value, datetime) else value


# PUBLIC_INTERFACE
def get_calendar_days(day: DateLike) -> List[date]:
    """
    Return the 42 dates of a Sunday-first month grid for the month of ``day``.

    The grid opens with the trailing days of the previous month needed to
    reach the Sunday before the 1st, and is padded at the end with days
    of the following month.
    """
    first = _as_date(day).replace(day=1)
    leading = (first.weekday() + 1) % 7  # Monday=0 -> Sunday=0
    grid_start = first - timedelta(days=leading)
    return [grid_start + timedelta(days=i) for i in range(CALENDAR_CELLS)]


# PUBLIC_INTERFACE
def has_memory_on_day(memory_dates: Iterable[DateLike], day: DateLike) -> bool:
    """True if any of ``memory_dates`` falls on the same calendar day as ``day``."""
    target = _as_date(day)
    return any(_as_date(d) == target for d in memory_dates)


# PUBLIC_INTERFACE
def get_relative_time_string(value: DateLike, now: Optional[datetime] = None) -> str:
    """
    Human-readable relative date.

    "Today", "Yesterday", the weekday name for anything after midnight
    seven days ago, "Month D" within the current month and "Month D, YYYY"
    otherwise.
    """
    now = now or datetime.now()
    today = now.date()
    when = value if isinstance(value, datetime) else datetime.combine(value, time.min)
    day = when.date()

    if day == today:
        return "Today"
    if day == today - timedelta(days=1):
        return "Yesterday"
    if when > datetime.combine(today - timedelta(days=7), time.min):
        return calendar.day_name[day.weekday()]
    if (day.year, day.month) == (today.year, today.month):
        return f"{calendar.month_name[day.month]} {day.day}"
    return f"{calendar.month_name[day.month]} {day.day}, {day.year}"
