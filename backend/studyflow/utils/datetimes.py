"""
Date parsing and calendar-aware durations.

Pure functions, no I/O. ``calculate_duration`` subtracts each calendar field
independently and borrows from the next larger unit, so ages come out exact
(leap years and month lengths included) instead of as a 365-day approximation.
"""
from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Optional, Union

# Most common first.
_FORMATS = (
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%dT%H:%M:%SZ",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%dT%H:%M:%S%z",
    "%Y-%m-%d",
    "%m-%d-%Y",
    "%m-%d-%y",
    "%m/%d/%Y",
    "%m/%d/%y",
    "%B %d, %Y",
    "%B %d, %y",
)


def parse_datetime(value: Union[str, date, datetime, None]) -> Optional[datetime]:
    """Return a naive UTC datetime for any supported input, or None if unparseable."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return _naive_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    text = value.strip()
    if not text:
        return None
    for fmt in _FORMATS:
        try:
            return _naive_utc(datetime.strptime(text, fmt))
        except ValueError:
            continue
    return None


def _naive_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


@dataclass(frozen=True)
class Duration:
    years: int
    months: int
    days: int
    hours: int
    minutes: int
    seconds: int


def calculate_duration(start: datetime, now: Optional[datetime] = None) -> Duration:
    """
    Elapsed calendar time from ``start`` to ``now``.

    Fields are subtracted one by one; a negative field borrows from the next
    larger unit, smallest first. A negative day count borrows the length of
    the start month.
    """
    start = _naive_utc(start)
    now = _naive_utc(now) if now is not None else utcnow()

    years = now.year - start.year
    months = now.month - start.month
    days = now.day - start.day
    hours = now.hour - start.hour
    minutes = now.minute - start.minute
    seconds = now.second - start.second

    if seconds < 0:
        seconds += 60
        minutes -= 1
    if minutes < 0:
        minutes += 60
        hours -= 1
    if hours < 0:
        hours += 24
        days -= 1
    if days < 0:
        days += days_in_month(start.year, start.month)
        months -= 1
    if months < 0:
        months += 12
        years -= 1

    return Duration(years, months, days, hours, minutes, seconds)


def age_in_years(date_of_birth: Union[str, date, datetime, None], now: Optional[datetime] = None) -> Optional[int]:
    """Whole elapsed years since ``date_of_birth``; None if it cannot be parsed."""
    born = parse_datetime(date_of_birth)
    if born is None:
        return None
    return calculate_duration(born, now).years
