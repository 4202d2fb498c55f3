"""Unit tests for date parsing, calendar durations and age.

No database required; all functions are pure.
"""
from datetime import date, datetime, timedelta, timezone

from studyflow.utils.datetimes import (
    Duration,
    age_in_years,
    calculate_duration,
    days_in_month,
    parse_datetime,
)

NOW = datetime(2026, 6, 15, 12, 0, 0)


# ── parse_datetime ────────────────────────────────────────────────────────────

def test_parse_iso_date():
    assert parse_datetime("2001-02-03") == datetime(2001, 2, 3)


def test_parse_us_formats():
    assert parse_datetime("02/03/2001") == datetime(2001, 2, 3)
    assert parse_datetime("02-03-2001") == datetime(2001, 2, 3)
    assert parse_datetime("February 03, 2001") == datetime(2001, 2, 3)


def test_parse_offset_is_normalised_to_utc():
    assert parse_datetime("2001-02-03T10:00:00+0200") == datetime(2001, 2, 3, 8, 0, 0)


def test_parse_date_and_aware_datetime_objects():
    assert parse_datetime(date(2001, 2, 3)) == datetime(2001, 2, 3)
    aware = datetime(2001, 2, 3, 5, 0, tzinfo=timezone(timedelta(hours=-3)))
    assert parse_datetime(aware) == datetime(2001, 2, 3, 8, 0)


def test_parse_garbage_returns_none():
    assert parse_datetime("not a date") is None
    assert parse_datetime("") is None
    assert parse_datetime(None) is None


# ── calculate_duration ────────────────────────────────────────────────────────

def test_days_in_month_handles_leap_years():
    assert days_in_month(2024, 2) == 29
    assert days_in_month(2023, 2) == 28
    assert days_in_month(2023, 12) == 31


def test_duration_exact_fields():
    assert calculate_duration(datetime(2020, 1, 1), datetime(2021, 3, 4, 5, 6, 7)) == Duration(1, 2, 3, 5, 6, 7)


def test_duration_borrows_through_every_unit():
    """Negative hours borrow a day; negative days borrow the start month's length (January: 31)."""
    d = calculate_duration(datetime(2020, 1, 31, 10, 0, 0), datetime(2020, 3, 1, 9, 0, 0))
    assert d == Duration(0, 1, 0, 23, 0, 0)


def test_duration_borrows_seconds_and_minutes():
    d = calculate_duration(datetime(2020, 5, 5, 10, 30, 45), datetime(2020, 5, 5, 11, 10, 15))
    assert d == Duration(0, 0, 0, 0, 39, 30)


def test_duration_negative_month_borrows_a_year():
    d = calculate_duration(datetime(2019, 11, 10), datetime(2020, 2, 10))
    assert (d.years, d.months, d.days) == (0, 3, 0)


# ── age_in_years ──────────────────────────────────────────────────────────────

def test_age_one_day_past_birthday():
    assert age_in_years("2008-06-14", NOW) == 18


def test_age_one_day_before_birthday():
    assert age_in_years("2008-06-16", NOW) == 17


def test_age_on_birthday():
    assert age_in_years("2008-06-15", NOW) == 18


def test_leap_day_birthday_not_yet_reached_on_feb_28():
    assert age_in_years("2004-02-29", datetime(2022, 2, 28, 12, 0)) == 17
    assert age_in_years("2004-02-29", datetime(2022, 3, 1, 12, 0)) == 18


def test_age_unparseable_is_none():
    assert age_in_years("someday", NOW) is None
    assert age_in_years(None, NOW) is None
