# tests/test_dates.py
from datetime import datetime, timezone

from mediavault.activity import previous_range
from mediavault.dates import (
    DAY_ZERO, DateRange, fill_day_gaps, fill_month_gaps, interval, json_date, localize, parse_date,
    parse_rfc1123, start_end,
)

from .conftest import day_end

NOW = datetime(2024, 12, 4, 15, 30)  # a Wednesday


def test_named_intervals():
    assert interval("today", NOW) == DateRange(datetime(2024, 12, 4), day_end(2024, 12, 4))
    assert interval("week", NOW).start == datetime(2024, 12, 2)
    assert interval("week", NOW).end == day_end(2024, 12, 8)
    assert interval("lastmonth", NOW) == DateRange(datetime(2024, 11, 1), day_end(2024, 11, 30))
    assert interval("year", NOW).is_year()
    assert interval("recent", NOW).start == datetime(2024, 11, 4)


def test_date_intervals():
    assert interval("2023", NOW) == DateRange(datetime(2023, 1, 1), day_end(2023, 12, 31))
    assert interval("2024-02", NOW).end == day_end(2024, 2, 29)
    assert interval("2024-02-10", NOW).is_day()
    assert interval("garbage", NOW) == DateRange(DAY_ZERO, DAY_ZERO)


def test_start_end_defaults_to_past_year():
    dr = start_end(now=NOW)
    assert dr.start == datetime(2023, 12, 5)
    assert dr.end == day_end(2024, 12, 4)
    dr = start_end("2024-01-01", "2024-01-31", now=NOW)
    assert dr.is_month()


def test_parse_date():
    assert parse_date("") is None
    assert parse_date("1969") == datetime(1969, 1, 1)
    assert parse_date("1969-09") == datetime(1969, 9, 1)
    assert parse_date("not a date") == DAY_ZERO


def test_parse_rfc1123():
    assert parse_rfc1123("Wed, 04 Dec 2024 10:00:00 GMT") == datetime(2024, 12, 4, 10, 0)
    assert parse_rfc1123("Wed, 04 Dec 2024 05:00:00 -0500") == datetime(2024, 12, 4, 10, 0)


def test_localize_and_json_date():
    assert localize(datetime(2024, 12, 4, 10, tzinfo=timezone.utc)) == datetime(2024, 12, 4, 10)
    assert json_date(None) == ""
    assert json_date(datetime(2024, 12, 4, 10)) == "2024-12-04T10:00:00+00:00"


def test_fill_gaps():
    days = fill_day_gaps(datetime(2024, 12, 1), day_end(2024, 12, 3),
                         [(datetime(2024, 12, 2, 8), 1), (datetime(2024, 12, 2, 9), 1)])
    assert [n for _, n in days] == [0, 2, 0]
    months = fill_month_gaps(datetime(2024, 11, 15), datetime(2025, 1, 2), [(datetime(2024, 12, 24), 3)])
    assert [(d.month, n) for d, n in months] == [(11, 0), (12, 3), (1, 0)]


def test_previous_range():
    assert previous_range(interval("year", NOW)).start == datetime(2023, 1, 1)
    assert previous_range(interval("month", NOW)) == interval("lastmonth", NOW)
    assert previous_range(interval("week", NOW)) == interval("lastweek", NOW)


def test_day_end_covers_the_last_second():
    dr = interval("today", NOW)
    assert dr.end > datetime(2024, 12, 4, 23, 59, 59, 500000)
    assert dr.day_count() == 1
    assert interval("week", NOW).day_count() == 7


def test_previous_range_before_the_first_year_is_empty():
    assert previous_range(interval("all", NOW)) == DateRange(DAY_ZERO, DAY_ZERO)
    assert previous_range(DateRange(DAY_ZERO, day_end(1, 1, 31))) == DateRange(DAY_ZERO, DAY_ZERO)
