# mediavault/dates.py
"""Calendar helpers for activity windows and catalogue dates.

Activity dates are stored as naive wall-clock times in the server time zone
(settings.TIME_ZONE); everything here works on naive datetimes.
"""
from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from email.utils import parsedate_to_datetime
from typing import Dict, Iterable, List, Optional, Tuple
from zoneinfo import ZoneInfo

from .config import settings

DAY_ZERO = datetime(1, 1, 1)


def server_zone() -> ZoneInfo:
    return ZoneInfo(settings.TIME_ZONE or "UTC")


def local_now() -> datetime:
    return datetime.now(server_zone()).replace(tzinfo=None)


def localize(dt: datetime) -> datetime:
    """Convert to server wall-clock time; naive input is taken as UTC."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(server_zone()).replace(tzinfo=None)


def parse_date(value: str) -> Optional[datetime]:
    """Accepts 'Y-m-d', 'Y-m' or 'Y'. Empty input yields None, junk yields DAY_ZERO."""
    if not value:
        return None
    for fmt in ("%Y-%m-%d", "%Y-%m", "%Y"):
        try:
            return datetime.strptime(value.strip(), fmt)
        except ValueError:
            continue
    return DAY_ZERO


def parse_rfc1123(value: str) -> Optional[datetime]:
    if not value:
        return None
    try:
        dt = parsedate_to_datetime(value.strip())
    except (TypeError, ValueError):
        return DAY_ZERO
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def parse_json_date(value: str) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def is_zero(dt: Optional[datetime]) -> bool:
    return dt is None or dt == DAY_ZERO


def ymd(dt: datetime) -> str:
    return f"{dt.year:04d}-{dt.month:02d}-{dt.day:02d}"


def json_date(dt: Optional[datetime]) -> str:
    """RFC 3339 form used in playlist documents; empty for missing dates."""
    if is_zero(dt):
        return ""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.isoformat()


# -------- boundaries --------
def start_of_day(t: datetime) -> datetime:
    return datetime(t.year, t.month, t.day)


def end_of_day(t: datetime) -> datetime:
    """Last instant of the day; ranges are inclusive of their end."""
    return datetime(t.year, t.month, t.day, 23, 59, 59, 999999)


def start_of_week(t: datetime) -> datetime:
    return start_of_day(t - timedelta(days=t.weekday()))


def end_of_week(t: datetime) -> datetime:
    return end_of_day(t + timedelta(days=6 - t.weekday()))


def start_of_month(t: datetime) -> datetime:
    return datetime(t.year, t.month, 1)


def end_of_month(t: datetime) -> datetime:
    return end_of_day(datetime(t.year, t.month, calendar.monthrange(t.year, t.month)[1]))


def start_of_year(t: datetime) -> datetime:
    return datetime(t.year, 1, 1)


def end_of_year(t: datetime) -> datetime:
    return end_of_day(datetime(t.year, 12, 31))


def next_month(t: datetime) -> datetime:
    if t.month == 12:
        return datetime(t.year + 1, 1, 1)
    return datetime(t.year, t.month + 1, 1)


def previous_month(t: datetime) -> datetime:
    if t.month == 1:
        return datetime(t.year - 1, 12, 1)
    return datetime(t.year, t.month - 1, 1)


@dataclass
class DateRange:
    start: datetime
    end: datetime

    def day_count(self) -> int:
        return (self.end.date() - self.start.date()).days + 1

    def month_count(self) -> int:
        count = 0
        i, end = start_of_month(self.start), end_of_month(self.end)
        while i <= end:
            count += 1
            i = next_month(i)
        return count

    def is_day(self) -> bool:
        return self.start.date() == self.end.date()

    def is_month(self) -> bool:
        return (self.start.day == 1 and self.start.year == self.end.year
                and self.start.month == self.end.month
                and end_of_month(self.start).day == self.end.day)

    def is_year(self) -> bool:
        return (self.start.year == self.end.year and (self.start.month, self.start.day) == (1, 1)
                and (self.end.month, self.end.day) == (12, 31))

def interval(name: str, now: Optional[datetime] = None) -> DateRange:
    """Named ranges used by activity views; anything else is parsed as a date."""
    t = now or local_now()
    if name == "recent":
        return DateRange(start_of_day(t - timedelta(days=30)), end_of_day(t))
    if name in ("today", "day"):
        return DateRange(start_of_day(t), end_of_day(t))
    if name == "yesterday":
        y = t - timedelta(days=1)
        return DateRange(start_of_day(y), end_of_day(y))
    if name in ("week", "thisweek"):
        return DateRange(start_of_week(t), end_of_week(t))
    if name in ("month", "thismonth"):
        return DateRange(start_of_month(t), end_of_month(t))
    if name in ("year", "thisyear"):
        return DateRange(start_of_year(t), end_of_year(t))
    if name == "lastweek":
        w = t - timedelta(days=7)
        return DateRange(start_of_week(w), end_of_week(w))
    if name == "lastmonth":
        m = previous_month(t)
        return DateRange(start_of_month(m), end_of_month(m))
    if name == "lastyear":
        y = datetime(t.year - 1, 1, 1)
        return DateRange(start_of_year(y), end_of_year(y))
    if name in ("all", ""):
        return DateRange(DAY_ZERO, t)
    d = parse_date(name)
    if is_zero(d):
        return DateRange(DAY_ZERO, DAY_ZERO)
    if len(name) == 4:
        return DateRange(start_of_year(d), end_of_year(d))
    if len(name) <= 7:
        return DateRange(start_of_month(d), end_of_month(d))
    return DateRange(start_of_day(d), end_of_day(d))


def start_end(start: str = "", end: str = "", now: Optional[datetime] = None) -> DateRange:
    """Default window is the past year; explicit ?start=&end= dates override it."""
    t = now or local_now()
    s = t - timedelta(days=365)
    e = t
    ps, pe = parse_date(start), parse_date(end)
    if not is_zero(ps):
        s = ps
    if not is_zero(pe):
        e = pe
    return DateRange(start_of_day(s), end_of_day(e))


# -------- gap filling --------
def fill_day_gaps(start: datetime, end: datetime,
                  counts: Iterable[Tuple[datetime, int]]) -> List[Tuple[datetime, int]]:
    """One record per calendar day from start through end, zero where absent."""
    by_day: Dict[date, int] = {}
    for d, n in counts:
        by_day[d.date()] = by_day.get(d.date(), 0) + n
    result = []
    day = start_of_day(start)
    last = start_of_day(end)
    while day <= last:
        result.append((day, by_day.get(day.date(), 0)))
        day += timedelta(days=1)
    return result


def fill_month_gaps(start: datetime, end: datetime,
                    counts: Iterable[Tuple[datetime, int]]) -> List[Tuple[datetime, int]]:
    by_month: Dict[Tuple[int, int], int] = {}
    for d, n in counts:
        k = (d.year, d.month)
        by_month[k] = by_month.get(k, 0) + n
    result = []
    month = start_of_month(start)
    last = start_of_month(end)
    while month <= last:
        result.append((month, by_month.get((month.year, month.month), 0)))
        month = next_month(month)
    return result
