"""
Calendar helpers for view analytics.

Every "day" in analytics (dedup bucket, rollup window, retention cutoff) is a
calendar day in ANALYTICS_TIMEZONE. Timestamps are stored in UTC, so window
bounds are computed locally and converted back to UTC for queries.
"""

from __future__ import annotations

import re
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

from .. import settings

_YEAR_MONTH_RE = re.compile(r"^(\d{4})-(\d{2})$")
_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def get_timezone() -> ZoneInfo:
    return ZoneInfo(settings.ANALYTICS_TIMEZONE)


def local_now(now: datetime | None = None) -> datetime:
    """Current time (or `now`) expressed in the analytics timezone."""
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(get_timezone())


def local_today(now: datetime | None = None) -> date:
    return local_now(now).date()


def start_of_day_utc(day: date) -> datetime:
    """UTC instant of local midnight at the start of `day`."""
    local_midnight = datetime.combine(day, time.min, tzinfo=get_timezone())
    return local_midnight.astimezone(timezone.utc)


def day_bounds(day: date) -> tuple[datetime, datetime]:
    """Half-open UTC window [start, end) covering local calendar day `day`."""
    return start_of_day_utc(day), start_of_day_utc(day + timedelta(days=1))


def parse_date(value: str) -> date:
    """
    Parse a strict YYYY-MM-DD string.

    Raises:
        ValueError: If the value is not a valid calendar date in that format
    """
    if not isinstance(value, str) or not _DATE_RE.match(value):
        raise ValueError(f"Invalid date {value!r}, expected YYYY-MM-DD")
    return date.fromisoformat(value)


def parse_year_month(value: str) -> tuple[int, int]:
    """
    Parse a strict YYYY-MM string into (year, month).

    Raises:
        ValueError: If the value is malformed or the month is out of range
    """
    match = _YEAR_MONTH_RE.match(value) if isinstance(value, str) else None
    if not match:
        raise ValueError(f"Invalid year-month {value!r}, expected YYYY-MM")
    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        raise ValueError(f"Invalid month in {value!r}")
    return year, month


def month_bounds(year_month: str) -> tuple[date, date]:
    """First and last calendar day (inclusive) of a YYYY-MM month."""
    year, month = parse_year_month(year_month)
    first = date(year, month, 1)
    if month == 12:
        next_first = date(year + 1, 1, 1)
    else:
        next_first = date(year, month + 1, 1)
    return first, next_first - timedelta(days=1)


def format_year_month(day: date) -> str:
    return f"{day.year:04d}-{day.month:02d}"


def yesterday(now: datetime | None = None) -> date:
    return local_today(now) - timedelta(days=1)


def previous_month(now: datetime | None = None) -> str:
    """YYYY-MM of the calendar month before the current local month."""
    first_of_this_month = local_today(now).replace(day=1)
    return format_year_month(first_of_this_month - timedelta(days=1))
