from __future__ import annotations

from datetime import date, datetime, timezone

import pytest

from app import settings
from app.utils.local_time import (
    day_bounds,
    local_today,
    month_bounds,
    parse_date,
    parse_year_month,
    previous_month,
    yesterday,
)


def test_day_bounds_in_utc():
    start, end = day_bounds(date(2024, 3, 15))
    assert start == datetime(2024, 3, 15, tzinfo=timezone.utc)
    assert end == datetime(2024, 3, 16, tzinfo=timezone.utc)


def test_day_bounds_follow_analytics_timezone(monkeypatch):
    monkeypatch.setattr(settings, "ANALYTICS_TIMEZONE", "America/New_York")
    start, end = day_bounds(date(2024, 1, 10))
    assert start == datetime(2024, 1, 10, 5, tzinfo=timezone.utc)
    assert end == datetime(2024, 1, 11, 5, tzinfo=timezone.utc)


def test_local_today_crosses_midnight(monkeypatch):
    monkeypatch.setattr(settings, "ANALYTICS_TIMEZONE", "Asia/Tokyo")
    now = datetime(2024, 6, 30, 20, 0, tzinfo=timezone.utc)
    assert local_today(now) == date(2024, 7, 1)


def test_yesterday_and_previous_month():
    now = datetime(2024, 1, 1, 0, 15, tzinfo=timezone.utc)
    assert yesterday(now) == date(2023, 12, 31)
    assert previous_month(now) == "2023-12"


def test_month_bounds_leap_february():
    assert month_bounds("2024-02") == (date(2024, 2, 1), date(2024, 2, 29))
    assert month_bounds("2023-12") == (date(2023, 12, 1), date(2023, 12, 31))


@pytest.mark.parametrize("value", ["2024-13", "2024-00", "2024-1", "24-01", "2024-01-01", ""])
def test_parse_year_month_rejects_malformed(value):
    with pytest.raises(ValueError):
        parse_year_month(value)


@pytest.mark.parametrize("value", ["2024-02-30", "2024-2-1", "20240201", "yesterday"])
def test_parse_date_rejects_malformed(value):
    with pytest.raises(ValueError):
        parse_date(value)


def test_parse_date():
    assert parse_date("2024-02-29") == date(2024, 2, 29)
