from __future__ import annotations

import importlib
from datetime import date, datetime, timedelta, timezone

from celery.schedules import crontab

from app import models, settings, tasks
from app.tasks import (
    aggregate_daily_views,
    aggregate_monthly_views,
    celery_app,
    cleanup_old_views,
)

from conftest import add_daily, add_raw_view


def test_beat_schedule_runs_rollups_and_cleanup():
    schedule = celery_app.conf.beat_schedule

    assert schedule["aggregate-daily-views"]["task"] == "app.tasks.aggregate_daily_views"
    assert schedule["aggregate-daily-views"]["schedule"] == crontab(hour=0, minute=15)
    assert schedule["aggregate-monthly-views"]["schedule"] == crontab(day_of_month=1, hour=0, minute=30)
    assert schedule["cleanup-old-views"]["schedule"] == crontab(hour=1, minute=0)
    assert celery_app.conf.timezone == settings.ANALYTICS_TIMEZONE


def test_beat_runs_on_analytics_calendar(monkeypatch):
    monkeypatch.setattr(settings, "ANALYTICS_TIMEZONE", "America/Los_Angeles")
    try:
        reloaded = importlib.reload(tasks)
        assert reloaded.celery_app.conf.timezone == "America/Los_Angeles"
    finally:
        monkeypatch.undo()
        importlib.reload(tasks)


def test_aggregate_daily_views_task(db):
    add_raw_view(db, "post-a", "A", datetime(2024, 3, 15, 9, 0, tzinfo=timezone.utc))

    result = aggregate_daily_views("2024-03-15")

    assert result == {"status": "success", "aggregated": 1, "date": "2024-03-15"}
    assert db.query(models.BlogPostViewsDaily).count() == 1


def test_aggregate_daily_views_task_rejects_bad_date():
    result = aggregate_daily_views("15-03-2024")
    assert result["status"] == "error"


def test_aggregate_monthly_views_task(db):
    add_daily(db, "post-a", date(2024, 2, 1), 3)

    result = aggregate_monthly_views("2024-02")

    assert result == {"status": "success", "aggregated": 1, "yearMonth": "2024-02"}


def test_cleanup_old_views_task(db):
    now = datetime.now(timezone.utc)
    add_raw_view(db, "post-a", "old", now - timedelta(days=40))
    add_raw_view(db, "post-a", "new", now - timedelta(days=1))

    result = cleanup_old_views(30)

    assert result == {"status": "success", "deleted": 1, "daysKept": 30}
    assert [v.ip_hash for v in db.query(models.BlogPostView)] == ["new"]
