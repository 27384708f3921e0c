from __future__ import annotations

import logging
import os
from typing import Any

from celery import Celery
from celery.schedules import crontab

from . import settings

logger = logging.getLogger(__name__)

DEFAULT_REDIS = "redis://cache:6379/0"

celery_app = Celery(
    "portfolio",
    broker=os.getenv("CELERY_BROKER_URL", DEFAULT_REDIS),
    backend=os.getenv("CELERY_RESULT_BACKEND", DEFAULT_REDIS),
)

celery_app.conf.update(
    task_default_queue="default",
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    result_expires=3600,
    worker_max_tasks_per_child=100,
    beat_schedule={
        "aggregate-daily-views": {
            "task": "app.tasks.aggregate_daily_views",
            "schedule": crontab(hour=0, minute=15),  # Yesterday, once it is complete
        },
        "aggregate-monthly-views": {
            "task": "app.tasks.aggregate_monthly_views",
            "schedule": crontab(day_of_month=1, hour=0, minute=30),
        },
        "cleanup-old-views": {
            "task": "app.tasks.cleanup_old_views",
            "schedule": crontab(hour=1, minute=0),
        },
    },
    # Crontab hours are local analytics days, the same calendar the rollups use
    timezone=settings.ANALYTICS_TIMEZONE,
    enable_utc=True,
)


def _run_job(job_type: str, date_str: str | None) -> dict[str, Any]:
    from .db import SessionLocal
    from .services.aggregation_runner import AggregationRequestError, run_aggregation

    db = SessionLocal()
    try:
        run = run_aggregation(db, job_type, date_str)
    except AggregationRequestError as e:
        logger.error("Rejected %s aggregation request: %s", job_type, e)
        return {"status": "error", "message": str(e)}
    finally:
        db.close()

    if not run.success:
        return {"status": "error", "errors": run.errors}
    result = run.daily if job_type == "daily" else run.monthly
    return {"status": "success", **(result or {})}


@celery_app.task(name="app.tasks.aggregate_daily_views", bind=True)
def aggregate_daily_views(self, date_str: str | None = None) -> dict[str, Any]:
    """
    Roll raw views of one local day (default: yesterday) into daily aggregates.
    Runs at 00:15 UTC via beat_schedule.
    """
    return _run_job("daily", date_str)


@celery_app.task(name="app.tasks.aggregate_monthly_views", bind=True)
def aggregate_monthly_views(self, year_month: str | None = None) -> dict[str, Any]:
    """Roll daily aggregates of one month (default: the previous month) into monthly aggregates."""
    return _run_job("monthly", year_month)


@celery_app.task(name="app.tasks.cleanup_old_views", bind=True)
def cleanup_old_views(self, days_to_keep: int | None = None) -> dict[str, Any]:
    """
    Delete raw views past the retention horizon.

    Aggregated rows are never touched, so totals survive the cleanup.
    """
    from .db import SessionLocal
    from .services import view_aggregation
    from .services.view_stats import invalidate_summary_cache

    days = days_to_keep if days_to_keep is not None else settings.RAW_VIEW_RETENTION_DAYS
    db = SessionLocal()
    try:
        deleted = view_aggregation.cleanup_old_views(db, days)
        invalidate_summary_cache()
        return {"status": "success", "deleted": deleted, "daysKept": days}
    except Exception as e:
        db.rollback()
        logger.error("Error cleaning up old views: %s", str(e), exc_info=True)
        return {"status": "error", "message": str(e)}
    finally:
        db.close()
