"""
Runs the analytics maintenance jobs (daily rollup, monthly rollup, cleanup).

Shared by the admin aggregate endpoint and the Celery beat tasks. Each step
runs in its own error boundary: a failing step is rolled back and reported,
and the remaining steps still run.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

from sqlalchemy.orm import Session

from .. import settings
from ..utils.local_time import day_bounds, month_bounds, parse_date, previous_month, yesterday
from .view_aggregation import aggregate_daily, aggregate_monthly, cleanup_old_views
from .view_stats import invalidate_summary_cache

logger = logging.getLogger(__name__)

JOB_DAILY = "daily"
JOB_MONTHLY = "monthly"
JOB_CLEANUP = "cleanup"
JOB_ALL = "all"
JOB_TYPES = (JOB_DAILY, JOB_MONTHLY, JOB_CLEANUP, JOB_ALL)

GENERIC_ERROR = "Internal server error"


class AggregationRequestError(ValueError):
    """Invalid job type or date; nothing was run."""


@dataclass
class AggregationRun:
    """Per-step outcome of one run. Only steps that were requested appear."""

    job_type: str
    daily: dict[str, Any] | None = None
    monthly: dict[str, Any] | None = None
    cleanup: dict[str, Any] | None = None
    errors: dict[str, str] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return not self.errors

    @property
    def any_succeeded(self) -> bool:
        return any(result is not None for result in (self.daily, self.monthly, self.cleanup))


@dataclass
class _Plan:
    daily_date: date | None = None
    year_month: str | None = None
    cleanup: bool = False


def _checked_day(date_str: str) -> date:
    """Parse a day and make sure its UTC window is representable."""
    try:
        day = parse_date(date_str)
        day_bounds(day)
    except (ValueError, OverflowError) as e:
        raise AggregationRequestError(f"Invalid date {date_str!r}, expected YYYY-MM-DD") from e
    return day


def _checked_year_month(date_str: str) -> str:
    try:
        month_bounds(date_str)
    except (ValueError, OverflowError) as e:
        raise AggregationRequestError(f"Invalid month {date_str!r}, expected YYYY-MM") from e
    return date_str


def plan_aggregation(job_type: str | None, date_str: str | None = None, now: datetime | None = None) -> _Plan:
    """
    Validate a request and resolve its targets.

    `date_str` is YYYY-MM-DD for daily and YYYY-MM for monthly; it is ignored
    for cleanup and all, which always use yesterday / the previous month.

    Raises:
        AggregationRequestError: On an unknown type or malformed date
    """
    if job_type not in JOB_TYPES:
        raise AggregationRequestError(
            "Invalid type. Must be daily, monthly, cleanup, or all"
        )

    plan = _Plan()
    if job_type == JOB_DAILY:
        if date_str:
            plan.daily_date = _checked_day(date_str)
        else:
            plan.daily_date = yesterday(now)
    elif job_type == JOB_MONTHLY:
        if date_str:
            plan.year_month = _checked_year_month(date_str)
        else:
            plan.year_month = previous_month(now)
    elif job_type == JOB_CLEANUP:
        plan.cleanup = True
    else:
        plan.daily_date = yesterday(now)
        plan.year_month = previous_month(now)
        plan.cleanup = True
    return plan


def run_aggregation(
    db: Session,
    job_type: str | None,
    date_str: str | None = None,
    now: datetime | None = None,
) -> AggregationRun:
    """
    Run the requested maintenance steps in order: daily, monthly, cleanup.

    Raises:
        AggregationRequestError: On an unknown type or malformed date
    """
    plan = plan_aggregation(job_type, date_str, now)
    run = AggregationRun(job_type=job_type)

    if plan.daily_date is not None:
        try:
            aggregated = aggregate_daily(db, plan.daily_date)
            run.daily = {"aggregated": aggregated, "date": plan.daily_date.isoformat()}
        except Exception as e:
            db.rollback()
            logger.error(f"Daily rollup for {plan.daily_date} failed: {e}", exc_info=True)
            run.errors[JOB_DAILY] = GENERIC_ERROR

    if plan.year_month is not None:
        try:
            aggregated = aggregate_monthly(db, plan.year_month)
            run.monthly = {"aggregated": aggregated, "yearMonth": plan.year_month}
        except Exception as e:
            db.rollback()
            logger.error(f"Monthly rollup for {plan.year_month} failed: {e}", exc_info=True)
            run.errors[JOB_MONTHLY] = GENERIC_ERROR

    if plan.cleanup:
        days_to_keep = settings.RAW_VIEW_RETENTION_DAYS
        try:
            deleted = cleanup_old_views(db, days_to_keep, now)
            run.cleanup = {"deleted": deleted, "daysKept": days_to_keep}
        except Exception as e:
            db.rollback()
            logger.error(f"View cleanup failed: {e}", exc_info=True)
            run.errors[JOB_CLEANUP] = GENERIC_ERROR

    if run.any_succeeded:
        invalidate_summary_cache()

    logger.info(
        f"Aggregation run '{job_type}' finished: "
        f"daily={run.daily}, monthly={run.monthly}, cleanup={run.cleanup}, errors={list(run.errors)}"
    )
    return run
