"""
Rollup service for blog post view analytics.

Three storage tiers, each rolled into the next:
- blog_post_views: one row per counted view (raw, short retention)
- blog_post_views_daily: per post per local day
- blog_post_views_monthly: per post per calendar month

Rollups overwrite rather than increment, so re-running any period is safe.
Each rollup commits all of its per-post upserts in one transaction.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta

from sqlalchemy.orm import Session

from .. import models, settings
from ..utils.device_detection import DeviceStats, classify_device
from ..utils.local_time import day_bounds, local_today, month_bounds, start_of_day_utc

logger = logging.getLogger(__name__)


def aggregate_daily(db: Session, target_date: date) -> int:
    """
    Roll up one local day of raw views into blog_post_views_daily.

    Posts without views that day get no row. Existing rows for the day are
    overwritten with freshly computed values.

    Args:
        db: Database session
        target_date: Local calendar day to aggregate

    Returns:
        Number of posts aggregated
    """
    start, end = day_bounds(target_date)
    View = models.BlogPostView
    in_window = (View.viewed_at >= start, View.viewed_at < end)

    # One pass over the window so counts, uniques and device stats share a snapshot
    totals: dict[str, dict] = {}
    for post_id, ip_hash, user_agent in db.query(View.post_id, View.ip_hash, View.user_agent).filter(
        *in_window
    ):
        entry = totals.setdefault(
            post_id, {"view_count": 0, "ip_hashes": set(), "device_stats": DeviceStats()}
        )
        entry["view_count"] += 1
        entry["ip_hashes"].add(ip_hash)
        entry["device_stats"].increment(classify_device(user_agent))

    if not totals:
        logger.info(f"Daily rollup for {target_date}: no views")
        return 0

    Daily = models.BlogPostViewsDaily
    existing = {
        row.post_id: row
        for row in db.query(Daily).filter(Daily.date == target_date, Daily.post_id.in_(list(totals)))
    }

    try:
        for post_id, entry in totals.items():
            row = existing.get(post_id)
            if row is None:
                row = Daily(post_id=post_id, date=target_date)
                db.add(row)
            row.view_count = entry["view_count"]
            row.unique_visitors = len(entry["ip_hashes"])
            row.device_stats = entry["device_stats"].to_dict()
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(f"Daily rollup for {target_date}: aggregated {len(totals)} posts")
    return len(totals)


def aggregate_monthly(db: Session, year_month: str) -> int:
    """
    Roll up one calendar month of daily rows into blog_post_views_monthly.

    View counts and unique visitors are summed across days; unique visitors
    is therefore an upper bound, not a distinct count over the month.

    Args:
        db: Database session
        year_month: Month to aggregate, "YYYY-MM"

    Returns:
        Number of posts aggregated

    Raises:
        ValueError: If year_month is malformed
    """
    first_day, last_day = month_bounds(year_month)
    Daily = models.BlogPostViewsDaily

    daily_rows = (
        db.query(Daily.post_id, Daily.view_count, Daily.unique_visitors, Daily.device_stats)
        .filter(Daily.date >= first_day, Daily.date <= last_day)
        .all()
    )
    if not daily_rows:
        logger.info(f"Monthly rollup for {year_month}: no daily rows")
        return 0

    totals: dict[str, dict] = {}
    for post_id, view_count, unique_visitors, stats_json in daily_rows:
        entry = totals.setdefault(
            post_id, {"view_count": 0, "unique_visitors": 0, "device_stats": DeviceStats()}
        )
        entry["view_count"] += view_count or 0
        entry["unique_visitors"] += unique_visitors or 0
        entry["device_stats"] += DeviceStats.from_json(stats_json)

    Monthly = models.BlogPostViewsMonthly
    existing = {
        row.post_id: row
        for row in db.query(Monthly).filter(
            Monthly.year_month == year_month, Monthly.post_id.in_(list(totals))
        )
    }

    try:
        for post_id, entry in totals.items():
            row = existing.get(post_id)
            if row is None:
                row = Monthly(post_id=post_id, year_month=year_month)
                db.add(row)
            row.view_count = entry["view_count"]
            row.unique_visitors = entry["unique_visitors"]
            row.device_stats = entry["device_stats"].to_dict()
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(f"Monthly rollup for {year_month}: aggregated {len(totals)} posts")
    return len(totals)


def retention_cutoff(days_to_keep: int, now: datetime | None = None) -> datetime:
    """UTC instant of local midnight `days_to_keep` days before today."""
    return start_of_day_utc(local_today(now) - timedelta(days=days_to_keep))


def cleanup_old_views(
    db: Session, days_to_keep: int | None = None, now: datetime | None = None
) -> int:
    """
    Delete raw views older than the retention horizon.

    Rows viewed strictly before local midnight `days_to_keep` days ago are
    removed. Days deleted here must already be rolled up, or their counts are
    lost for good; the schedule, not this function, guarantees that.

    Returns:
        Number of rows deleted
    """
    if days_to_keep is None:
        days_to_keep = settings.RAW_VIEW_RETENTION_DAYS
    cutoff = retention_cutoff(days_to_keep, now)

    try:
        count = (
            db.query(models.BlogPostView)
            .filter(models.BlogPostView.viewed_at < cutoff)
            .delete(synchronize_session=False)
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(f"Cleaned up {count} raw views older than {days_to_keep} days")
    return count
