"""
Read-side statistics for blog post views.

Combines the three storage tiers (monthly, daily, raw) into dashboard
figures. A view is counted once: daily rows already rolled into a monthly
row, and raw rows already rolled into a daily row, are skipped.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import date, datetime, timedelta

from sqlalchemy import func
from sqlalchemy.orm import Session

from .. import models
from ..utils.local_time import format_year_month, local_today, start_of_day_utc

logger = logging.getLogger(__name__)

# Cache TTL in seconds
SUMMARY_CACHE_TTL = 60
SUMMARY_CACHE_PREFIX = "analytics_summary:"

VALID_PERIODS = (7, 30, 60, 90)
DEFAULT_PERIOD = 7
POPULAR_POSTS_LIMIT = 5


@dataclass
class DailyViewCount:
    date: str  # ISO format date string
    views: int


@dataclass
class MonthlyViewCount:
    year_month: str
    views: int


@dataclass
class PopularPost:
    post_id: str
    view_count: int


@dataclass
class DashboardSummary:
    """Admin dashboard figures for one reporting period."""

    period: int
    total_views: int
    today_views: int
    period_views: int
    daily_views: list[DailyViewCount]
    popular_posts: list[PopularPost]

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> DashboardSummary:
        return cls(
            period=data["period"],
            total_views=data["total_views"],
            today_views=data["today_views"],
            period_views=data["period_views"],
            daily_views=[DailyViewCount(**d) for d in data.get("daily_views", [])],
            popular_posts=[PopularPost(**p) for p in data.get("popular_posts", [])],
        )


def normalize_period(period: int | None) -> int:
    """Clamp a requested period to one of VALID_PERIODS (default 7 days)."""
    return period if period in VALID_PERIODS else DEFAULT_PERIOD


class ViewStatsService:
    """Computes view totals and series from the rollup tables."""

    def __init__(self, db: Session):
        self.db = db

    def views_by_post(self, post_id: str | None = None) -> dict[str, int]:
        """Total views per post across all three tiers, each view counted once."""
        Monthly = models.BlogPostViewsMonthly
        Daily = models.BlogPostViewsDaily
        View = models.BlogPostView

        monthly_q = self.db.query(Monthly.post_id, Monthly.year_month, Monthly.view_count)
        daily_q = self.db.query(Daily.post_id, Daily.date, Daily.view_count)
        raw_q = self.db.query(View.post_id, View.view_date, func.count(View.id)).group_by(
            View.post_id, View.view_date
        )
        if post_id is not None:
            monthly_q = monthly_q.filter(Monthly.post_id == post_id)
            daily_q = daily_q.filter(Daily.post_id == post_id)
            raw_q = raw_q.filter(View.post_id == post_id)

        totals: dict[str, int] = {}
        rolled_months: set[tuple[str, str]] = set()
        for pid, year_month, view_count in monthly_q:
            rolled_months.add((pid, year_month))
            totals[pid] = totals.get(pid, 0) + (view_count or 0)

        rolled_days: set[tuple[str, date]] = set()
        for pid, day, view_count in daily_q:
            rolled_days.add((pid, day))
            if (pid, format_year_month(day)) in rolled_months:
                continue
            totals[pid] = totals.get(pid, 0) + (view_count or 0)

        for pid, day, count in raw_q:
            if (pid, day) in rolled_days:
                continue
            totals[pid] = totals.get(pid, 0) + count

        return totals

    def total_views(self, post_id: str | None = None) -> int:
        return sum(self.views_by_post(post_id).values())

    def today_views(self, now: datetime | None = None) -> int:
        start = start_of_day_utc(local_today(now))
        return (
            self.db.query(func.count(models.BlogPostView.id))
            .filter(models.BlogPostView.viewed_at >= start)
            .scalar()
            or 0
        )

    def daily_views(self, days: int = 7, now: datetime | None = None) -> list[DailyViewCount]:
        """
        Summed daily rollups for the last `days` local days, oldest first.

        Days without a rollup (including today, until it is aggregated) are 0.
        """
        Daily = models.BlogPostViewsDaily
        start = local_today(now) - timedelta(days=days - 1)

        rows = (
            self.db.query(Daily.date, func.sum(Daily.view_count))
            .filter(Daily.date >= start)
            .group_by(Daily.date)
            .all()
        )
        by_day = {day: int(total or 0) for day, total in rows}

        series = []
        for i in range(days):
            day = start + timedelta(days=i)
            series.append(DailyViewCount(date=day.isoformat(), views=by_day.get(day, 0)))
        return series

    def monthly_views(self, months: int = 12) -> list[MonthlyViewCount]:
        """Summed monthly rollups for the most recent `months` months, oldest first."""
        Monthly = models.BlogPostViewsMonthly
        rows = (
            self.db.query(Monthly.year_month, func.sum(Monthly.view_count))
            .group_by(Monthly.year_month)
            .order_by(Monthly.year_month.desc())
            .limit(months)
            .all()
        )
        return [MonthlyViewCount(year_month=ym, views=int(total or 0)) for ym, total in reversed(rows)]

    def popular_posts(
        self, limit: int = POPULAR_POSTS_LIMIT, totals: dict[str, int] | None = None
    ) -> list[PopularPost]:
        """Top posts by total views; ties broken by post id."""
        if totals is None:
            totals = self.views_by_post()
        ranked = sorted(totals.items(), key=lambda item: (-item[1], item[0]))[:limit]
        return [PopularPost(post_id=pid, view_count=count) for pid, count in ranked]

    def dashboard_summary(self, period: int = DEFAULT_PERIOD, now: datetime | None = None) -> DashboardSummary:
        """
        Dashboard figures for the admin console.

        Served from Redis when available (short TTL, invalidated after rollups).
        """
        from ..cache import cache_get, cache_set

        period = normalize_period(period)
        cache_key = f"{SUMMARY_CACHE_PREFIX}{period}"
        if now is None:
            cached = cache_get(cache_key)
            if isinstance(cached, dict):
                logger.debug(f"Summary cache hit for period {period}")
                return DashboardSummary.from_dict(cached)

        per_post = self.views_by_post()
        daily = self.daily_views(period, now)
        summary = DashboardSummary(
            period=period,
            total_views=sum(per_post.values()),
            today_views=self.today_views(now),
            period_views=sum(d.views for d in daily),
            daily_views=daily,
            popular_posts=self.popular_posts(totals=per_post),
        )

        if now is None:
            cache_set(cache_key, summary.to_dict(), ttl=SUMMARY_CACHE_TTL)
        return summary


def invalidate_summary_cache() -> None:
    """Drop cached dashboard summaries (call after any rollup or cleanup)."""
    from ..cache import cache_invalidate

    cache_invalidate(f"{SUMMARY_CACHE_PREFIX}*")


def calculate_total_views(db: Session, post_id: str | None = None) -> int:
    """Convenience wrapper: total views for one post, or the whole site."""
    return ViewStatsService(db).total_views(post_id)
