"""Admin endpoints for view analytics: rollup trigger and dashboard reads."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from .. import schemas
from ..auth import require_analytics_caller
from ..deps import get_db, get_view_stats
from ..services.aggregation_runner import (
    GENERIC_ERROR,
    AggregationRequestError,
    run_aggregation,
)
from ..services.view_stats import DEFAULT_PERIOD, ViewStatsService

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/admin/analytics",
    tags=["Analytics"],
    dependencies=[Depends(require_analytics_caller)],
)


@router.post(
    "/aggregate",
    response_model=schemas.AggregateResponse,
    responses={
        400: {"model": schemas.ErrorResponse},
        401: {"description": "Unauthorized"},
        500: {"model": schemas.AggregateResponse},
    },
)
def run_analytics_aggregation(
    payload: schemas.AggregateRequest,
    db: Session = Depends(get_db),
) -> JSONResponse:
    """
    Run daily rollup, monthly rollup, retention cleanup, or all three.

    **Authorization:** `Authorization: Bearer <ANALYTICS_API_KEY>` (scheduled
    jobs) or an admin session.

    - `daily`: `date` is YYYY-MM-DD, defaults to yesterday
    - `monthly`: `date` is YYYY-MM, defaults to the previous month
    - `cleanup`: deletes raw views past the retention horizon
    - `all`: daily (yesterday), monthly (previous month), cleanup

    Steps are independent: a failed step is listed in `errors` and the
    others still run. Answers 500 only when every requested step failed.
    """
    try:
        run = run_aggregation(db, payload.type, payload.date)
    except AggregationRequestError as e:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=schemas.ErrorResponse(error=str(e)).model_dump(),
        )

    response = schemas.AggregateResponse(
        success=run.success,
        type=run.job_type,
        daily=run.daily,
        monthly=run.monthly,
        cleanup=run.cleanup,
        errors=run.errors or None,
        error=None if run.success else GENERIC_ERROR,
    )
    status_code = status.HTTP_200_OK if run.any_succeeded else status.HTTP_500_INTERNAL_SERVER_ERROR
    return JSONResponse(
        status_code=status_code,
        content=response.model_dump(by_alias=True, exclude_none=True),
    )


@router.get(
    "/summary",
    response_model=schemas.AnalyticsSummaryResponse,
)
def get_analytics_summary(
    period: int = Query(DEFAULT_PERIOD, description="Days in the daily series: 7, 30, 60 or 90"),
    stats: ViewStatsService = Depends(get_view_stats),
) -> schemas.AnalyticsSummaryResponse:
    """
    Dashboard figures: total, today and period views, daily series, top posts.

    Unsupported periods fall back to 7 days.
    """
    summary = stats.dashboard_summary(period)
    return schemas.AnalyticsSummaryResponse(
        period=summary.period,
        total_views=summary.total_views,
        today_views=summary.today_views,
        period_views=summary.period_views,
        daily_views=[schemas.DailyViews(date=d.date, views=d.views) for d in summary.daily_views],
        popular_posts=[
            schemas.PopularPostViews(post_id=p.post_id, view_count=p.view_count)
            for p in summary.popular_posts
        ],
    )


@router.get("/monthly", response_model=schemas.MonthlyViewsResponse)
def get_monthly_history(
    months: int = Query(12, ge=1, le=120),
    stats: ViewStatsService = Depends(get_view_stats),
) -> schemas.MonthlyViewsResponse:
    """Site-wide monthly view totals for the most recent months, oldest first."""
    history = stats.monthly_views(months)
    return schemas.MonthlyViewsResponse(
        months=[schemas.MonthlyViews(year_month=m.year_month, views=m.views) for m in history]
    )


@router.get("/total", response_model=schemas.TotalViewsResponse, response_model_exclude_none=True)
def get_total_views(
    post_id: str | None = Query(None, alias="postId", max_length=64),
    stats: ViewStatsService = Depends(get_view_stats),
) -> schemas.TotalViewsResponse:
    """Total views of one post (or the whole site), each view counted once."""
    total = stats.total_views(post_id)
    return schemas.TotalViewsResponse(post_id=post_id, total_views=total)
