from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# BASE SCHEMAS
# ============================================================================


class CamelModel(BaseModel):
    """Accepts and emits camelCase aliases while keeping snake_case attributes."""

    model_config = ConfigDict(populate_by_name=True)


class ErrorResponse(BaseModel):
    """Error body shared by the public and admin endpoints."""

    success: Literal[False] = False
    error: str


# ============================================================================
# HEALTH
# ============================================================================


class HealthResponse(BaseModel):
    """Health check response."""

    status: Literal["ok"] = "ok"
    uptime_s: float | None = None


class ReadinessResponse(BaseModel):
    """Per-dependency readiness: "ok", "unavailable" or "disabled"."""

    status: Literal["ok", "unavailable"]
    checks: dict[str, str]


# ============================================================================
# BLOG VIEW TRACKING
# ============================================================================


class RecordViewRequest(CamelModel):
    """Body of POST /api/blog/view. A missing postId is answered with 400."""

    post_id: str | None = Field(default=None, alias="postId", max_length=64)


class RecordViewResponse(BaseModel):
    success: Literal[True] = True
    counted: bool
    reason: Literal["bot", "already_counted"] | None = None


# ============================================================================
# ANALYTICS ADMIN
# ============================================================================


class AggregateRequest(BaseModel):
    """Body of POST /api/admin/analytics/aggregate."""

    type: str | None = None
    date: str | None = None  # YYYY-MM-DD for daily, YYYY-MM for monthly


class DailyAggregateResult(BaseModel):
    aggregated: int
    date: str


class MonthlyAggregateResult(CamelModel):
    aggregated: int
    year_month: str = Field(alias="yearMonth")


class CleanupResult(CamelModel):
    deleted: int
    days_kept: int = Field(alias="daysKept")


class AggregateResponse(BaseModel):
    """
    Outcome of an aggregation run.

    Only requested steps appear. `errors` maps failed steps to a generic
    message; `success` is false whenever any step failed.
    """

    success: bool
    type: str
    daily: DailyAggregateResult | None = None
    monthly: MonthlyAggregateResult | None = None
    cleanup: CleanupResult | None = None
    errors: dict[str, str] | None = None
    error: str | None = None


class DailyViews(BaseModel):
    date: str
    views: int


class PopularPostViews(CamelModel):
    post_id: str = Field(alias="postId")
    view_count: int = Field(alias="viewCount")


class AnalyticsSummaryResponse(CamelModel):
    """Admin dashboard figures."""

    period: int
    total_views: int = Field(alias="totalViews")
    today_views: int = Field(alias="todayViews")
    period_views: int = Field(alias="periodViews")
    daily_views: list[DailyViews] = Field(alias="dailyViews")
    popular_posts: list[PopularPostViews] = Field(alias="popularPosts")


class MonthlyViews(CamelModel):
    year_month: str = Field(alias="yearMonth")
    views: int


class MonthlyViewsResponse(BaseModel):
    months: list[MonthlyViews]


class TotalViewsResponse(CamelModel):
    post_id: str | None = Field(default=None, alias="postId")
    total_views: int = Field(alias="totalViews")
