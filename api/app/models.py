from __future__ import annotations

from sqlalchemy import (
    JSON,
    Column,
    Date,
    DateTime,
    Index,
    Integer,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB

from .db import Base

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in development/tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


# ============================================================================
# BLOG VIEW ANALYTICS
# ============================================================================


class BlogPostView(Base):
    """Raw view record for a blog post (short-term retention, see cleanup job)."""

    __tablename__ = "blog_post_views"

    id = Column(Integer, primary_key=True, autoincrement=True)
    post_id = Column(String(64), nullable=False, index=True)

    # Salted per-day-and-post digest of the client IP, never the raw address
    ip_hash = Column(String(64), nullable=False)
    user_agent = Column(String(500), nullable=True)

    # Local calendar day of the view; part of the dedup key
    view_date = Column(Date, nullable=False)
    viewed_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), index=True
    )

    __table_args__ = (
        UniqueConstraint(
            "post_id", "ip_hash", "view_date", name="uq_blog_post_views_post_ip_date"
        ),
        Index("ix_blog_post_views_post_viewed", post_id, viewed_at),
    )


class BlogPostViewsDaily(Base):
    """Daily aggregated views for a blog post (permanent storage)."""

    __tablename__ = "blog_post_views_daily"

    id = Column(Integer, primary_key=True, autoincrement=True)
    post_id = Column(String(64), nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)

    view_count = Column(Integer, nullable=False, default=0)
    unique_visitors = Column(Integer, nullable=False, default=0)
    device_stats = Column(JSONType, nullable=False, default=dict)  # {"mobile_ios": 3, ...}

    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("post_id", "date", name="uq_blog_post_views_daily_post_date"),
    )


class BlogPostViewsMonthly(Base):
    """Monthly aggregated views for a blog post, rolled up from daily rows."""

    __tablename__ = "blog_post_views_monthly"

    id = Column(Integer, primary_key=True, autoincrement=True)
    post_id = Column(String(64), nullable=False, index=True)
    year_month = Column(String(7), nullable=False, index=True)  # "YYYY-MM"

    view_count = Column(Integer, nullable=False, default=0)
    # Sum of daily unique visitors; a visitor seen on several days counts once per day
    unique_visitors = Column(Integer, nullable=False, default=0)
    device_stats = Column(JSONType, nullable=False, default=dict)

    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=func.now())

    __table_args__ = (
        UniqueConstraint(
            "post_id", "year_month", name="uq_blog_post_views_monthly_post_month"
        ),
    )
