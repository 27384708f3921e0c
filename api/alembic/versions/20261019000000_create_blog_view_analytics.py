"""create blog view analytics tables

Revision ID: 20261019000000
Revises:
Create Date: 2026-10-19 00:00:00.000000

Three storage tiers for blog post view counting:
- blog_post_views: one row per counted view (90-day retention)
- blog_post_views_daily: per post per local day (permanent)
- blog_post_views_monthly: per post per calendar month (permanent)
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "20261019000000"
down_revision = None
branch_labels = None
depends_on = None

JSON_TYPE = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade() -> None:
    # ========================================================================
    # BLOG POST VIEWS - Raw counted views, deduplicated per visitor per day
    # ========================================================================

    op.create_table(
        "blog_post_views",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("post_id", sa.String(64), nullable=False),
        sa.Column("ip_hash", sa.String(64), nullable=False),  # SHA256 of ip, post and day
        sa.Column("user_agent", sa.String(500), nullable=True),
        sa.Column("view_date", sa.Date(), nullable=False),
        sa.Column(
            "viewed_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.UniqueConstraint(
            "post_id", "ip_hash", "view_date", name="uq_blog_post_views_post_ip_date"
        ),
    )

    op.create_index("ix_blog_post_views_post_id", "blog_post_views", ["post_id"])
    op.create_index("ix_blog_post_views_viewed_at", "blog_post_views", ["viewed_at"])
    op.create_index("ix_blog_post_views_post_viewed", "blog_post_views", ["post_id", "viewed_at"])

    # ========================================================================
    # BLOG POST VIEWS DAILY - One row per post per local day
    # ========================================================================

    op.create_table(
        "blog_post_views_daily",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("post_id", sa.String(64), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("view_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("unique_visitors", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("device_stats", JSON_TYPE, nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("post_id", "date", name="uq_blog_post_views_daily_post_date"),
    )

    op.create_index("ix_blog_post_views_daily_post_id", "blog_post_views_daily", ["post_id"])
    op.create_index("ix_blog_post_views_daily_date", "blog_post_views_daily", ["date"])

    # ========================================================================
    # BLOG POST VIEWS MONTHLY - One row per post per calendar month
    # ========================================================================

    op.create_table(
        "blog_post_views_monthly",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("post_id", sa.String(64), nullable=False),
        sa.Column("year_month", sa.String(7), nullable=False),  # YYYY-MM
        sa.Column("view_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("unique_visitors", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("device_stats", JSON_TYPE, nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint(
            "post_id", "year_month", name="uq_blog_post_views_monthly_post_month"
        ),
    )

    op.create_index("ix_blog_post_views_monthly_post_id", "blog_post_views_monthly", ["post_id"])
    op.create_index("ix_blog_post_views_monthly_year_month", "blog_post_views_monthly", ["year_month"])


def downgrade() -> None:
    op.drop_index("ix_blog_post_views_monthly_year_month", table_name="blog_post_views_monthly")
    op.drop_index("ix_blog_post_views_monthly_post_id", table_name="blog_post_views_monthly")
    op.drop_table("blog_post_views_monthly")

    op.drop_index("ix_blog_post_views_daily_date", table_name="blog_post_views_daily")
    op.drop_index("ix_blog_post_views_daily_post_id", table_name="blog_post_views_daily")
    op.drop_table("blog_post_views_daily")

    op.drop_index("ix_blog_post_views_post_viewed", table_name="blog_post_views")
    op.drop_index("ix_blog_post_views_viewed_at", table_name="blog_post_views")
    op.drop_index("ix_blog_post_views_post_id", table_name="blog_post_views")
    op.drop_table("blog_post_views")
