from __future__ import annotations

import logging
import os

from sqlalchemy import inspect

from app.db import get_database_url, get_engine
from app.tasks import celery_app

logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
logger = logging.getLogger(__name__)

ANALYTICS_TABLES = ("blog_post_views", "blog_post_views_daily", "blog_post_views_monthly")


def check_analytics_tables() -> list[str]:
    """Return the analytics tables missing from the database."""
    table_names = set(inspect(get_engine()).get_table_names())
    return [name for name in ANALYTICS_TABLES if name not in table_names]


if __name__ == "__main__":
    url = get_database_url()
    logger.info("Worker database: %s", url.split("@")[1] if "@" in url else url)

    missing = check_analytics_tables()
    if missing:
        # The API runs migrations on startup; the worker only reports
        logger.warning("Analytics tables not found yet: %s", ", ".join(missing))

    # Embedded beat: one worker process also drives the rollup schedule
    celery_app.worker_main(["worker", "--beat", "--loglevel=info"])
