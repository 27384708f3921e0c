from __future__ import annotations

import os

# Settings and the engine are built at import time: configure before importing app
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["RUN_MIGRATIONS_ON_STARTUP"] = "false"
os.environ["ANALYTICS_TIMEZONE"] = "UTC"
os.environ["ANALYTICS_API_KEY"] = "test-analytics-key"
os.environ["ADMIN_EMAILS"] = "admin@example.com"
os.environ["ADMIN_SESSION_SECRET"] = "test-session-secret-0123456789abcdef"
os.environ["REDIS_URL"] = ""

from datetime import date, datetime, timedelta, timezone
from typing import Generator

import jwt
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from app import models, settings
from app.db import Base, SessionLocal, engine
from app.main import app, run_startup_tasks
from app.services.rate_limit import InMemoryRateLimitStore, get_rate_limit_store

API_KEY = "test-analytics-key"
ADMIN_EMAIL = "admin@example.com"


def create_admin_session_token(email: str, expires_in_seconds: int = 3600) -> str:
    """Mint a session JWT the way the identity provider issues them."""
    now = datetime.now(timezone.utc)
    payload = {"email": email, "iat": now, "exp": now + timedelta(seconds=expires_in_seconds)}
    return jwt.encode(payload, settings.ADMIN_SESSION_SECRET, algorithm=settings.ADMIN_SESSION_ALGORITHM)


@pytest.fixture(scope="session", autouse=True)
def bootstrap() -> None:
    Base.metadata.create_all(bind=engine)
    run_startup_tasks()


@pytest.fixture(autouse=True)
def clean_tables() -> Generator[None, None, None]:
    yield
    with engine.begin() as connection:
        for table in reversed(Base.metadata.sorted_tables):
            connection.execute(table.delete())


@pytest.fixture()
def rate_limit_store() -> Generator[InMemoryRateLimitStore, None, None]:
    store = InMemoryRateLimitStore()
    app.dependency_overrides[get_rate_limit_store] = lambda: store
    try:
        yield store
    finally:
        app.dependency_overrides.pop(get_rate_limit_store, None)


@pytest.fixture()
def client(rate_limit_store) -> Generator[TestClient, None, None]:
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def db() -> Generator[Session, None, None]:
    """Create a database session for testing."""
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture()
def api_key_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {API_KEY}"}


@pytest.fixture()
def admin_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {create_admin_session_token(ADMIN_EMAIL)}"}


def add_raw_view(
    db: Session,
    post_id: str,
    ip_hash: str,
    viewed_at: datetime,
    user_agent: str | None = "Mozilla/5.0 (Windows NT 10.0; Win64; x64)",
) -> models.BlogPostView:
    """Insert a raw view directly, bypassing the recorder."""
    if viewed_at.tzinfo is None:
        viewed_at = viewed_at.replace(tzinfo=timezone.utc)
    view = models.BlogPostView(
        post_id=post_id,
        ip_hash=ip_hash,
        user_agent=user_agent,
        view_date=viewed_at.astimezone(timezone.utc).date(),
        viewed_at=viewed_at,
    )
    db.add(view)
    db.commit()
    return view


def add_daily(
    db: Session,
    post_id: str,
    day: date,
    view_count: int,
    unique_visitors: int | None = None,
    device_stats: dict | None = None,
) -> models.BlogPostViewsDaily:
    row = models.BlogPostViewsDaily(
        post_id=post_id,
        date=day,
        view_count=view_count,
        unique_visitors=view_count if unique_visitors is None else unique_visitors,
        device_stats=device_stats if device_stats is not None else {"desktop_windows": view_count},
    )
    db.add(row)
    db.commit()
    return row


def add_monthly(db: Session, post_id: str, year_month: str, view_count: int) -> models.BlogPostViewsMonthly:
    row = models.BlogPostViewsMonthly(
        post_id=post_id,
        year_month=year_month,
        view_count=view_count,
        unique_visitors=view_count,
        device_stats={"desktop_windows": view_count},
    )
    db.add(row)
    db.commit()
    return row
