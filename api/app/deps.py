"""Request-scoped FastAPI dependencies."""

from __future__ import annotations

from typing import Generator

from fastapi import Depends
from sqlalchemy.orm import Session

from .db import get_session
from .services.view_stats import ViewStatsService


def get_db() -> Generator[Session, None, None]:
    yield from get_session()


def get_view_stats(db: Session = Depends(get_db)) -> ViewStatsService:
    return ViewStatsService(db)
