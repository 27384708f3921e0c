"""Liveness and readiness probes."""

from __future__ import annotations

import logging
import time

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .. import schemas, settings
from ..cache import get_redis_client
from ..deps import get_db

router = APIRouter(prefix="", tags=["System"])
logger = logging.getLogger(__name__)

_STARTED_AT = time.monotonic()


@router.get("/health", response_model=schemas.HealthResponse)
def get_health() -> schemas.HealthResponse:
    """Liveness: the process is up and serving requests."""
    return schemas.HealthResponse(uptime_s=time.monotonic() - _STARTED_AT)


@router.get(
    "/health/ready",
    response_model=schemas.ReadinessResponse,
    responses={503: {"model": schemas.ReadinessResponse}},
)
def get_readiness(db: Session = Depends(get_db)) -> JSONResponse:
    """
    Readiness: the database answers, and so does Redis when REDIS_URL is set.

    Answers 503 with per-component status when a required dependency is down.
    """
    checks: dict[str, str] = {}

    try:
        db.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except SQLAlchemyError as e:
        logger.error(f"Readiness: database check failed: {e}")
        checks["database"] = "unavailable"

    if settings.REDIS_URL:
        checks["redis"] = "ok" if get_redis_client() is not None else "unavailable"
    else:
        checks["redis"] = "disabled"

    ready = "unavailable" not in checks.values()
    body = schemas.ReadinessResponse(status="ok" if ready else "unavailable", checks=checks)
    return JSONResponse(
        status_code=status.HTTP_200_OK if ready else status.HTTP_503_SERVICE_UNAVAILABLE,
        content=body.model_dump(),
    )
