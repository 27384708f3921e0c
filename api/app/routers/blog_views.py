"""Public blog post view counting endpoint."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from .. import schemas, settings
from ..deps import get_db
from ..services.rate_limit import RateLimitStore, check_rate_limit, get_rate_limit_store
from ..utils.view_tracking import (
    ViewRecordingError,
    get_client_ip,
    hash_ip,
    record_view,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/blog", tags=["Blog Views"])


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=schemas.ErrorResponse(error=message).model_dump(),
    )


@router.post(
    "/view",
    response_model=schemas.RecordViewResponse,
    response_model_exclude_none=True,
    responses={
        400: {"model": schemas.ErrorResponse},
        429: {"model": schemas.ErrorResponse},
        500: {"model": schemas.ErrorResponse},
    },
)
def track_blog_view(
    payload: schemas.RecordViewRequest,
    request: Request,
    db: Session = Depends(get_db),
    rate_limit_store: RateLimitStore = Depends(get_rate_limit_store),
):
    """
    Count a page view of a blog post.

    Called by the article page after render; the page never waits on or
    surfaces the result. Bots and repeat views from the same visitor on the
    same day are acknowledged without being counted.

    **Public endpoint** - No authentication required.
    """
    if not payload.post_id:
        return _error(status.HTTP_400_BAD_REQUEST, "postId is required")

    client_ip = get_client_ip(request)

    allowed, _ = check_rate_limit(
        rate_limit_store,
        f"ratelimit:blog_view:{hash_ip(client_ip)}",
        settings.VIEW_RATE_LIMIT_PER_MINUTE,
    )
    if not allowed:
        logger.debug(f"Rate limited view for post {payload.post_id}")
        return _error(status.HTTP_429_TOO_MANY_REQUESTS, "rate_limited")

    try:
        result = record_view(
            db,
            payload.post_id,
            request.headers.get("User-Agent"),
            client_ip,
        )
    except ViewRecordingError:
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")

    return schemas.RecordViewResponse(counted=result.counted, reason=result.reason)
