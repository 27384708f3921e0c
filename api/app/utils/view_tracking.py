"""
View tracking utility module.

Records blog post page views with bot filtering and per-visitor-per-day
deduplication. Raw IP addresses never reach the database: each view stores a
SHA256 digest of (IP, post, local date), which rotates daily on its own.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone

from fastapi import Request
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from .. import models, settings
from .device_detection import is_bot_user_agent
from .local_time import local_today

logger = logging.getLogger(__name__)

REASON_BOT = "bot"
REASON_ALREADY_COUNTED = "already_counted"


class ViewRecordingError(Exception):
    """Raised when a view could not be persisted. Carries no database detail."""


@dataclass
class ViewRecordResult:
    """Outcome of a record_view call."""

    counted: bool
    reason: str | None = None


def get_client_ip(request: Request) -> str:
    """
    Extract client IP address from request, handling proxies.

    Checks X-Forwarded-For header first (for reverse proxy setups),
    then X-Real-IP, then falls back to direct client IP.

    Args:
        request: FastAPI Request object

    Returns:
        IP address string, "unknown" if nothing is available
    """
    # X-Forwarded-For can contain multiple IPs; take the first one
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first

    real_ip = request.headers.get("X-Real-IP")
    if real_ip and real_ip.strip():
        return real_ip.strip()

    if request.client:
        return request.client.host

    return "unknown"


def hash_ip(ip: str) -> str:
    """Plain SHA256 of an IP, for keys (rate limiting) that must not hold raw addresses."""
    if not ip:
        ip = "unknown"
    return hashlib.sha256(ip.encode("utf-8")).hexdigest()


def hash_view_ip(ip: str, post_id: str, day: date) -> str:
    """
    Create the per-day, per-post SHA256 digest of a client IP.

    Args:
        ip: IPv4 or IPv6 address string
        post_id: Blog post identifier
        day: Local calendar date of the view

    Returns:
        64-character hex string
    """
    if not ip:
        ip = "unknown"
    payload = f"{ip}-{post_id}-{day.isoformat()}"
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def record_view(
    db: Session,
    post_id: str,
    user_agent: str | None,
    client_ip: str,
    now: datetime | None = None,
) -> ViewRecordResult:
    """
    Record a page view for a blog post.

    Bots are rejected before any hashing or database work. Deduplication is
    enforced by the unique (post_id, ip_hash, view_date) constraint: a second
    view from the same visitor on the same local day fails the insert and is
    reported as already counted.

    Args:
        db: Database session
        post_id: Blog post identifier
        user_agent: User-Agent header (truncated before storage)
        client_ip: Client IP address (hashed, never stored)
        now: Override for the current time (UTC)

    Returns:
        ViewRecordResult

    Raises:
        ViewRecordingError: If the view could not be persisted
    """
    if is_bot_user_agent(user_agent):
        logger.debug(f"Skipping bot view for post {post_id}")
        return ViewRecordResult(counted=False, reason=REASON_BOT)

    if now is None:
        now = datetime.now(timezone.utc)
    view_date = local_today(now)
    ip_hash = hash_view_ip(client_ip, post_id, view_date)

    view = models.BlogPostView(
        post_id=post_id,
        ip_hash=ip_hash,
        user_agent=(user_agent or "")[: settings.VIEW_USER_AGENT_MAX_LENGTH],
        view_date=view_date,
        viewed_at=now,
    )

    try:
        db.add(view)
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.debug(f"View for post {post_id} already counted on {view_date}")
        return ViewRecordResult(counted=False, reason=REASON_ALREADY_COUNTED)
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning(f"Failed to record view for post {post_id}: {e}", exc_info=True)
        raise ViewRecordingError("Failed to record view") from e

    logger.info(f"Recorded view for post {post_id} on {view_date}")
    return ViewRecordResult(counted=True)
