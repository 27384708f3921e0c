from __future__ import annotations

import logging
import secrets

import jwt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from . import settings

logger = logging.getLogger(__name__)

# Security scheme for Bearer token (API key or admin session JWT)
bearer_scheme = HTTPBearer(auto_error=False)

CALLER_API_KEY = "api_key"
CALLER_ADMIN = "admin"


def get_allowed_admin_emails() -> list[str]:
    return [email.lower() for email in settings.ADMIN_EMAILS]


def is_admin_email(email: str | None) -> bool:
    """Check an email against the admin allowlist (case-insensitive)."""
    if not email:
        return False
    return email.lower() in get_allowed_admin_emails()


def is_analytics_api_key(token: str | None) -> bool:
    """Constant-time comparison against ANALYTICS_API_KEY; False when unset."""
    expected = settings.ANALYTICS_API_KEY
    if not expected or not token:
        return False
    return secrets.compare_digest(token.encode("utf-8"), expected.encode("utf-8"))


def decode_admin_session(token: str | None) -> str | None:
    """
    Verify a session JWT and return its email if it belongs to an admin.

    Returns None for missing, expired, malformed or non-admin sessions, and
    whenever session auth is not configured.
    """
    if not token or not settings.ADMIN_SESSION_SECRET:
        return None

    try:
        payload = jwt.decode(
            token,
            settings.ADMIN_SESSION_SECRET,
            algorithms=[settings.ADMIN_SESSION_ALGORITHM],
        )
    except jwt.InvalidTokenError:
        return None

    email = payload.get("email")
    if not isinstance(email, str) or not is_admin_email(email):
        return None
    return email


async def require_analytics_caller(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> str:
    """
    Allow either the scheduled-job API key or an authenticated admin session.

    The session may arrive as a Bearer token or in the session cookie.

    Returns:
        CALLER_API_KEY or CALLER_ADMIN
    """
    bearer_token = credentials.credentials if credentials else None

    if is_analytics_api_key(bearer_token):
        return CALLER_API_KEY

    for token in (bearer_token, request.cookies.get(settings.ADMIN_SESSION_COOKIE)):
        email = decode_admin_session(token)
        if email:
            logger.debug(f"Analytics request authorized for admin session {email}")
            return CALLER_ADMIN

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Unauthorized",
        headers={"WWW-Authenticate": "Bearer"},
    )
