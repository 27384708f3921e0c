"""Security middleware for the API."""

from __future__ import annotations

import logging
import os
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from . import settings

logger = logging.getLogger(__name__)

ADMIN_PATH_PREFIX = "/api/admin"


class AdminApiGateMiddleware(BaseHTTPMiddleware):
    """
    Hide the admin API entirely when ADMIN_API_ENABLED is false.

    Deployments that only run admin tooling locally answer 404 for every
    /api/admin path, before authentication is even attempted.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if not settings.ADMIN_API_ENABLED and request.url.path.startswith(ADMIN_PATH_PREFIX):
            logger.debug(f"Admin API disabled, rejecting {request.method} {request.url.path}")
            return Response(status_code=404)
        return await call_next(request)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Add security headers to all responses.

    Implements OWASP recommended security headers to protect against
    common web vulnerabilities.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        # Prevent MIME type sniffing
        response.headers["X-Content-Type-Options"] = "nosniff"

        # Prevent clickjacking
        response.headers["X-Frame-Options"] = "DENY"

        # Referrer policy - only send origin on cross-origin requests
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        # HSTS - Force HTTPS in production
        environment = os.getenv("ENVIRONMENT", "development")
        if environment == "production" or request.url.scheme == "https":
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains; preload"
            )

        # The API only serves JSON
        response.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none'"

        # Admin responses carry analytics data and must not be cached by proxies
        if request.url.path.startswith(ADMIN_PATH_PREFIX):
            response.headers["Cache-Control"] = "no-store"

        return response
