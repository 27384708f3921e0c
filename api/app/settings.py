"""Centralized environment-driven settings.

Keep this module lightweight: stdlib only, no app imports, to avoid circular deps.
"""

from __future__ import annotations

import os


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _list_env(name: str) -> list[str]:
    raw = os.getenv(name, "")
    return [item.strip() for item in raw.split(",") if item.strip()]


# Shared secret for scheduled/automated callers of the aggregation endpoint.
# Unset disables bearer-key auth entirely (admin sessions still work).
ANALYTICS_API_KEY: str | None = os.getenv("ANALYTICS_API_KEY") or None

# Admin console access: session JWTs issued by the identity provider, checked
# against a case-insensitive email allowlist.
ADMIN_EMAILS: list[str] = _list_env("ADMIN_EMAILS")
ADMIN_SESSION_SECRET: str | None = os.getenv("ADMIN_SESSION_SECRET") or None
ADMIN_SESSION_ALGORITHM: str = os.getenv("ADMIN_SESSION_ALGORITHM", "HS256")
ADMIN_SESSION_COOKIE: str = os.getenv("ADMIN_SESSION_COOKIE", "session")

# IANA zone that defines a "day" for dedup, rollups and retention.
ANALYTICS_TIMEZONE: str = os.getenv("ANALYTICS_TIMEZONE", "UTC")

# Raw view rows older than this many days are deleted by the cleanup job.
RAW_VIEW_RETENTION_DAYS: int = _int_env("RAW_VIEW_RETENTION_DAYS", 90)

VIEW_USER_AGENT_MAX_LENGTH: int = _int_env("VIEW_USER_AGENT_MAX_LENGTH", 500)

# Per-IP budget for POST /api/blog/view.
VIEW_RATE_LIMIT_PER_MINUTE: int = _int_env("VIEW_RATE_LIMIT_PER_MINUTE", 60)

# Unset means rate limiting uses the in-process store.
REDIS_URL: str | None = os.getenv("REDIS_URL") or None

RUN_MIGRATIONS_ON_STARTUP: bool = _bool_env("RUN_MIGRATIONS_ON_STARTUP", True)

# False answers 404 on every /api/admin path (admin tooling run locally only).
ADMIN_API_ENABLED: bool = _bool_env("ADMIN_API_ENABLED", True)
