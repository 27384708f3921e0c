from __future__ import annotations

from dotenv import load_dotenv

# Settings are read at import time, so the environment must be complete first
load_dotenv()

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from alembic import command
from alembic.config import Config
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from . import settings
from .middleware import AdminApiGateMiddleware, SecurityHeadersMiddleware
from .routers import analytics, blog_views, system

logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
logger = logging.getLogger(__name__)

_STARTUP_COMPLETE = False


def _alembic_config() -> Config:
    base_dir = Path(__file__).resolve().parent.parent
    cfg = Config(str(base_dir / "alembic.ini"))
    cfg.set_main_option("script_location", str(base_dir / "alembic"))
    return cfg


def run_migrations() -> None:
    logger.info("run_migrations: Starting...")
    try:
        alembic_cfg = _alembic_config()

        from alembic.runtime.migration import MigrationContext
        from alembic.script import ScriptDirectory
        from .db import engine

        try:
            with engine.connect() as connection:
                context = MigrationContext.configure(connection)
                current_heads = set(context.get_current_heads())
                heads = set(ScriptDirectory.from_config(alembic_cfg).get_heads())
                if current_heads and current_heads == heads:
                    logger.info(f"Database is up to date (revision: {', '.join(heads)}), skipping migrations.")
                    return
                logger.info(f"Current revision(s): {current_heads or 'none'}, target: {heads}. Running migrations...")
        finally:
            # Ensure connection is closed before calling command.upgrade
            engine.dispose()

        command.upgrade(alembic_cfg, "head")
        logger.info("run_migrations: Completed successfully.")
    except Exception as e:
        logger.error(f"run_migrations: Error occurred: {e}", exc_info=True)
        raise


def run_startup_tasks() -> None:
    global _STARTUP_COMPLETE
    if _STARTUP_COMPLETE:
        logger.info("run_startup_tasks: Already completed, skipping.")
        return
    if settings.RUN_MIGRATIONS_ON_STARTUP:
        run_migrations()
    else:
        logger.info("run_startup_tasks: Migrations disabled by RUN_MIGRATIONS_ON_STARTUP")
    _STARTUP_COMPLETE = True
    logger.info("Startup tasks completed.")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting application...")
    # Server won't start until migrations complete
    run_startup_tasks()
    logger.info("Portfolio API server ready")
    yield
    logger.info("Shutting down application...")


app = FastAPI(
    title="Portfolio API",
    version="1.0.0",
    description="Portfolio and blog backend: view counting and analytics administration",
    lifespan=lifespan,
)


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed bodies and parameters are client errors (400), never 422."""
    first = exc.errors()[0] if exc.errors() else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    logger.debug(f"Rejected {request.method} {request.url.path}: {location} {message}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"success": False, "error": f"{location}: {message}" if location else message},
    )


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Log database failures in full; callers only see a generic message."""
    logger.error(f"Database error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "error": "Internal server error"},
    )


# In production, set CORS_ORIGINS environment variable to comma-separated list of allowed origins
cors_origins_str = os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost")
if cors_origins_str == "*":
    logger.warning(
        "CORS is configured to allow all origins. "
        "This is insecure for production. Set CORS_ORIGINS to specific domains."
    )
cors_origins = [origin.strip() for origin in cors_origins_str.split(",")]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "Accept", "Origin", "X-Requested-With"],
    max_age=600,  # Cache preflight requests for 10 minutes
)

app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(AdminApiGateMiddleware)


app.include_router(system.router)
app.include_router(blog_views.router)
app.include_router(analytics.router)
