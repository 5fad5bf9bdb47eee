"""FastAPI application for the Karat assistant API.

Provides the main application instance with routers, middleware,
and exception handlers configured.
"""

import logging
import os
import sys
import time as _time
from contextlib import asynccontextmanager
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as _pkg_version

from fastapi import FastAPI, Request

# Configure logging to stdout for uvicorn to capture
logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s:%(name)s:%(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
# Ensure our application loggers are captured
logging.getLogger("karat").setLevel(logging.INFO)
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from karat.api.routes import actions, bills, chat, settings
from karat.db.connection import get_db_context, init_db
from karat.errors import KaratError, format_error

logger = logging.getLogger(__name__)

_startup_time: float = 0.0


def _parse_allowed_origins() -> list[str]:
    """Parse comma-separated CORS allowlist from ALLOWED_ORIGINS env var."""
    raw = os.environ.get("ALLOWED_ORIGINS", "").strip()
    if not raw:
        return []
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables on startup."""
    global _startup_time
    _startup_time = _time.time()
    init_db()
    logger.info("Karat API started")
    yield
    logger.info("Karat API stopped")


app = FastAPI(
    title="Karat API",
    description="Conversational invoicing assistant for jewelry shops",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS allowlist is env-driven. If unset, CORS is disabled (same-origin only).
allowed_origins = _parse_allowed_origins()
if allowed_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
        allow_headers=["Content-Type", "X-User-Id"],
    )


@app.exception_handler(KaratError)
async def karat_error_handler(request: Request, exc: KaratError) -> JSONResponse:
    """Render a KaratError as its coded JSON body and registry status."""
    logger.info(
        "%s %s failed: %s",
        request.method,
        request.url.path,
        format_error(exc, include_remediation=False),
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_response_body())


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Turn anything unexpected into a coded 500 without leaking internals."""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    error = KaratError.from_code("E-4001", error="please try again later")
    return JSONResponse(status_code=error.status_code, content=error.to_response_body())


# Include routers
app.include_router(chat.router, prefix="/api/v1")
app.include_router(actions.router, prefix="/api/v1")
app.include_router(bills.router, prefix="/api/v1")
app.include_router(settings.router, prefix="/api/v1")


@app.get("/health")
def health_check() -> dict:
    """Health check endpoint with database status.

    Returns:
        Dictionary with health status and uptime.
    """
    uptime = int(_time.time() - _startup_time) if _startup_time else 0

    try:
        with get_db_context() as db:
            db.execute(text("SELECT 1"))
        database = "ok"
    except SQLAlchemyError as exc:
        logger.warning("Health check database query failed: %s", exc)
        database = "error"

    try:
        version = _pkg_version("karat-assistant")
    except PackageNotFoundError:
        version = "unknown"

    return {
        "status": "healthy" if database == "ok" else "degraded",
        "version": version,
        "uptime_seconds": uptime,
        "database": database,
    }
