"""
Attendance engine - FastAPI application
"""
import logging
from urllib.parse import urlparse

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError

from attendance_engine.api.router import api_router
from attendance_engine.core.config import settings
from attendance_engine.core.errors import (
    generic_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)
from attendance_engine.core.logging import setup_logging
from attendance_engine.db.session import init_sqlite_schema

setup_logging()
logger = logging.getLogger(__name__)


def _safe_database_url(url: str) -> str:
    """DATABASE_URL with the password replaced, for startup logs."""
    parsed = urlparse(url)
    if not parsed.password:
        return url
    return url.replace(f":{parsed.password}@", ":****@", 1)


app = FastAPI(
    title="Attendance Engine",
    description="Work sessions, breaks and daily attendance finalization",
    version=settings.VERSION or "1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_allowed_origins_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


async def database_error_handler(request: Request, exc: OperationalError) -> JSONResponse:
    """Storage failures surface as 503 so clients retry; a missing table means migrations were skipped."""
    logger.error("Database error on %s: %s", request.url.path, exc.orig)
    detail = "Database unavailable"
    if "no such table" in str(exc).lower() or "does not exist" in str(exc).lower():
        detail = "Database schema missing: run alembic upgrade head"
    return JSONResponse(
        status_code=503,
        content={"error": True, "status_code": 503, "detail": detail, "path": str(request.url.path)},
    )


app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(OperationalError, database_error_handler)
app.add_exception_handler(Exception, generic_exception_handler)

app.include_router(api_router, prefix="/api/v1")


@app.on_event("startup")
def on_startup() -> None:
    logger.info(
        "Starting attendance engine: env=%s database=%s org_timezone=%s",
        settings.APP_ENV, _safe_database_url(settings.DATABASE_URL), settings.ORG_TIMEZONE,
    )
    init_sqlite_schema()
