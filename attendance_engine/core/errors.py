"""
Central error handling for the attendance engine.

Precondition violations are raised as AttendanceError subclasses. Each carries a
stable machine-readable ``code`` so clients can explain why a call was rejected;
the HTTP handler below renders it next to the human-readable detail.
"""
import logging
import traceback
from typing import Optional

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

_CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "*",
    "Access-Control-Allow-Headers": "*",
}


class AttendanceError(HTTPException):
    """Base class for attendance precondition violations."""

    code = "ATTENDANCE_ERROR"
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Attendance operation rejected"

    def __init__(self, detail: Optional[str] = None):
        super().__init__(status_code=self.status_code, detail=detail or self.default_detail)


class SessionAlreadyOpen(AttendanceError):
    code = "SESSION_ALREADY_OPEN"
    default_detail = "A session is already open for today"


class NoOpenSession(AttendanceError):
    code = "NO_OPEN_SESSION"
    default_detail = "No open session for today"


class BreakInProgress(AttendanceError):
    code = "BREAK_IN_PROGRESS"
    default_detail = "You are on a break; end the break before ending the session"


class NoActiveSession(AttendanceError):
    code = "NO_ACTIVE_SESSION"
    default_detail = "No active session to take a break from"


class BreakAlreadyOpen(AttendanceError):
    code = "BREAK_ALREADY_OPEN"
    default_detail = "You are already on a break"


class NoOpenBreak(AttendanceError):
    code = "NO_OPEN_BREAK"
    default_detail = "No open break to end"


class FutureTimestamp(AttendanceError):
    code = "FUTURE_TIMESTAMP"
    default_detail = "Event time cannot be in the future"


class LocationDetailsRequired(AttendanceError):
    code = "LOCATION_DETAILS_REQUIRED"
    default_detail = "Location details required for client site"


class InvalidResolution(AttendanceError):
    code = "INVALID_RESOLUTION"
    default_detail = "Record is not awaiting review"


class RecordNotFound(AttendanceError):
    code = "RECORD_NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Attendance record not found"


class ShiftPolicyNotFound(AttendanceError):
    code = "SHIFT_POLICY_NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "No shift policy assigned and no default shift configured"


class ConcurrentModification(AttendanceError):
    code = "CONCURRENT_MODIFICATION"
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Attendance record was modified concurrently; retry the request"


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """
    Handle HTTPException (including AttendanceError) with consistent JSON response format
    """
    content = {
        "error": True,
        "status_code": exc.status_code,
        "detail": exc.detail,
        "path": str(request.url.path),
    }
    code = getattr(exc, "code", None)
    if code:
        content["code"] = code
    return JSONResponse(
        status_code=exc.status_code,
        content=content,
        headers={**(exc.headers or {}), **_CORS_HEADERS},
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Handle RequestValidationError with consistent JSON response format

    Does not leak internal validation details in production.
    """
    from attendance_engine.core.config import settings

    if settings.APP_ENV == "prod":
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "error": True,
                "status_code": 422,
                "detail": "Validation error: Invalid request data",
                "path": str(request.url.path)
            }
        )

    # ctx may carry exception instances (e.g. ValueError) which are not JSON serializable
    errors = []
    for e in exc.errors():
        err = dict(e)
        if "ctx" in err and isinstance(err["ctx"], dict):
            err["ctx"] = {
                k: (str(v) if not isinstance(v, (str, int, float, bool, type(None))) else v)
                for k, v in err["ctx"].items()
            }
        errors.append(err)
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": True,
            "status_code": 422,
            "detail": "Validation error",
            "errors": errors,
            "path": str(request.url.path)
        }
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Handle unexpected exceptions with consistent JSON response format

    Does not leak internal error details in production.
    """
    from attendance_engine.core.config import settings

    logger.error("Unhandled exception: %s", exc, exc_info=True)

    if settings.APP_ENV == "prod":
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": True,
                "status_code": 500,
                "detail": "Internal server error",
                "path": str(request.url.path)
            },
            headers=_CORS_HEADERS,
        )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": True,
            "status_code": 500,
            "detail": str(exc),
            "path": str(request.url.path),
            "traceback": traceback.format_exc() if settings.APP_ENV == "local" else None
        },
        headers=_CORS_HEADERS,
    )
