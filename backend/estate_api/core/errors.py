"""
Error taxonomy and the global exception handlers.

Every failure leaves the API as the same envelope:

    {"success": false, "error": {"code", "message", "details"?}, "timestamp"}

Handlers map each failure to exactly one ErrorCode. Nothing is retried.
"""

import logging
import re
import traceback
from enum import Enum
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from estate_api.core.config import settings
from estate_api.core.responses import utc_timestamp

logger = logging.getLogger(__name__)


class ErrorCode(str, Enum):
    """Fixed vocabulary of error codes returned to clients."""
    NOT_FOUND = "NOT_FOUND"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    DUPLICATE_FIELD = "DUPLICATE_FIELD"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    FILE_TOO_LARGE = "FILE_TOO_LARGE"
    TOO_MANY_FILES = "TOO_MANY_FILES"
    INVALID_FILE_FIELD = "INVALID_FILE_FIELD"


class EstateAPIError(Exception):
    """Base exception for the API. Carries its own code and HTTP status."""

    code = ErrorCode.INTERNAL_ERROR
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None, details: Optional[list[dict]] = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


class NotFoundError(EstateAPIError):
    code = ErrorCode.NOT_FOUND
    status_code = 404
    default_message = "Resource not found"


class ValidationFailed(EstateAPIError):
    code = ErrorCode.VALIDATION_ERROR
    status_code = 400
    default_message = "Invalid input data"


class DuplicateFieldError(EstateAPIError):
    code = ErrorCode.DUPLICATE_FIELD
    status_code = 400
    default_message = "Duplicate field value"


class UnauthorizedError(EstateAPIError):
    code = ErrorCode.UNAUTHORIZED
    status_code = 401
    default_message = "Authentication required"


class ForbiddenError(EstateAPIError):
    code = ErrorCode.FORBIDDEN
    status_code = 403
    default_message = "Insufficient permissions"


class RateLimitExceeded(EstateAPIError):
    """Reserved for the upstream rate limiter so its rejections share the envelope."""
    code = ErrorCode.RATE_LIMIT_EXCEEDED
    status_code = 429
    default_message = "Too many requests, please try again later"


_HTTP_STATUS_CODES = {
    401: ErrorCode.UNAUTHORIZED,
    403: ErrorCode.FORBIDDEN,
    404: ErrorCode.NOT_FOUND,
    429: ErrorCode.RATE_LIMIT_EXCEEDED,
}


def error_body(
    code: ErrorCode,
    message: str,
    details: Optional[list[dict]] = None,
    exc: Optional[BaseException] = None,
) -> dict[str, Any]:
    """Build the failure envelope."""
    error: dict[str, Any] = {"code": code.value, "message": message}
    if details:
        error["details"] = details
    if exc is not None and settings.is_development:
        error["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return {"success": False, "error": error, "timestamp": utc_timestamp()}


def error_response(
    status_code: int,
    code: ErrorCode,
    message: str,
    details: Optional[list[dict]] = None,
    exc: Optional[BaseException] = None,
) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=error_body(code, message, details, exc))


def _duplicate_field(exc: IntegrityError) -> Optional[str]:
    """
    Pull the offending column out of a unique-constraint violation.

    Postgres: 'Key (email)=(a@b.com) already exists.'
    SQLite:   'UNIQUE constraint failed: users.email'
    """
    text = str(exc.orig) if exc.orig is not None else str(exc)
    match = re.search(r"Key \((\w+)\)=", text)
    if match:
        return match.group(1)
    match = re.search(r"UNIQUE constraint failed: \w+\.(\w+)", text)
    if match:
        return match.group(1)
    if "unique" in text.lower() or "duplicate" in text.lower():
        return ""
    return None


async def api_error_handler(request: Request, exc: EstateAPIError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return error_response(exc.status_code, exc.code, exc.message, exc.details, exc)


async def request_validation_handler(request: Request, exc: RequestValidationError):
    details = []
    for err in exc.errors():
        # Drop the leading 'body'/'query'/'path' location segment
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        details.append({"field": ".".join(loc), "message": err.get("msg", "Invalid value")})
    return error_response(400, ErrorCode.VALIDATION_ERROR, "Invalid input data", details)


async def integrity_error_handler(request: Request, exc: IntegrityError):
    field = _duplicate_field(exc)
    if field is None:
        logger.exception(f"Integrity error on {request.method} {request.url.path}")
        return error_response(500, ErrorCode.INTERNAL_ERROR, "Internal server error", exc=exc)
    if field:
        message = f"{field[:1].upper()}{field[1:]} already exists"
        details = [{"field": field, "message": f"{field} already exists"}]
    else:
        message = "Duplicate field value"
        details = None
    return error_response(400, ErrorCode.DUPLICATE_FIELD, message, details)


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    code = _HTTP_STATUS_CODES.get(exc.status_code, ErrorCode.INTERNAL_ERROR)
    if exc.status_code == 404 and exc.detail == "Not Found":
        message = f"Route {request.url.path} not found"
    else:
        message = str(exc.detail)
    return error_response(exc.status_code, code, message)


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return error_response(500, ErrorCode.INTERNAL_ERROR, "Internal server error", exc=exc)


def register_exception_handlers(app: FastAPI) -> None:
    """Install the handlers that turn every failure into the error envelope."""
    app.add_exception_handler(EstateAPIError, api_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
