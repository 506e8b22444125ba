"""
FastAPI exception handlers.

Every error response has the same body:

    {"error": <error_code>, "message": str, "details": dict, "path": str}
"""

import json
import logging
import re
import traceback
from typing import Union
from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import (
    SQLAlchemyError,
    IntegrityError,
    OperationalError,
    TimeoutError,
    DisconnectionError,
)
from starlette.exceptions import HTTPException as StarletteHTTPException
from asyncpg.exceptions import (
    PostgresError,
    ConnectionFailureError,
    ConnectionDoesNotExistError,
    TooManyConnectionsError,
)

from lms.core.config import DEBUG
from lms.core.exceptions import (
    BaseAppException,
    DatabaseError,
    DatabaseConnectionError,
    DatabaseTimeoutError,
    DatabaseIntegrityError,
)
from lms.core.logging_utils import error_tracker

logger = logging.getLogger(__name__)

# Constraint violations that reach the handlers unconverted, with a readable cause
KNOWN_CONSTRAINTS = {
    "uq_students_email": "A student with this email already exists",
    "ck_payments_amount_positive": "Payment amount must be positive",
}

_CONSTRAINT_PATTERNS = (
    re.compile(r'constraint "([^"]+)"'),
    re.compile(r"CHECK constraint failed: (\w+)"),
    re.compile(r"UNIQUE constraint failed: ([\w.]+)"),
)


def _error_body(request: Request, error: str, message: str, details) -> dict:
    return {
        "error": error,
        "message": message,
        "details": jsonable_encoder(details),
        "path": request.url.path,
    }


def _constraint_name(exc: IntegrityError) -> str:
    orig = exc.orig
    name = getattr(orig, "constraint_name", None) or getattr(
        getattr(orig, "__cause__", None), "constraint_name", None
    )
    if name:
        return name
    for pattern in _CONSTRAINT_PATTERNS:
        match = pattern.search(str(orig))
        if match:
            return match.group(1)
    return "unknown"


async def app_exception_handler(
    request: Request, exc: BaseAppException
) -> JSONResponse:
    """Application exceptions; 4xx log as warnings, 5xx as errors"""

    log_level = logging.WARNING if exc.status_code < 500 else logging.ERROR
    logger.log(
        log_level,
        f"App exception: {exc.error_code} - {exc.message}",
        extra={
            "error_code": exc.error_code,
            "status_code": exc.status_code,
            "details": exc.details,
            "path": request.url.path,
            "method": request.method,
        },
    )
    if exc.status_code >= 500:
        error_tracker.track_error(exc.error_code, exc.message, {"path": request.url.path})

    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(request, exc.error_code, exc.message, exc.details),
    )


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    """Routing errors (unknown path, wrong method) and explicit HTTPExceptions"""

    logger.warning(
        f"HTTP exception: {exc.status_code} - {exc.detail}",
        extra={"status_code": exc.status_code, "path": request.url.path, "method": request.method},
    )

    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(request, "HTTP_ERROR", str(exc.detail), {}),
        headers=getattr(exc, "headers", None),
    )


def _safe_input(value):
    if value is None:
        return None
    try:
        json.dumps(value)
        return value
    except (TypeError, ValueError):
        return str(value)


async def validation_exception_handler(
    request: Request, exc: Union[RequestValidationError, PydanticValidationError]
) -> JSONResponse:
    """Request body/query validation errors, reported per field"""

    fields = [
        {
            "field": " -> ".join(str(loc) for loc in error.get("loc", [])),
            "message": error.get("msg", "Validation error"),
            "type": error.get("type", "value_error"),
            "input": _safe_input(error.get("input")),
        }
        for error in exc.errors()
    ]

    logger.warning(
        f"Validation error: {len(fields)} field(s)",
        extra={"errors": fields, "path": request.url.path, "method": request.method},
    )

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=_error_body(
            request,
            "VALIDATION_ERROR",
            f"Validation failed for {len(fields)} field(s)",
            {"fields": fields},
        ),
    )


async def database_exception_handler(
    request: Request, exc: SQLAlchemyError
) -> JSONResponse:
    """SQLAlchemy errors mapped onto application exceptions"""

    if isinstance(exc, IntegrityError):
        constraint = _constraint_name(exc)
        app_exc = DatabaseIntegrityError(constraint)
        if constraint in KNOWN_CONSTRAINTS:
            app_exc.message = KNOWN_CONSTRAINTS[constraint]
    elif isinstance(exc, (OperationalError, DisconnectionError)):
        app_exc = DatabaseConnectionError("Database connection lost")
    elif isinstance(exc, TimeoutError):
        app_exc = DatabaseTimeoutError("database_operation", 30)
    else:
        app_exc = DatabaseError()

    logger.error(
        f"Database exception: {type(exc).__name__} - {str(exc)}",
        extra={"exception_type": type(exc).__name__, "path": request.url.path},
    )

    return await app_exception_handler(request, app_exc)


async def postgres_exception_handler(
    request: Request, exc: PostgresError
) -> JSONResponse:
    """asyncpg errors that escaped SQLAlchemy's wrapping"""

    if isinstance(exc, (ConnectionFailureError, ConnectionDoesNotExistError)):
        app_exc = DatabaseConnectionError("PostgreSQL connection failed")
    elif isinstance(exc, TooManyConnectionsError):
        app_exc = DatabaseConnectionError("Too many database connections")
    else:
        app_exc = DatabaseError(
            "PostgreSQL error", details={"postgres_code": getattr(exc, "sqlstate", "unknown")}
        )

    logger.error(
        f"PostgreSQL exception: {type(exc).__name__} - {str(exc)}",
        extra={"exception_type": type(exc).__name__, "path": request.url.path},
    )

    return await app_exception_handler(request, app_exc)


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        f"Unhandled exception: {type(exc).__name__} - {str(exc)}",
        extra={
            "exception_type": type(exc).__name__,
            "path": request.url.path,
            "method": request.method,
            "traceback": traceback.format_exc(),
        },
    )
    error_tracker.track_error(
        f"UNHANDLED_{type(exc).__name__}",
        str(exc),
        {"path": request.url.path, "method": request.method},
    )

    # Tracebacks only leave the process in debug mode
    details = {}
    if DEBUG:
        details = {"exception_type": type(exc).__name__, "traceback": traceback.format_exc()}

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body(
            request, "INTERNAL_SERVER_ERROR", "An unexpected error occurred", details
        ),
    )


def setup_exception_handlers(app):
    app.add_exception_handler(BaseAppException, app_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(PydanticValidationError, validation_exception_handler)
    app.add_exception_handler(SQLAlchemyError, database_exception_handler)
    app.add_exception_handler(PostgresError, postgres_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    logger.info("Exception handlers registered")
