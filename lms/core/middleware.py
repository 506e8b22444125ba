import logging
import time
import uuid
from typing import Callable, Iterable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from lms.core.logging_utils import error_tracker, request_id_var

logger = logging.getLogger(__name__)

DEFAULT_EXCLUDE_PATHS = ("/health", "/api/v1/health", "/docs", "/openapi.json", "/redoc")

REQUEST_ID_HEADER = "X-Request-ID"


def client_ip(request: Request) -> str:
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    return request.headers.get("x-real-ip") or (request.client.host if request.client else "unknown")


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Assigns a request id (or adopts the caller's X-Request-ID), logs the
    request outcome and flags slow requests and 5xx responses.

    The id is published through ``request_id_var`` so that service logs
    written while handling the request carry it.
    """

    def __init__(
        self,
        app: ASGIApp,
        exclude_paths: Optional[Iterable[str]] = None,
        slow_request_threshold: float = 1.0,
    ):
        super().__init__(app)
        self.exclude_paths = set(exclude_paths or DEFAULT_EXCLUDE_PATHS)
        self.slow_request_threshold = slow_request_threshold  # seconds

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:8]
        request.state.request_id = request_id
        token = request_id_var.set(request_id)
        quiet = request.url.path in self.exclude_paths
        started = time.time()

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                f"Request failed: {request.method} {request.url.path}",
                extra={
                    "request_id": request_id,
                    "method": request.method,
                    "path": request.url.path,
                    "duration_ms": round((time.time() - started) * 1000, 2),
                    "error_type": type(e).__name__,
                },
            )
            raise
        finally:
            request_id_var.reset(token)

        duration = time.time() - started
        context = {
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "duration_ms": round(duration * 1000, 2),
        }

        if not quiet:
            logger.info(
                f"{request.method} {request.url.path} -> {response.status_code}",
                extra={**context, "client_ip": client_ip(request)},
            )
        if duration > self.slow_request_threshold:
            logger.warning(
                f"Slow request: {request.method} {request.url.path}",
                extra={**context, "category": "performance"},
            )
        if response.status_code >= 500:
            error_tracker.track_error(
                f"HTTP_{response.status_code}", f"HTTP {response.status_code} response", context
            )

        response.headers[REQUEST_ID_HEADER] = request_id
        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        # Responses carry billing data
        response.headers["Cache-Control"] = "no-store"
        return response


def setup_middleware(app, config: dict = None):
    """Register middleware; starlette runs the last one added first"""
    config = config or {}

    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        RequestContextMiddleware,
        exclude_paths=config.get("exclude_paths", DEFAULT_EXCLUDE_PATHS),
        slow_request_threshold=config.get("slow_request_threshold", 1.0),
    )

    logger.info("Middleware configured")
