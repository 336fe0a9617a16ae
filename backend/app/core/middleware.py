"""
Maintrack - HTTP Middleware

RequestLoggingMiddleware   request id, timing headers, one log line per request
SecurityHeadersMiddleware  static hardening headers
RequestSizeLimitMiddleware 413 before a large body is read
"""

import time
from typing import Callable, Dict, FrozenSet

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp

from app.core.exceptions import MaintrackError, error_response
from app.core.logging_config import (
    clear_context,
    logger,
    new_request_id,
    set_partition_year,
    set_request_id,
)


QUIET_PATHS: FrozenSet[str] = frozenset({
    "/",
    "/health",
    "/health/live",
    "/docs",
    "/redoc",
    "/openapi.json",
    "/favicon.ico",
})


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Tags the request with an id (the caller's X-Request-ID when sent)
    and the partition year from ``?year=``, then logs the outcome.
    Probe and docs paths are timed but not logged.
    """

    def __init__(self, app: ASGIApp, slow_request_ms: float = 1000):
        super().__init__(app)
        self.slow_request_ms = slow_request_ms

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or new_request_id()
        set_request_id(request_id)
        if "year" in request.query_params:
            set_partition_year(request.query_params["year"])

        path = request.url.path
        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as exc:
            logger.log_error_with_context(exc, context=f"{request.method} {path}")
            raise
        else:
            elapsed_ms = (time.perf_counter() - started) * 1000
            response.headers["X-Request-ID"] = request_id
            response.headers["X-Response-Time"] = f"{elapsed_ms:.2f}ms"
            if path not in QUIET_PATHS:
                logger.log_request(request.method, path, response.status_code, elapsed_ms,
                                   slow_ms=self.slow_request_ms)
            return response
        finally:
            clear_context()


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    HEADERS: Dict[str, str] = {
        "X-Content-Type-Options": "nosniff",
        "X-Frame-Options": "DENY",
        "Referrer-Policy": "no-referrer",
        "Cache-Control": "no-store",
    }

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)
        for name, value in self.HEADERS.items():
            response.headers.setdefault(name, value)
        return response


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """Rejects bodies whose declared Content-Length exceeds ``max_size`` bytes"""

    def __init__(self, app: ASGIApp, max_size: int):
        super().__init__(app)
        self.max_size = max_size

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        declared = request.headers.get("content-length", "")
        if declared.isdigit() and int(declared) > self.max_size:
            logger.warning(f"Rejected {declared}-byte body on {request.url.path} (limit {self.max_size})")
            error = MaintrackError(
                f"Request body exceeds {self.max_size // (1024 * 1024)}MB",
                code="PAYLOAD_TOO_LARGE",
                details={"max_size": self.max_size},
            )
            return JSONResponse(status_code=413, content=error_response(error))
        return await call_next(request)
