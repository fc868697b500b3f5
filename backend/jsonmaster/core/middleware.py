"""
Request middleware and exception handlers.

Every request carries a correlation ID bound into structlog context;
AppError and unexpected exceptions are rendered as the same JSON error
envelope.
"""

from __future__ import annotations

import time
import uuid
from collections.abc import Awaitable, Callable

import structlog
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.middleware.base import BaseHTTPMiddleware

from jsonmaster.core.errors import AppError, ErrorCode

_log = structlog.get_logger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"


def _correlation_headers(request: Request) -> dict[str, str]:
    return {CORRELATION_HEADER: getattr(request.state, "correlation_id", "")}


class CorrelationIDMiddleware(BaseHTTPMiddleware):
    """
    Tag each request with a correlation ID.

    Reuses an incoming ``X-Correlation-ID`` header or generates a UUID4, binds
    it to structlog contextvars and echoes it on the response. For streamed
    responses the completion log marks when headers went out, not when the
    body finished.
    """

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            correlation_id=correlation_id,
            method=request.method,
            path=request.url.path,
        )
        request.state.correlation_id = correlation_id

        started = time.perf_counter()
        response = await call_next(request)
        response.headers[CORRELATION_HEADER] = correlation_id
        _log.info(
            "request_completed",
            status_code=response.status_code,
            duration_ms=int((time.perf_counter() - started) * 1000),
        )
        return response


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    _log.warning(
        "application_error",
        error_code=exc.code.value,
        message=exc.message,
        http_status=exc.http_status,
    )
    return JSONResponse(
        status_code=exc.http_status,
        content=exc.to_dict(),
        headers=_correlation_headers(request),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log the failure and answer with a generic 500; no internals leak out."""
    _log.exception("unhandled_exception", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": ErrorCode.INTERNAL_ERROR.value,
                "message": "An unexpected internal error occurred.",
                "detail": {},
            }
        },
        headers=_correlation_headers(request),
    )


async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    _log.warning("rate_limited", limit=str(exc.detail))
    return JSONResponse(
        status_code=429,
        content={
            "error": {
                "code": ErrorCode.RATE_LIMITED.value,
                "message": "Too many requests.",
                "detail": {"limit": str(exc.detail)},
            }
        },
        headers=_correlation_headers(request),
    )
