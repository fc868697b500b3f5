"""
JsonMaster: FastAPI application factory.

Application lifecycle:
  create   → configure logging, wire middleware, routes and the session store
  startup  → log readiness
  shutdown → log
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from jsonmaster.api.v1.router import router as v1_router
from jsonmaster.config.logging_config import configure_logging
from jsonmaster.config.settings import Environment, Settings, get_settings
from jsonmaster.core.errors import AppError
from jsonmaster.core.middleware import (
    CORRELATION_HEADER,
    CorrelationIDMiddleware,
    app_error_handler,
    rate_limit_handler,
    unhandled_exception_handler,
)
from jsonmaster.services.text.session_store import TextSessionStore

_log = structlog.get_logger(__name__)


def _create_limiter(settings: Settings) -> Limiter:
    return Limiter(
        key_func=get_remote_address,
        default_limits=[settings.rate_limit_default],
        enabled=settings.rate_limit_enabled,
    )


def create_app(settings: Settings | None = None) -> FastAPI:
    """Application factory. Returns a configured FastAPI instance."""
    settings = settings or get_settings()
    configure_logging(log_level=settings.log_level.value, json_logs=settings.log_json)
    expose_docs = settings.environment != Environment.PRODUCTION

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        _log.info(
            "jsonmaster_ready",
            version=settings.app_version,
            environment=settings.environment.value,
            host=settings.host,
            port=settings.port,
        )
        yield
        _log.info("jsonmaster_shutdown")

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description=(
            "JsonMaster: compare JSON documents by record or by token stream, "
            "and page through line-by-line text diffs."
        ),
        debug=settings.debug,
        lifespan=lifespan,
        docs_url="/docs" if expose_docs else None,
        redoc_url="/redoc" if expose_docs else None,
        openapi_url="/openapi.json" if expose_docs else None,
    )
    app.state.settings = settings
    app.state.text_sessions = TextSessionStore(
        ttl_seconds=settings.text_session_ttl_seconds,
        max_entries=settings.text_session_max_entries,
    )

    # ── Rate Limiting ─────────────────────────────────────────────────── #
    app.state.limiter = _create_limiter(settings)
    app.add_exception_handler(RateLimitExceeded, rate_limit_handler)  # type: ignore[arg-type]
    app.add_middleware(SlowAPIMiddleware)

    # ── CORS ──────────────────────────────────────────────────────────── #
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[CORRELATION_HEADER],
    )

    # Added last so it runs first
    app.add_middleware(CorrelationIDMiddleware)

    # ── Exception Handlers ────────────────────────────────────────────── #
    app.add_exception_handler(AppError, app_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # ── Routes ────────────────────────────────────────────────────────── #
    app.include_router(v1_router)

    @app.get("/health", tags=["health"], summary="Health check")
    async def health() -> dict[str, object]:
        return {
            "status": "healthy",
            "version": settings.app_version,
            "text_sessions": len(app.state.text_sessions),
        }

    @app.get("/metrics", tags=["observability"], summary="Prometheus metrics")
    async def metrics() -> Response:
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    return app


def run() -> None:
    """Console entry point: serve the application with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "jsonmaster.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        log_config=None,
    )
