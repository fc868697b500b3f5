"""
Shared pytest fixtures for JsonMaster backend tests.

Provides:
  - Settings pointing reports at a per-test temporary directory
  - the FastAPI app and an async HTTP client over ASGI (no network)
  - sample documents used across the comparison tests
"""
from __future__ import annotations

from collections.abc import AsyncGenerator
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from jsonmaster.config.settings import Environment, Settings
from jsonmaster.main import create_app


# ─── Settings override ────────────────────────────────────────────────────────

@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    return Settings(
        _env_file=None,
        environment=Environment.TESTING,
        debug=True,
        report_dir=tmp_path / "reports",
        rate_limit_enabled=False,
        log_json=False,
        stream_batch_size=10,
        stream_queue_capacity=4,
        text_page_size_default=50,
    )


# ─── App & HTTP client ────────────────────────────────────────────────────────

@pytest.fixture
def app(test_settings: Settings):
    return create_app(settings=test_settings)


@pytest_asyncio.fixture(scope="function")
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Unauthenticated async HTTP client."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as c:
        yield c


# ─── Sample documents ────────────────────────────────────────────────────────

@pytest.fixture
def orders_source() -> list[dict[str, Any]]:
    return [
        {"id": 1, "status": "open", "total": 10.5, "customer": {"name": "Ana", "tier": "gold"}},
        {"id": 2, "status": "closed", "total": 99, "customer": {"name": "Ben", "tier": "silver"}},
        {"id": 3, "status": "open", "total": 5, "customer": {"name": "Cy", "tier": "bronze"}},
    ]


@pytest.fixture
def orders_target() -> list[dict[str, Any]]:
    return [
        {"id": 1, "status": "open", "total": 10.5, "customer": {"name": "Ana", "tier": "gold"}},
        {"id": 2, "status": "open", "total": 99, "customer": {"name": "Ben", "tier": "gold"}},
        {"id": 4, "status": "new", "total": 1, "customer": {"name": "Di", "tier": "bronze"}},
    ]
