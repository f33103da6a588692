"""Shared fixtures.

Every test gets its own application built by `create_app()`, so the waiter registry,
event store and metrics never leak between tests. Generation is switched off: tests
publish explicitly through `POST /api/push/send` or the engine itself.
"""
from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient

from realtime_comparison.server.main import create_app
from realtime_comparison.shared.config import Settings
from utils import make_settings


@pytest.fixture
def test_settings() -> Settings:
    return make_settings()


@pytest.fixture
def app(test_settings):
    return create_app(test_settings)


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """HTTPX client wired straight into the ASGI app, no network involved."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
