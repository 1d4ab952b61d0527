"""Fixtures for core infrastructure tests."""

from collections.abc import AsyncGenerator, Generator

import pytest
from httpx import ASGITransport, AsyncClient

from app.core.config import get_settings
from app.core.database import get_engine, get_session_maker
from app.main import app


@pytest.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    """Create async HTTP client for testing FastAPI endpoints."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest.fixture
def clear_caches() -> Generator[None, None, None]:
    """Drop cached settings, engine and session maker around a test."""
    for cached in (get_settings, get_engine, get_session_maker):
        cached.cache_clear()
    yield
    for cached in (get_settings, get_engine, get_session_maker):
        cached.cache_clear()
