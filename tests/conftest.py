import os
from datetime import datetime, timezone
from typing import TYPE_CHECKING, AsyncGenerator
from unittest.mock import AsyncMock

# Settings are read at import time; keep slowapi out of the way, start
# every test without a cron secret and score hours on the UTC clock.
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("CRON_SECRET", "")
os.environ.setdefault("TIMEZONE", "UTC")

if TYPE_CHECKING:
    from app.core.cache import CacheService

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from app.dependencies import get_assignment_engine, get_cache_service
from app.main import app
from app.services.lead_assignment import LeadAssignmentEngine

FIXED_NOW = datetime(2025, 6, 2, 10, 0, tzinfo=timezone.utc)


@pytest.fixture
def fixed_now() -> datetime:
    """Monday 10:00 UTC, inside the morning knocking window."""
    return FIXED_NOW


@pytest.fixture
def engine() -> LeadAssignmentEngine:
    """Assignment engine pinned to ``FIXED_NOW``."""
    return LeadAssignmentEngine(clock=lambda: FIXED_NOW)


@pytest.fixture
def mock_redis() -> AsyncMock:
    """Return an ``AsyncMock`` that behaves like ``redis.asyncio.Redis``."""
    redis = AsyncMock()
    redis.get = AsyncMock(return_value=None)
    redis.set = AsyncMock(return_value=True)
    redis.delete = AsyncMock()
    redis.ping = AsyncMock()
    return redis


@pytest.fixture
def mock_cache(mock_redis) -> "CacheService":
    """Return a ``CacheService`` backed by the mock Redis client."""
    from app.core.cache import CacheService

    return CacheService(redis_client=mock_redis)


@pytest_asyncio.fixture
async def async_client(
    mock_cache, engine
) -> AsyncGenerator[AsyncClient, None]:
    """Yield an ``httpx.AsyncClient`` wired to the FastAPI app.

    Redis is replaced by ``mock_cache`` and the engine clock is pinned.
    """
    app.dependency_overrides[get_cache_service] = lambda: mock_cache
    app.dependency_overrides[get_assignment_engine] = lambda: engine
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()
