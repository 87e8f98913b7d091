"""
Shared fixtures for the weather proxy test suite.

Nothing here touches the network: the upstream API is a FakeUpstream that
hands back canned ``httpx.Response`` objects, and the cache is the
in-process MemoryStore driven by a fake clock.
"""

from __future__ import annotations

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from factories import API_KEY, BASE_URL, FakeClock, FakeUpstream
from weather_proxy.cache import MemoryStore
from weather_proxy.config import Settings
from weather_proxy.services.fetcher import CacheAsideFetcher


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def settings() -> Settings:
    return Settings(
        WEATHER_API_KEY=API_KEY,
        WEATHER_BASE_URL=BASE_URL,
        UPSTREAM_TIMEOUT=2.0,
        UPSTREAM_MAX_RETRIES=2,
        UPSTREAM_BACKOFF=0.0,
        CACHE_TTL=43200,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock) -> MemoryStore:
    return MemoryStore(clock=clock)


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def fetcher(store, upstream, settings) -> CacheAsideFetcher:
    return CacheAsideFetcher(store, upstream, settings)


@pytest.fixture
def app(settings, fetcher):
    """FastAPI app with the fetcher injected; lifespan is not run."""
    from weather_proxy.main import create_app

    application = create_app(settings)
    application.state.fetcher = fetcher
    return application


@pytest_asyncio.fixture
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
