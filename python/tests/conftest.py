"""Pytest configuration and fixtures for clipper tests.

Test isolation strategy:
- Every test runs with a fixed test environment and a fresh settings cache
- The app gets a TTLCache and RateLimiter on a FakeClock, so expiry is simulated
- Outbound HTTP is mocked with respx; nothing reaches the network
"""

import sys
from collections.abc import Generator
from pathlib import Path

# Add repo root to sys.path for importing top-level packages (e.g., apps)
_repo_root = Path(__file__).parent.parent.parent
if str(_repo_root) not in sys.path:
    sys.path.insert(0, str(_repo_root))

import httpx
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from clipper.app import add_request_id_middleware, create_app
from clipper.config import Settings, clear_settings_cache, get_settings
from clipper.services.cache import TTLCache
from clipper.services.media_relay import MediaRelay
from clipper.services.preview import PreviewFetcher
from clipper.services.rate_limit import RateLimiter
from clipper.upstream.client import UpstreamClient
from tests.helpers import (
    PREVIEW_API_URL,
    TEST_PREVIEW_KEY,
    TEST_SERVICE_TOKEN,
    TEST_SIGNING_SECRET,
    UPSTREAM_API_BASE,
    YOUTUBE_OEMBED_URL,
    FakeClock,
)

TEST_ENV = {
    "CLIPPER_ENV": "test",
    "UPSTREAM_API_BASE": UPSTREAM_API_BASE,
    "UPSTREAM_SERVICE_TOKEN": TEST_SERVICE_TOKEN,
    "SESSION_SIGNING_SECRET": TEST_SIGNING_SECRET,
    "PREVIEW_API_URL": PREVIEW_API_URL,
    "PREVIEW_API_KEY": TEST_PREVIEW_KEY,
    "YOUTUBE_OEMBED_URL": YOUTUBE_OEMBED_URL,
    "CORS_ALLOWED_ORIGINS": "chrome-extension://clipper-test",
}


@pytest.fixture(autouse=True)
def test_env(monkeypatch) -> Generator[None, None, None]:
    """Pin the environment and reset the settings cache around each test."""
    for key, value in TEST_ENV.items():
        monkeypatch.setenv(key, value)
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def settings() -> Settings:
    return get_settings()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> TTLCache:
    return TTLCache(clock=clock)


@pytest.fixture
def app(clock: FakeClock) -> FastAPI:
    """Full app: auth, CORS and request-id middleware on simulated time."""
    app = create_app(cache=TTLCache(clock=clock), rate_limiter=RateLimiter(clock=clock))
    add_request_id_middleware(app, log_requests=False)
    return app


@pytest.fixture
def client(app: FastAPI) -> Generator[TestClient, None, None]:
    """Test client with the lifespan running (shared httpx client created)."""
    with TestClient(app) as client:
        yield client


@pytest.fixture
def httpx_client() -> httpx.AsyncClient:
    """Create an httpx AsyncClient for testing (intercepted by respx)."""
    return httpx.AsyncClient()


@pytest.fixture
def upstream(httpx_client: httpx.AsyncClient, settings: Settings) -> UpstreamClient:
    return UpstreamClient(httpx_client, settings)


@pytest.fixture
def previews(httpx_client: httpx.AsyncClient, cache: TTLCache, settings: Settings) -> PreviewFetcher:
    return PreviewFetcher(httpx_client, cache, settings)


@pytest.fixture
def relay(httpx_client: httpx.AsyncClient, upstream: UpstreamClient) -> MediaRelay:
    return MediaRelay(httpx_client, upstream)
