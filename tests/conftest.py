"""Shared test fixtures."""

import pytest
import httpx
from datetime import datetime, timedelta
from fastapi.testclient import TestClient

from app.main import app
from app.config import Settings
from app.api.dependencies import get_proxy_service, get_diagnostics
from app.services.cache import MemoryCacheStore
from app.services.diagnostics import DiagnosticsReporter
from app.services.proxy import ProxyService
from app.services.upstream import UpstreamClient


# =============================================================================
# Mock Data
# =============================================================================

UPSTREAM_BASE = "https://upstream.test/api"
IMAGE_BASE = "https://images.test/posters"

# Sunday 18 October 2026, midday
SUNDAY_NOON = datetime(2026, 10, 18, 12, 0, 0)

MOCK_CINEMAS = {
    "data": [
        {"cinema_id": 9, "name": "Rivoli"},
        {"cinema_id": 12, "name": "Odeon"},
        {"cinema_id": 44, "name": "Roxy"},
        {"cinema_id": 7, "name": "Plaza"},
    ]
}

MOCK_MOVIES = {
    "data": [
        {"movie_id": 101, "movie_poster": "dune.jpg", "title": "Dune"},
        {"movie_id": 102, "movie_poster": "", "title": "Alien"},
        {"movie_id": None, "movie_poster": "ghost.jpg", "title": "Ghost"},
    ]
}


class FakeClock:
    """Manually advanced clock for cache tests."""

    def __init__(self, now: datetime = SUNDAY_NOON):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeUpstream:
    """Serves canned upstream responses and records every request."""

    def __init__(self, cinemas=None, movies=None):
        self.cinemas = MOCK_CINEMAS if cinemas is None else cinemas
        self.movies = MOCK_MOVIES if movies is None else movies
        self.status_code = 200
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path.endswith("/getCinemas"):
            return httpx.Response(self.status_code, json=self.cinemas)
        if request.url.path.endswith("/getMovieListMinimal"):
            return httpx.Response(self.status_code, json=self.movies)
        return httpx.Response(404, json={"error": "not found"})

    def calls_to(self, operation: str) -> int:
        return sum(1 for r in self.requests if r.url.path.endswith(operation))


def make_settings(**overrides) -> Settings:
    """Settings for tests, independent of the environment."""
    values = {
        "movies_api_base_url": UPSTREAM_BASE,
        "movies_api_username": "user",
        "movies_api_key": "secret",
        "movies_api_image_base": IMAGE_BASE,
        "allowed_cinema_ids": [44, 25, 9, 39, 40],
        "asset_base_url": "http://localhost",
    }
    values.update(overrides)
    return Settings(**values)


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_upstream():
    return FakeUpstream()


@pytest.fixture
def upstream_client(settings, fake_upstream):
    return UpstreamClient.from_settings(settings, transport=httpx.MockTransport(fake_upstream.handler))


@pytest.fixture
def cache(clock):
    return MemoryCacheStore(clock=clock)


@pytest.fixture
def proxy_service(upstream_client, cache, settings):
    return ProxyService(upstream_client, cache, settings)


@pytest.fixture
def make_service(clock):
    """Factory for a ProxyService with custom settings or upstream data."""

    def _make(cinemas=None, movies=None, **overrides):
        settings = make_settings(**overrides)
        upstream = FakeUpstream(cinemas=cinemas, movies=movies)
        client = UpstreamClient.from_settings(settings, transport=httpx.MockTransport(upstream.handler))
        service = ProxyService(client, MemoryCacheStore(clock=clock), settings)
        return service, upstream

    return _make


@pytest.fixture
def diagnostics(cache, settings):
    return DiagnosticsReporter(cache, settings)


@pytest.fixture
def client(proxy_service, diagnostics):
    """FastAPI test client wired to in-memory services."""
    app.dependency_overrides[get_proxy_service] = lambda: proxy_service
    app.dependency_overrides[get_diagnostics] = lambda: diagnostics
    yield TestClient(app)
    app.dependency_overrides.clear()
