"""
Test configuration and fixtures
"""

from typing import Any, Callable, Dict, List
from unittest.mock import AsyncMock

import httpx
import pytest

from carwash_data import dependencies
from carwash_data.config import RepositoryConfig, get_settings
from carwash_data.data.mock_data import MockDataStore
from carwash_data.infrastructure.api_client import ApiClient
from carwash_data.logging_config import clear_request_id
from carwash_data.repositories.mock import MockClientRepository, MockServiceRepository


class FakeClock:
    """Millisecond clock advanced by hand."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


@pytest.fixture(autouse=True)
def reset_globals(monkeypatch):
    """Isolate tests from the environment and from each other."""
    for name in (
        "DATA_SOURCE",
        "API_BASE_URL",
        "API_AUTH_TOKEN",
        "CACHE_ENABLED",
        "CACHE_TTL_MS",
        "CACHE_MAX_ENTRIES",
        "FALLBACK_TO_MOCK",
        "HYBRID_WRITE_FALLBACK",
        "API_TIMEOUT_MS",
        "API_MAX_RETRIES",
        "RETRY_BASE_DELAY_MS",
        "RETRY_BACKOFF_FACTOR",
        "RETRY_MAX_DELAY_MS",
        "MOCK_DELAY_MS",
        "LOG_LEVEL",
        "LOG_JSON",
    ):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    dependencies.set_repository_factory(None)
    clear_request_id()
    yield
    get_settings.cache_clear()
    dependencies.set_repository_factory(None)
    clear_request_id()


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def repo_config() -> RepositoryConfig:
    return RepositoryConfig(cache_enabled=True, cache_ttl_ms=60_000)


@pytest.fixture
def mock_store() -> MockDataStore:
    """Fresh fixture data for every test, since repositories mutate it."""
    return MockDataStore.load()


@pytest.fixture
def service_repo(mock_store, repo_config) -> MockServiceRepository:
    return MockServiceRepository(mock_store, repo_config)


@pytest.fixture
def client_repo(mock_store, repo_config) -> MockClientRepository:
    return MockClientRepository(mock_store, repo_config)


@pytest.fixture
def sleep_mock() -> AsyncMock:
    """Replaces asyncio.sleep between retries."""
    return AsyncMock()


@pytest.fixture
def make_api_client(sleep_mock) -> Callable[..., ApiClient]:
    """
    Build an ApiClient whose requests are answered by ``handler``.

    Every request seen by the transport is appended to ``client.seen_requests``.
    """

    def factory(handler: Callable[[httpx.Request], httpx.Response], **kwargs: Any) -> ApiClient:
        seen: List[httpx.Request] = []

        def recording_handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return handler(request)

        options: Dict[str, Any] = {
            "base_url": "http://api.test/api",
            "max_retries": 3,
            "base_delay_ms": 1000,
            "backoff_factor": 2.0,
            "max_delay_ms": 30_000,
            "sleep": sleep_mock,
        }
        options.update(kwargs)
        client = ApiClient(transport=httpx.MockTransport(recording_handler), **options)
        client.seen_requests = seen  # type: ignore[attr-defined]
        return client

    return factory


@pytest.fixture
def sample_service_data() -> Dict[str, Any]:
    """Valid input for creating a service."""
    return {
        "name": "Headlight Restoration",
        "description": "Restores clarity of oxidized headlight lenses",
        "price": 59.0,
        "duration": 45,
        "category": "restoration",
        "availability": ["mobile", "inShop"],
        "tags": ["headlights", "restoration"],
    }


@pytest.fixture
def sample_client_data() -> Dict[str, Any]:
    """Valid input for creating a client."""
    return {
        "name": "Ava Patel",
        "email": "ava.patel@example.com",
        "phone": "+1-555-0199",
    }
