"""
Repository factory.

Builds and memoizes one repository per entity family for the current
RepositoryConfig. The data source mode decides the wiring:

- ``mock``: mock repository
- ``api``: API repository, wrapped in a FallbackRepository when
  ``fallback_to_mock`` is set
- ``hybrid``: HybridRepository over the mock and API repositories

All repositories built by one factory share a single ApiClient and a single
MockDataStore.
"""

import threading
from typing import Any, Callable, Dict, Optional

import structlog

from ..config import DataSource, RepositoryConfig, Settings, get_settings
from ..data.mock_data import MockDataStore
from ..infrastructure.api_client import ApiClient
from .api import ApiClientRepository, ApiServiceRepository
from .decorators import (
    FallbackClientRepository,
    FallbackServiceRepository,
    HybridClientRepository,
    HybridServiceRepository,
)
from .interfaces import BaseRepository, ClientRepository, ServiceRepository
from .mock import MockClientRepository, MockServiceRepository

logger = structlog.get_logger(__name__)


class RepositoryFactory:
    """
    Context object handing out repositories.

    Constructed once at application start and passed to call sites. Changing
    the configuration (``update_config`` / ``reconfigure``) drops every memoized
    repository; instances already handed out keep working with their old config.
    """

    def __init__(
        self,
        config: Optional[RepositoryConfig] = None,
        api_client: Optional[ApiClient] = None,
        mock_store: Optional[MockDataStore] = None,
        settings: Optional[Settings] = None,
    ):
        self._settings = settings or get_settings()
        self._config = config or RepositoryConfig.from_settings(self._settings)
        self._api_client = api_client
        self._mock_store = mock_store
        self._instances: Dict[str, BaseRepository] = {}
        self._lock = threading.RLock()

        logger.info("Repository factory initialized", **self._config.to_dict())

    @property
    def api_client(self) -> ApiClient:
        with self._lock:
            if self._api_client is None:
                self._api_client = ApiClient()
            return self._api_client

    @property
    def mock_store(self) -> MockDataStore:
        with self._lock:
            if self._mock_store is None:
                self._mock_store = MockDataStore.load(delay_ms=self._settings.MOCK_DELAY_MS)
            return self._mock_store

    def get_config(self) -> RepositoryConfig:
        return self._config

    def _get_or_create(self, entity: str, builder: Callable[[RepositoryConfig], BaseRepository]) -> Any:
        with self._lock:
            instance = self._instances.get(entity)
            if instance is None:
                instance = builder(self._config)
                self._instances[entity] = instance
                logger.info(
                    "Repository created",
                    entity=entity,
                    data_source=self._config.data_source.value,
                    implementation=type(instance).__name__,
                )
            return instance

    def _build(
        self,
        config: RepositoryConfig,
        mock_cls: type,
        api_cls: type,
        fallback_cls: type,
        hybrid_cls: type,
    ) -> BaseRepository:
        options = {"max_cache_entries": self._settings.CACHE_MAX_ENTRIES}

        def mock() -> BaseRepository:
            return mock_cls(self.mock_store, config, **options)

        def api() -> BaseRepository:
            return api_cls(self.api_client, config, **options)

        if config.data_source == DataSource.MOCK:
            return mock()
        if config.data_source == DataSource.API:
            if config.fallback_to_mock:
                return fallback_cls(api(), mock())
            return api()
        return hybrid_cls(mock(), api(), write_fallback=config.hybrid_write_fallback)

    def get_service_repository(self) -> ServiceRepository:
        return self._get_or_create(
            "Service",
            lambda config: self._build(
                config,
                MockServiceRepository,
                ApiServiceRepository,
                FallbackServiceRepository,
                HybridServiceRepository,
            ),
        )

    def get_client_repository(self) -> ClientRepository:
        return self._get_or_create(
            "Client",
            lambda config: self._build(
                config,
                MockClientRepository,
                ApiClientRepository,
                FallbackClientRepository,
                HybridClientRepository,
            ),
        )

    def update_config(self, **changes: Any) -> RepositoryConfig:
        """
        Merge ``changes`` into the current config and drop all repositories.

        Raises:
            TypeError: If a field name is unknown
            ValueError: If a value is invalid
        """
        with self._lock:
            self._config = self._config.merge(**changes)
            self._instances = {}
        logger.info("Repository config updated", **self._config.to_dict())
        return self._config

    def reconfigure(self, config: RepositoryConfig) -> None:
        """Swap in a new config together with an empty registry."""
        with self._lock:
            self._config, self._instances = config, {}
        logger.info("Repository factory reconfigured", **config.to_dict())

    def clear_instances(self) -> None:
        with self._lock:
            self._instances = {}

    async def close(self) -> None:
        """Release the shared HTTP client."""
        if self._api_client is not None:
            await self._api_client.close()
