"""
Configuration module for the data-access layer.

Provides centralized configuration management using Pydantic settings.
All configuration values can be overridden via environment variables or .env file.
The repository layer itself only sees an immutable ``RepositoryConfig`` snapshot
derived from these settings.
"""

from dataclasses import asdict, dataclass, replace
from enum import Enum
from functools import lru_cache
from typing import Any, Dict, Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DataSource(str, Enum):
    """Where repository reads and writes are routed."""

    MOCK = "mock"
    API = "api"
    HYBRID = "hybrid"


class Settings(BaseSettings):
    """
    Application settings for the data-access layer.

    All settings can be configured via environment variables.
    Settings are validated on instantiation to ensure correct configuration.

    Attributes:
        DATA_SOURCE: Data source mode (mock, api, hybrid)
        CACHE_ENABLED: Enable per-repository response caching
        CACHE_TTL_MS: Time-to-live of cached responses in milliseconds
        CACHE_MAX_ENTRIES: Maximum number of entries held by one repository cache
        FALLBACK_TO_MOCK: Serve reads from mock data when the API fails
        HYBRID_WRITE_FALLBACK: In hybrid mode, write to mock data when the API write fails
        API_BASE_URL: Base URL of the booking backend API
        API_TIMEOUT_MS: Default per-request timeout in milliseconds
        API_MAX_RETRIES: Maximum number of attempts per request
        RETRY_BASE_DELAY_MS: Base delay of the exponential backoff
        RETRY_BACKOFF_FACTOR: Multiplier applied per retry
        RETRY_MAX_DELAY_MS: Upper bound of the backoff delay before jitter
        API_AUTH_TOKEN: Bearer token sent with every API request
        MOCK_DELAY_MS: Artificial latency added to mock repository calls
        LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        LOG_JSON: Render logs as JSON instead of console output
    """

    # Repository configuration
    DATA_SOURCE: DataSource = Field(
        default=DataSource.MOCK,
        description="Data source mode: mock, api or hybrid",
    )
    CACHE_ENABLED: bool = Field(
        default=True,
        description="Enable per-repository response caching",
    )
    CACHE_TTL_MS: int = Field(
        default=300_000,
        ge=0,
        description="Time-to-live of cached responses in milliseconds",
    )
    CACHE_MAX_ENTRIES: int = Field(
        default=1000,
        ge=1,
        description="Maximum number of entries held by one repository cache",
    )
    FALLBACK_TO_MOCK: bool = Field(
        default=False,
        description="Serve reads from mock data when the API fails",
    )
    HYBRID_WRITE_FALLBACK: bool = Field(
        default=True,
        description="In hybrid mode, apply writes to mock data when the API write fails",
    )

    # HTTP client configuration
    API_BASE_URL: str = Field(
        default="http://localhost:3000/api",
        description="Base URL of the booking backend API",
    )
    API_TIMEOUT_MS: int = Field(
        default=30_000,
        gt=0,
        description="Default per-request timeout in milliseconds",
    )
    API_MAX_RETRIES: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Maximum number of attempts per request",
    )
    RETRY_BASE_DELAY_MS: int = Field(
        default=1000,
        ge=0,
        description="Base delay of the exponential backoff in milliseconds",
    )
    RETRY_BACKOFF_FACTOR: float = Field(
        default=2.0,
        ge=1.0,
        description="Multiplier applied to the delay on every retry",
    )
    RETRY_MAX_DELAY_MS: int = Field(
        default=30_000,
        ge=0,
        description="Upper bound of the backoff delay before jitter",
    )
    API_AUTH_TOKEN: Optional[str] = Field(
        default=None,
        description="Bearer token sent with every API request",
    )

    # Mock data configuration
    MOCK_DELAY_MS: int = Field(
        default=0,
        ge=0,
        description="Artificial latency added to mock repository calls",
    )

    # Logging configuration
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    LOG_JSON: bool = Field(
        default=False,
        description="Render logs as JSON instead of console output",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    @field_validator("DATA_SOURCE", mode="before")
    @classmethod
    def normalize_data_source(cls, value: Any) -> Any:
        """Accept data source names in any case."""
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("API_BASE_URL")
    @classmethod
    def validate_url(cls, value: str) -> str:
        """
        Validate that the API base URL is properly formatted.

        Args:
            value: The URL to validate

        Returns:
            The validated URL without trailing slash

        Raises:
            ValueError: If URL is invalid
        """
        if not value:
            raise ValueError("API base URL cannot be empty")

        value = value.rstrip("/")

        if not (value.startswith("http://") or value.startswith("https://")):
            raise ValueError(
                f"API base URL must start with http:// or https://, got: {value}"
            )

        return value


@dataclass(frozen=True)
class RepositoryConfig:
    """
    Immutable snapshot of the settings that shape repository construction.

    Replacing the snapshot held by a factory invalidates every repository
    instance built from the previous one.
    """

    data_source: DataSource = DataSource.MOCK
    cache_enabled: bool = True
    cache_ttl_ms: int = 300_000
    fallback_to_mock: bool = False
    hybrid_write_fallback: bool = True

    def __post_init__(self):
        # Allow plain strings ("api") when built by hand
        object.__setattr__(self, "data_source", DataSource(self.data_source))
        if self.cache_ttl_ms < 0:
            raise ValueError("cache_ttl_ms must be >= 0")

    @classmethod
    def from_settings(cls, settings: Settings) -> "RepositoryConfig":
        """Build a snapshot from environment-driven settings."""
        return cls(
            data_source=settings.DATA_SOURCE,
            cache_enabled=settings.CACHE_ENABLED,
            cache_ttl_ms=settings.CACHE_TTL_MS,
            fallback_to_mock=settings.FALLBACK_TO_MOCK,
            hybrid_write_fallback=settings.HYBRID_WRITE_FALLBACK,
        )

    def merge(self, **changes: Any) -> "RepositoryConfig":
        """
        Return a new snapshot with the given fields replaced.

        Raises:
            TypeError: If an unknown field name is given
        """
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["data_source"] = self.data_source.value
        return data


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the cached Settings instance, reading the environment on first call."""
    return Settings()
