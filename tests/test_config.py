"""
Tests for settings and the RepositoryConfig snapshot.
"""

import dataclasses

import pytest
from pydantic import ValidationError

from carwash_data.config import DataSource, RepositoryConfig, Settings, get_settings


class TestSettings:
    """Test environment-driven settings."""

    def test_defaults(self):
        settings = Settings(_env_file=None)

        assert settings.DATA_SOURCE == DataSource.MOCK
        assert settings.CACHE_ENABLED is True
        assert settings.CACHE_TTL_MS == 300_000
        assert settings.FALLBACK_TO_MOCK is False
        assert settings.HYBRID_WRITE_FALLBACK is True
        assert settings.API_BASE_URL == "http://localhost:3000/api"
        assert settings.API_TIMEOUT_MS == 30_000
        assert settings.API_MAX_RETRIES == 3
        assert settings.RETRY_BASE_DELAY_MS == 1000
        assert settings.RETRY_BACKOFF_FACTOR == 2.0
        assert settings.API_AUTH_TOKEN is None

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("DATA_SOURCE", "API")
        monkeypatch.setenv("CACHE_TTL_MS", "1500")
        monkeypatch.setenv("FALLBACK_TO_MOCK", "true")

        settings = Settings(_env_file=None)

        assert settings.DATA_SOURCE == DataSource.API
        assert settings.CACHE_TTL_MS == 1500
        assert settings.FALLBACK_TO_MOCK is True

    def test_unknown_data_source_rejected(self):
        with pytest.raises(ValidationError):
            Settings(DATA_SOURCE="cloud", _env_file=None)

    def test_base_url_trailing_slash_stripped(self):
        settings = Settings(API_BASE_URL="https://api.example.com/v1/", _env_file=None)

        assert settings.API_BASE_URL == "https://api.example.com/v1"

    @pytest.mark.parametrize("url", ["", "ftp://api.example.com", "api.example.com"])
    def test_invalid_base_url_rejected(self, url):
        with pytest.raises(ValidationError):
            Settings(API_BASE_URL=url, _env_file=None)

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()


class TestRepositoryConfig:
    """Test the immutable configuration snapshot."""

    def test_from_settings(self):
        settings = Settings(
            DATA_SOURCE="hybrid",
            CACHE_ENABLED=False,
            CACHE_TTL_MS=42,
            HYBRID_WRITE_FALLBACK=False,
            _env_file=None,
        )

        config = RepositoryConfig.from_settings(settings)

        assert config.data_source == DataSource.HYBRID
        assert config.cache_enabled is False
        assert config.cache_ttl_ms == 42
        assert config.hybrid_write_fallback is False

    def test_is_frozen(self):
        config = RepositoryConfig()

        with pytest.raises(dataclasses.FrozenInstanceError):
            config.cache_ttl_ms = 1  # type: ignore[misc]

    def test_merge_returns_new_snapshot(self):
        config = RepositoryConfig()

        merged = config.merge(data_source="api", fallback_to_mock=True)

        assert merged is not config
        assert merged.data_source == DataSource.API
        assert merged.fallback_to_mock is True
        assert config.data_source == DataSource.MOCK
        assert merged.cache_ttl_ms == config.cache_ttl_ms

    def test_merge_unknown_field(self):
        with pytest.raises(TypeError):
            RepositoryConfig().merge(cache_size=10)

    def test_negative_ttl_rejected(self):
        with pytest.raises(ValueError):
            RepositoryConfig(cache_ttl_ms=-1)

    def test_invalid_data_source_rejected(self):
        with pytest.raises(ValueError):
            RepositoryConfig(data_source="cloud")  # type: ignore[arg-type]

    def test_to_dict(self):
        data = RepositoryConfig(data_source=DataSource.API).to_dict()

        assert data["data_source"] == "api"
        assert data["cache_ttl_ms"] == 300_000
