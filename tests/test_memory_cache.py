"""
Tests for the per-repository TTL cache.
"""

import pytest
from prometheus_client import REGISTRY

from carwash_data.cache.memory_cache import CACHE_MISS, RepositoryCache, serialize_params
from carwash_data.domain.queries import Pagination, QueryParams


@pytest.fixture
def cache(fake_clock) -> RepositoryCache:
    return RepositoryCache(entity="Service", ttl_ms=1000, clock=fake_clock)


class TestCacheKeys:
    """Test cache key construction."""

    def test_key_embeds_entity_and_operation(self, cache):
        key = cache.get_cache_key("find_all", {"page": 1})

        assert key.startswith("Service:find_all:")

    def test_key_independent_of_dict_order(self, cache):
        first = cache.get_cache_key("find_all", {"a": 1, "b": {"x": 1, "y": 2}})
        second = cache.get_cache_key("find_all", {"b": {"y": 2, "x": 1}, "a": 1})

        assert first == second

    def test_distinct_params_distinct_keys(self, cache):
        assert cache.get_cache_key("find_all", {"page": 1}) != cache.get_cache_key("find_all", {"page": 2})
        assert cache.get_cache_key("find_all", None) != cache.get_cache_key("find_featured", None)

    def test_models_serialized_like_their_dump(self):
        params = QueryParams(pagination=Pagination(page=2, limit=5))

        assert serialize_params(params) == serialize_params(
            {"pagination": {"page": 2, "limit": 5}}
        )


class TestCacheTTL:
    """Test timestamp based expiry."""

    def test_fresh_entry_returned(self, cache, fake_clock):
        cache.set("k", "value")
        fake_clock.advance(999)

        assert cache.get("k") == "value"

    def test_entry_at_exact_ttl_still_returned(self, cache, fake_clock):
        cache.set("k", "value")
        fake_clock.advance(1000)

        assert cache.get("k") == "value"

    def test_entry_past_ttl_treated_as_absent_and_removed(self, cache, fake_clock):
        cache.set("k", "value")
        fake_clock.advance(1001)

        assert cache.get("k") is None
        assert "k" not in cache
        assert cache.expirations == 1

    def test_rewrite_restarts_ttl(self, cache, fake_clock):
        cache.set("k", "old")
        fake_clock.advance(800)
        cache.set("k", "new")
        fake_clock.advance(800)

        assert cache.get("k") == "new"


class TestCacheOperations:
    """Test get/set/invalidate behaviour."""

    def test_cached_none_distinguished_from_miss(self, cache):
        cache.set("Service:find_by_id:{\"id\":\"99\"}", None)

        assert cache.get("Service:find_by_id:{\"id\":\"99\"}", CACHE_MISS) is None
        assert cache.get("other", CACHE_MISS) is CACHE_MISS

    def test_disabled_cache_is_noop(self, fake_clock):
        cache = RepositoryCache(entity="Service", enabled=False, clock=fake_clock)

        cache.set("k", "value")

        assert cache.get("k") is None
        assert cache.get("k", "default") == "default"
        assert len(cache) == 0

    def test_invalidate_by_fragment(self, cache):
        cache.set("Service:find_all:", [1])
        cache.set("Service:find_by_id:{\"id\":\"1\"}", 1)
        cache.set("Client:find_all:", [2])

        removed = cache.invalidate("Service:")

        assert removed == 2
        assert "Client:find_all:" in cache
        assert "Service:find_all:" not in cache

    def test_invalidate_without_fragment_clears_all(self, cache):
        cache.set("a", 1)
        cache.set("b", 2)

        assert cache.invalidate() == 2
        assert len(cache) == 0

    def test_bounded_size_evicts_least_recently_used(self, fake_clock):
        cache = RepositoryCache(entity="Service", max_entries=2, clock=fake_clock)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.get("a")
        cache.set("c", 3)

        assert "a" in cache
        assert "b" not in cache
        assert "c" in cache

    def test_stats(self, cache, fake_clock):
        cache.set("k", "value")
        cache.get("k")
        cache.get("missing")
        fake_clock.advance(2000)
        cache.get("k")

        stats = cache.get_stats()

        assert stats["hits"] == 1
        assert stats["misses"] == 2
        assert stats["expirations"] == 1
        assert stats["size"] == 0
        assert stats["hit_rate_percent"] == pytest.approx(33.33, abs=0.01)

    def test_value_loaded_before_invalidation_discarded(self, cache):
        generation = cache.generation
        cache.invalidate("Service:find_by_id")

        assert cache.set("Service:find_all:null", ["stale"], generation=generation) is False
        assert cache.get("Service:find_all:null", CACHE_MISS) is CACHE_MISS

    def test_value_loaded_in_current_generation_stored(self, cache):
        generation = cache.generation

        assert cache.set("Service:find_all:null", ["fresh"], generation=generation) is True
        assert cache.get("Service:find_all:null") == ["fresh"]

    def test_clear_starts_new_generation(self, cache):
        generation = cache.generation
        cache.clear()

        assert cache.generation != generation

    def test_clear_resets_stats(self, cache):
        cache.set("k", "value")
        cache.get("k")

        cache.clear()

        assert len(cache) == 0
        assert cache.hits == 0

    def test_hits_recorded_in_metrics(self, fake_clock):
        cache = RepositoryCache(entity="MetricsCheck", clock=fake_clock)
        labels = {"entity": "MetricsCheck", "event": "hit"}
        before = REGISTRY.get_sample_value("carwash_repository_cache_events_total", labels) or 0

        cache.set("k", 1)
        cache.get("k")

        assert REGISTRY.get_sample_value("carwash_repository_cache_events_total", labels) == before + 1
