"""
In-memory TTL cache owned by a single repository instance.

Every repository keeps its own cache of read results. Entries are keyed by
``entity:operation:params`` and expire ``ttl_ms`` milliseconds after they were
written. Expired entries are dropped lazily on the next lookup.
"""

import json
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional

import structlog
from cachetools import LRUCache  # type: ignore[import-untyped]
from pydantic import BaseModel

from ..metrics import record_cache_event

logger = structlog.get_logger(__name__)

DEFAULT_TTL_MS = 300_000
DEFAULT_MAX_ENTRIES = 1000


class _CacheMiss:
    def __repr__(self) -> str:
        return "CACHE_MISS"

    def __bool__(self) -> bool:
        return False


# Distinguishes "not cached" from a cached None
CACHE_MISS: Any = _CacheMiss()


@dataclass
class CacheEntry:
    key: str
    value: Any
    written_at_ms: float


def monotonic_ms() -> float:
    """Default clock: monotonic time in milliseconds."""
    return time.monotonic() * 1000


def _to_jsonable(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", exclude_none=True)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {str(k): _to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        items = [_to_jsonable(v) for v in value]
        return sorted(items, key=repr) if isinstance(value, (set, frozenset)) else items
    return value


def serialize_params(params: Any) -> str:
    """Deterministic serialization of operation parameters."""
    if params is None:
        return ""
    return json.dumps(_to_jsonable(params), sort_keys=True, separators=(",", ":"), default=str)


class RepositoryCache:
    """
    Per-repository key/value cache with timestamp based expiry.

    When disabled every lookup returns the default and every write is ignored.

    Attributes:
        entity: Entity family name used as the key prefix
        ttl_ms: Maximum age of an entry in milliseconds
        enabled: Whether the cache stores anything at all
        hits: Number of cache hits
        misses: Number of cache misses (expired entries included)
        expirations: Number of entries dropped because they were too old
        generation: Bumped by every invalidation; a value loaded under an older
            generation is not stored
    """

    def __init__(
        self,
        entity: str,
        ttl_ms: int = DEFAULT_TTL_MS,
        enabled: bool = True,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.entity = entity
        self.ttl_ms = ttl_ms
        self.enabled = enabled
        self.max_entries = max_entries
        self._clock = clock or monotonic_ms
        self._entries: LRUCache = LRUCache(maxsize=max_entries)
        self._lock = threading.RLock()

        self.hits = 0
        self.misses = 0
        self.expirations = 0
        self.generation = 0

    def get_cache_key(self, operation: str, params: Any = None) -> str:
        """Build the cache key for an operation and its parameters."""
        return f"{self.entity}:{operation}:{serialize_params(params)}"

    def get(self, key: str, default: Any = None) -> Any:
        """
        Return the cached value for ``key``.

        Args:
            key: Cache key built by ``get_cache_key``
            default: Returned when the key is absent, expired or caching is off

        Returns:
            The cached value (which may itself be None) or ``default``
        """
        if not self.enabled:
            return default

        with self._lock:
            entry: Optional[CacheEntry] = self._entries.get(key)
            if entry is None:
                self.misses += 1
                record_cache_event(self.entity, "miss")
                return default

            age_ms = self._clock() - entry.written_at_ms
            if age_ms > self.ttl_ms:
                del self._entries[key]
                self.misses += 1
                self.expirations += 1
                record_cache_event(self.entity, "expired")
                logger.debug("Cache entry expired", key=key, age_ms=age_ms)
                return default

            self.hits += 1
            record_cache_event(self.entity, "hit")
            return entry.value

    def set(self, key: str, value: Any, generation: Optional[int] = None) -> bool:
        """
        Store ``value`` under ``key`` stamped with the current time.

        Args:
            key: Cache key built by ``get_cache_key``
            value: Value to remember
            generation: ``generation`` observed before the value was loaded; the
                value is dropped if an invalidation happened since

        Returns:
            True if the value was stored
        """
        if not self.enabled:
            return False
        with self._lock:
            if generation is not None and generation != self.generation:
                logger.debug("Discarding value loaded before invalidation", key=key)
                return False
            self._entries[key] = CacheEntry(key=key, value=value, written_at_ms=self._clock())
        return True

    def invalidate(self, fragment: Optional[str] = None) -> int:
        """
        Remove every key containing ``fragment``; without one, clear everything.

        Returns:
            Number of removed entries
        """
        with self._lock:
            self.generation += 1
            if fragment is None:
                removed = len(self._entries)
                self._entries.clear()
            else:
                stale = [key for key in self._entries.keys() if fragment in key]
                for key in stale:
                    del self._entries[key]
                removed = len(stale)

        if removed:
            logger.debug("Cache invalidated", entity=self.entity, fragment=fragment, removed=removed)
        return removed

    def clear(self) -> None:
        """Drop all entries and reset statistics."""
        with self._lock:
            self._entries.clear()
            self.generation += 1
            self.hits = 0
            self.misses = 0
            self.expirations = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def get_stats(self) -> Dict[str, Any]:
        """
        Get cache statistics.

        Returns:
            Dictionary with size, hit/miss counts and hit rate
        """
        total_requests = self.hits + self.misses
        hit_rate = (self.hits / total_requests * 100) if total_requests > 0 else 0

        return {
            "entity": self.entity,
            "enabled": self.enabled,
            "size": len(self._entries),
            "max_entries": self.max_entries,
            "ttl_ms": self.ttl_ms,
            "hits": self.hits,
            "misses": self.misses,
            "expirations": self.expirations,
            "hit_rate_percent": round(hit_rate, 2),
        }
