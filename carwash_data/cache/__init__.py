"""Cache module initialization."""

from .memory_cache import CACHE_MISS, RepositoryCache

__all__ = ["CACHE_MISS", "RepositoryCache"]
