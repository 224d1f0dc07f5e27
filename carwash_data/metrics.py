"""
Prometheus metrics for the data-access layer.

Tracks repository cache performance, API request attempts, and fallback usage.
"""

from prometheus_client import Counter

# Cache metrics
repository_cache_events_total = Counter(
    "carwash_repository_cache_events_total",
    "Repository cache lookups by outcome",
    ["entity", "event"],
)

# Transport metrics
api_request_attempts_total = Counter(
    "carwash_api_request_attempts_total",
    "HTTP request attempts made by the API client",
    ["method", "outcome"],
)

# Fallback metrics
repository_fallbacks_total = Counter(
    "carwash_repository_fallbacks_total",
    "Operations served by the secondary repository after the primary failed",
    ["entity", "operation", "mode"],
)


def record_cache_event(entity: str, event: str) -> None:
    """Record a cache hit, miss or expiry for an entity family."""
    repository_cache_events_total.labels(entity=entity, event=event).inc()


def record_api_attempt(method: str, outcome: str) -> None:
    """Record one HTTP attempt; outcome is 'success' or an error code."""
    api_request_attempts_total.labels(method=method, outcome=outcome).inc()


def record_fallback(entity: str, operation: str, mode: str) -> None:
    """Record an operation served by the secondary repository."""
    repository_fallbacks_total.labels(entity=entity, operation=operation, mode=mode).inc()
