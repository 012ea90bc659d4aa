"""Prometheus metrics for the feed cache."""

import os
from typing import Optional

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Gauge

_test_registry: Optional[CollectorRegistry] = None


class CacheMetrics:
    """Metrics for feed cache performance and behavior.

    Tracks cache hits, misses, evictions, expirations, compression ratios,
    and errors.
    """

    def __init__(self, registry: CollectorRegistry = REGISTRY) -> None:
        """Initialize cache metrics.

        Args:
            registry: Prometheus registry to use for metrics
        """
        # Check if metrics already exist in registry
        existing_metrics = [name for name in registry._names_to_collectors.keys()]

        def create_counter(name: str, help_text: str) -> Counter:
            if name not in existing_metrics:
                return Counter(name, help_text, registry=registry)
            return registry._names_to_collectors[name]

        def create_gauge(name: str, help_text: str) -> Gauge:
            if name not in existing_metrics:
                return Gauge(name, help_text, registry=registry)
            return registry._names_to_collectors[name]

        self.registry = registry
        self.cache_hits = create_counter("feed_cache_hits_total", "Number of cache hits")
        self.cache_misses = create_counter("feed_cache_misses_total", "Number of cache misses")
        self.cache_evictions = create_counter(
            "feed_cache_evictions_total", "Number of cache entries evicted by the size budget"
        )
        self.cache_expirations = create_counter(
            "feed_cache_expirations_total", "Number of expired cache entries removed"
        )
        self.cache_errors = create_counter(
            "feed_cache_errors_total", "Number of cache operation errors"
        )
        self.cache_compression_ratio = create_gauge(
            "feed_cache_compression_ratio", "Ratio of stored to original size of the last write"
        )
        self.cache_size_bytes = create_gauge(
            "feed_cache_size_bytes", "Total stored size of cached feeds in bytes"
        )


def get_registry() -> CollectorRegistry:
    """Get the appropriate metrics registry.

    Returns:
        CollectorRegistry: Registry to use for metrics
    """
    global _test_registry
    if bool(os.getenv("PYTEST_CURRENT_TEST")):
        if _test_registry is None:
            _test_registry = CollectorRegistry()
        return _test_registry
    return REGISTRY
