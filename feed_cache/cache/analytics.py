"""Hit/miss analytics for the feed cache.

CacheAnalytics only observes. The store reports events to it and nothing in
the store reads the counters back, so analytics can be reset or replaced
without changing what the cache returns.
"""

import threading
import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Deque, Dict, List, Optional

from feed_cache.compression import CompressionResult
from feed_cache.metrics import CacheMetrics, get_registry


class MissReason(Enum):
    """Why a read did not return cached articles."""

    ABSENT = "absent"
    EXPIRED = "expired"
    CORRUPT = "corrupt"


class CacheEventType(Enum):
    """Kinds of events recorded by CacheAnalytics."""

    HIT = "hit"
    MISS = "miss"
    WRITE = "write"
    EVICTION = "eviction"
    EXPIRATION = "expiration"
    ERROR = "error"


@dataclass
class CacheEvent:
    """One observed cache event."""

    type: CacheEventType
    source_id: Optional[str]
    timestamp: float
    details: Dict[str, Any] = field(default_factory=dict)


class CacheAnalytics:
    """Session-level cache effectiveness metrics.

    Counters are monotonic until reset() is called. They are also mirrored to
    Prometheus through CacheMetrics.
    """

    def __init__(self, metrics: Optional[CacheMetrics] = None, history_size: int = 100) -> None:
        """Initialize analytics.

        Args:
            metrics: Prometheus metrics to update, defaults to the shared registry
            history_size: Number of recent events kept for inspection
        """
        self.metrics = metrics or CacheMetrics(registry=get_registry())
        self._history: Deque[CacheEvent] = deque(maxlen=history_size)
        self._lock = threading.Lock()
        self.reset()

    def reset(self) -> None:
        """Zero every counter and forget the event history."""
        with self._lock:
            self.total_hits = 0
            self.total_misses = 0
            self.total_writes = 0
            self.total_evictions = 0
            self.total_expirations = 0
            self.total_errors = 0
            self.total_original_bytes = 0
            self.total_stored_bytes = 0
            self.miss_reasons: Dict[str, int] = {reason.value: 0 for reason in MissReason}
            self._history.clear()

    def _record(self, event_type: CacheEventType, source_id: Optional[str], **details) -> None:
        self._history.append(CacheEvent(event_type, source_id, time.time(), details))

    def record_hit(self, source_id: str) -> None:
        with self._lock:
            self.total_hits += 1
            self._record(CacheEventType.HIT, source_id)
        self.metrics.cache_hits.inc()

    def record_miss(self, source_id: str, reason: MissReason = MissReason.ABSENT) -> None:
        with self._lock:
            self.total_misses += 1
            self.miss_reasons[reason.value] += 1
            self._record(CacheEventType.MISS, source_id, reason=reason.value)
        self.metrics.cache_misses.inc()

    def record_compression(self, source_id: str, result: CompressionResult) -> None:
        """Record the size outcome of a cache write."""
        with self._lock:
            self.total_writes += 1
            self.total_original_bytes += result.original_size
            self.total_stored_bytes += result.stored_size
            self._record(
                CacheEventType.WRITE,
                source_id,
                compressed=result.compressed,
                original_size=result.original_size,
                stored_size=result.stored_size,
            )
        self.metrics.cache_compression_ratio.set(result.ratio)

    def record_eviction(self, source_id: str, stored_size: int) -> None:
        with self._lock:
            self.total_evictions += 1
            self._record(CacheEventType.EVICTION, source_id, stored_size=stored_size)
        self.metrics.cache_evictions.inc()

    def record_expiration(self, source_id: str) -> None:
        with self._lock:
            self.total_expirations += 1
            self._record(CacheEventType.EXPIRATION, source_id)
        self.metrics.cache_expirations.inc()

    def record_error(self, source_id: Optional[str], operation: str, error: str) -> None:
        with self._lock:
            self.total_errors += 1
            self._record(CacheEventType.ERROR, source_id, operation=operation, error=error)
        self.metrics.cache_errors.inc()

    def record_cache_size(self, size_bytes: int) -> None:
        self.metrics.cache_size_bytes.set(size_bytes)

    def get_cache_analytics(self) -> Dict[str, Any]:
        """Return aggregate hit/miss and compression metrics.

        Returns:
            Dictionary with total_hits, total_misses, total_requests, hit_rate,
            miss_rate, total_evictions, total_expirations,
            average_compression_ratio and miss_reasons
        """
        with self._lock:
            total_requests = self.total_hits + self.total_misses
            hit_rate = self.total_hits / total_requests if total_requests > 0 else 0.0
            return {
                "total_hits": self.total_hits,
                "total_misses": self.total_misses,
                "total_requests": total_requests,
                "hit_rate": hit_rate,
                "miss_rate": 1.0 - hit_rate,
                "total_writes": self.total_writes,
                "total_evictions": self.total_evictions,
                "total_expirations": self.total_expirations,
                "total_errors": self.total_errors,
                "average_compression_ratio": (
                    self.total_stored_bytes / self.total_original_bytes
                    if self.total_original_bytes
                    else 1.0
                ),
                "miss_reasons": dict(self.miss_reasons),
            }

    def recent_events(self) -> List[CacheEvent]:
        """Return the most recent events, oldest first."""
        with self._lock:
            return list(self._history)
