"""Feed caching package.

This package provides the per-source article cache with:
- LRU eviction under a byte budget
- TTL support
- Payload compression
- Hit/miss analytics
"""

from feed_cache.cache.analytics import CacheAnalytics, CacheEvent, CacheEventType, MissReason
from feed_cache.cache.feed_cache import FeedCache

__all__ = ["CacheAnalytics", "CacheEvent", "CacheEventType", "FeedCache", "MissReason"]
