"""Feed cache implementation.

This module provides the per-source article cache with:
- One compressed entry per source id, fully replaced on every write
- A byte budget enforced by LRU eviction during writes
- TTL expiry applied lazily on read
- Best-effort persistence to a pluggable storage backend
"""

import itertools
import json
import threading
import time
from typing import Any, Callable, Dict, List, Optional

import structlog

from feed_cache.cache.analytics import CacheAnalytics, MissReason
from feed_cache.compression import CompressionCodec
from feed_cache.config import CacheConfig
from feed_cache.errors import EntryTooLargeError, SerializationError, StorageError
from feed_cache.models import CacheEntry
from feed_cache.storage import MemoryStorage, StorageBackend
from feed_cache.utils import calculate_storage_size

logger = structlog.get_logger(__name__)

INDEX_VERSION = 1


class FeedCache:
    """Size-bounded, compressing cache of article lists keyed by source id.

    The cache keeps an in-memory mirror of every entry and writes each change
    through to ``storage``. Storage failures never propagate: a failed read
    makes the entry absent and a failed write is logged while the mirror
    keeps serving the entry for the rest of the session.

    Eviction only happens inside set_cached_feed(). Expired entries are
    ignored on read and physically removed by the next write.

    State is loaded lazily by the first operation. Use init()/dispose() or
    the context manager protocol to control the lifecycle explicitly.
    All operations are serialized by a reentrant lock.
    """

    def __init__(
        self,
        config: Optional[CacheConfig] = None,
        storage: Optional[StorageBackend] = None,
        codec: Optional[CompressionCodec] = None,
        analytics: Optional[CacheAnalytics] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the feed cache.

        Args:
            config: Cache behavior, defaults to CacheConfig()
            storage: Backing key-value store, defaults to MemoryStorage()
            codec: Payload codec, defaults to one built from ``config``
            analytics: Observer for cache events
            clock: Returns the current time in seconds since the epoch
        """
        self._config = config or CacheConfig()
        self._storage = storage if storage is not None else MemoryStorage()
        self._codec = codec or CompressionCodec.from_config(self._config)
        self.analytics = analytics or CacheAnalytics()
        self._clock = clock

        self._entry_prefix = f"{self._config.namespace}:entry:"
        self._index_key = f"{self._config.namespace}:index"

        self._entries: Dict[str, CacheEntry] = {}
        self._access_order: Dict[str, int] = {}
        self._access_counter = itertools.count()
        self._total_size = 0
        self._compression_savings = 0
        self._initialized = False
        self._lock = threading.RLock()

    @property
    def config(self) -> CacheConfig:
        return self._config

    @property
    def codec(self) -> CompressionCodec:
        return self._codec

    def __enter__(self) -> "FeedCache":
        self.init()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.dispose()

    # Lifecycle

    def init(self) -> None:
        """Load persisted entries. Called automatically by every operation."""
        with self._lock:
            if self._initialized:
                return
            self._initialized = True
            self._load()

    def dispose(self) -> None:
        """Persist the index, close storage and drop in-memory state.

        A disposed cache reloads from storage on its next operation.
        """
        with self._lock:
            if not self._initialized:
                return
            self._persist_index()
            self._storage.close()
            self._reset_state()
            self._initialized = False
            logger.debug("Feed cache disposed", namespace=self._config.namespace)

    # Public operations

    def set_cached_feed(self, source_id: str, articles: List[Any]) -> bool:
        """Cache the article list for a source, replacing any previous entry.

        Args:
            source_id: Source identifier
            articles: JSON-serializable article list

        Returns:
            True if the entry is now cached, False if it was rejected because
            it cannot be serialized or is larger than the whole budget
        """
        self.init()
        with self._lock:
            try:
                result = self._codec.compress(articles)
            except SerializationError as e:
                logger.warning(
                    "Feed is not serializable, not cached", source_id=source_id, error=e.message
                )
                self.analytics.record_error(source_id, "set", e.message)
                return False

            if result.stored_size > self._config.max_size_bytes:
                error = EntryTooLargeError(
                    source_id, result.stored_size, self._config.max_size_bytes
                )
                logger.warning("Feed exceeds cache budget, not cached", **error.details)
                self.analytics.record_error(source_id, "set", error.message)
                return False

            now = self._now_ms()
            entry = CacheEntry(
                source_id=source_id,
                payload=result.data,
                compressed=result.compressed,
                original_size_bytes=result.original_size,
                stored_size_bytes=result.stored_size,
                created_at=now,
                last_accessed_at=now,
                article_count=len(articles),
            )
            self._put_entry(entry)
            self._compression_savings += result.savings
            self.analytics.record_compression(source_id, result)

            self._purge_expired(now, keep=source_id)
            self._evict_until_within_budget(keep=source_id)

            self._persist_entry(entry)
            self._persist_index()
            self.analytics.record_cache_size(self._total_size)

            logger.debug(
                "Cached feed",
                source_id=source_id,
                compressed=result.compressed,
                original_size=result.original_size,
                stored_size=result.stored_size,
                cache_size=self._total_size,
            )
            return True

    def get_cached_feed(self, source_id: str) -> Optional[List[Any]]:
        """Get the cached article list for a source.

        Args:
            source_id: Source identifier

        Returns:
            The cached articles if present, fresh and decodable, None otherwise
        """
        self.init()
        with self._lock:
            entry = self._entries.get(source_id)
            if entry is None:
                self.analytics.record_miss(source_id, MissReason.ABSENT)
                return None

            now = self._now_ms()
            if entry.is_expired(now, self._config.ttl_ms):
                self.analytics.record_miss(source_id, MissReason.EXPIRED)
                return None

            result = self._codec.decompress(entry.payload, entry.compressed)
            if not result.success:
                logger.warning(
                    "Corrupt cache entry removed",
                    source_id=source_id,
                    key=self._entry_key(source_id),
                    error=result.error,
                )
                self._remove_entry(source_id)
                self._persist_index()
                self.analytics.record_error(source_id, "get", result.error or "")
                self.analytics.record_miss(source_id, MissReason.CORRUPT)
                return None

            entry.touch(now)
            self._access_order[source_id] = next(self._access_counter)
            self._persist_entry(entry)
            self.analytics.record_hit(source_id)
            return result.value

    def remove_cached_feed(self, source_id: str) -> bool:
        """Remove the entry for a source.

        Returns:
            True if an entry was removed
        """
        self.init()
        with self._lock:
            if source_id not in self._entries:
                return False
            self._remove_entry(source_id)
            self._persist_index()
            self.analytics.record_cache_size(self._total_size)
            return True

    def get_cache_stats(self) -> Dict[str, Any]:
        """Get cache size statistics.

        Returns:
            Dictionary with total_entries, cache_size (sum of stored sizes in
            bytes), compression_savings (bytes saved by compression across
            all writes since the last clear), total_articles, and
            oldest_entry/newest_entry (epoch milliseconds of the oldest and
            newest write, None when empty)
        """
        self.init()
        with self._lock:
            created = [entry.created_at for entry in self._entries.values()]
            return {
                "total_entries": len(self._entries),
                "cache_size": self._total_size,
                "compression_savings": self._compression_savings,
                "total_articles": sum(e.article_count for e in self._entries.values()),
                "oldest_entry": min(created) if created else None,
                "newest_entry": max(created) if created else None,
            }

    def get_cache_analytics(self) -> Dict[str, Any]:
        """Get hit/miss analytics, see CacheAnalytics.get_cache_analytics()."""
        return self.analytics.get_cache_analytics()

    def get_cache_age(self, source_id: str) -> Optional[int]:
        """Milliseconds since the entry for ``source_id`` was written."""
        self.init()
        with self._lock:
            entry = self._entries.get(source_id)
            if entry is None:
                return None
            return self._now_ms() - entry.created_at

    def get_entry_info(self, source_id: str) -> Optional[Dict[str, Any]]:
        """Entry metadata without the payload, for diagnostics."""
        self.init()
        with self._lock:
            entry = self._entries.get(source_id)
            return entry.info() if entry else None

    def clear_cache(self) -> None:
        """Remove every entry and reset store statistics.

        Analytics counters are reset too when
        ``config.reset_analytics_on_clear`` is set.
        """
        with self._lock:
            keys = {self._entry_key(source_id) for source_id in self._entries}
            try:
                keys.update(self._storage.keys(self._entry_prefix))
            except StorageError as e:
                logger.warning("Failed to list persisted cache entries", error=e.message)
            for key in sorted(keys):
                self._remove_record(key)
            self._remove_record(self._index_key)

            self._reset_state()
            self._initialized = True
            if self._config.reset_analytics_on_clear:
                self.analytics.reset()
            self.analytics.record_cache_size(0)
            logger.info("Feed cache cleared", namespace=self._config.namespace)

    def __len__(self) -> int:
        self.init()
        with self._lock:
            return len(self._entries)

    def __contains__(self, source_id: object) -> bool:
        self.init()
        with self._lock:
            return source_id in self._entries

    # Internals

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def _entry_key(self, source_id: str) -> str:
        return self._entry_prefix + source_id

    def _reset_state(self) -> None:
        self._entries = {}
        self._access_order = {}
        self._access_counter = itertools.count()
        self._total_size = 0
        self._compression_savings = 0

    def _put_entry(self, entry: CacheEntry) -> None:
        previous = self._entries.get(entry.source_id)
        if previous is not None:
            self._total_size -= previous.stored_size_bytes
        self._entries[entry.source_id] = entry
        self._access_order[entry.source_id] = next(self._access_counter)
        self._total_size += entry.stored_size_bytes

    def _remove_entry(self, source_id: str) -> Optional[CacheEntry]:
        entry = self._entries.pop(source_id, None)
        self._access_order.pop(source_id, None)
        if entry is not None:
            self._total_size -= entry.stored_size_bytes
            self._remove_record(self._entry_key(source_id))
        return entry

    def _lru_key(self, entry: CacheEntry):
        return (entry.last_accessed_at, self._access_order.get(entry.source_id, -1))

    def _evict_until_within_budget(self, keep: Optional[str] = None) -> List[str]:
        """Evict least recently accessed entries until the budget holds.

        Args:
            keep: Source id that must not be evicted

        Returns:
            Evicted source ids in eviction order
        """
        evicted: List[str] = []
        if self._total_size <= self._config.max_size_bytes:
            return evicted

        candidates = sorted(
            (entry for source_id, entry in self._entries.items() if source_id != keep),
            key=self._lru_key,
        )
        for entry in candidates:
            if self._total_size <= self._config.max_size_bytes:
                break
            self._remove_entry(entry.source_id)
            self.analytics.record_eviction(entry.source_id, entry.stored_size_bytes)
            evicted.append(entry.source_id)

        if evicted:
            logger.info(
                "Evicted least recently used cache entries",
                count=len(evicted),
                cache_size=self._total_size,
                budget=self._config.max_size_bytes,
            )
        return evicted

    def _purge_expired(self, now: int, keep: Optional[str] = None) -> List[str]:
        expired = [
            source_id
            for source_id, entry in self._entries.items()
            if source_id != keep and entry.is_expired(now, self._config.ttl_ms)
        ]
        for source_id in expired:
            self._remove_entry(source_id)
            self.analytics.record_expiration(source_id)
        if expired:
            logger.debug("Removed expired cache entries", count=len(expired))
        return expired

    # Persistence

    def _persist_entry(self, entry: CacheEntry) -> bool:
        key = self._entry_key(entry.source_id)
        try:
            self._storage.set(key, json.dumps(entry.to_record(), ensure_ascii=False))
        except StorageError as e:
            logger.warning(
                "Failed to persist cache entry", source_id=entry.source_id, error=e.message
            )
            self.analytics.record_error(entry.source_id, "persist", e.message)
            # The previous record must not outlive the entry that replaced it.
            self._remove_record(key)
            return False
        return True

    def _persist_index(self) -> bool:
        index = {
            "version": INDEX_VERSION,
            "entries": sorted(self._entries),
            "totalSize": self._total_size,
            "compressionSavings": self._compression_savings,
        }
        try:
            self._storage.set(self._index_key, json.dumps(index, ensure_ascii=False))
        except StorageError as e:
            logger.warning("Failed to persist cache index", error=e.message)
            self.analytics.record_error(None, "persist_index", e.message)
            return False
        return True

    def _remove_record(self, key: str) -> None:
        try:
            self._storage.remove(key)
        except StorageError as e:
            logger.warning("Failed to remove cache record", key=key, error=e.message)
            self.analytics.record_error(None, "remove", e.message)

    def _read_json(self, key: str) -> Optional[Dict[str, Any]]:
        """Read and parse a record; any failure reads as absent."""
        try:
            raw = self._storage.get(key)
        except StorageError as e:
            logger.warning("Failed to read cache record", key=key, error=e.message)
            return None
        if raw is None:
            return None
        try:
            record = json.loads(raw)
        except ValueError as e:
            logger.warning("Unreadable cache record", key=key, error=str(e))
            return None
        return record if isinstance(record, dict) else None

    def _load(self) -> None:
        index = self._read_json(self._index_key) or {}
        try:
            keys = self._storage.keys(self._entry_prefix)
        except StorageError as e:
            logger.warning("Failed to list persisted cache entries", error=e.message)
            keys = [self._entry_key(source_id) for source_id in index.get("entries", [])]

        now = self._now_ms()
        loaded: List[CacheEntry] = []
        for key in keys:
            record = self._read_json(key)
            entry = self._entry_from_record(key, record) if record is not None else None
            if entry is None:
                self._remove_record(key)
                continue
            if entry.is_expired(now, self._config.ttl_ms):
                self._remove_record(key)
                self.analytics.record_expiration(entry.source_id)
                continue
            loaded.append(entry)

        for entry in sorted(loaded, key=lambda e: e.last_accessed_at):
            self._put_entry(entry)
        self._compression_savings = int(index.get("compressionSavings", 0))

        self._evict_until_within_budget()
        self._persist_index()
        self.analytics.record_cache_size(self._total_size)
        logger.debug(
            "Feed cache loaded",
            namespace=self._config.namespace,
            entries=len(self._entries),
            cache_size=self._total_size,
        )

    def _entry_from_record(self, key: str, record: Dict[str, Any]) -> Optional[CacheEntry]:
        payload = record.get("payload")
        missing = "compressed" not in record or "articleCount" not in record
        if isinstance(payload, str) and missing:
            # Written without a compression flag or article count; decode to fill them in.
            if "compressed" in record:
                decoded = self._codec.decompress(payload, bool(record["compressed"]))
            else:
                decoded = self._codec.smart_decompress(payload)
            if not decoded.success:
                logger.warning("Corrupt cache record dropped", key=key, error=decoded.error)
                return None
            count = len(decoded.value) if isinstance(decoded.value, list) else 0
            record = dict(record, compressed=decoded.was_compressed, articleCount=count)
        try:
            entry = CacheEntry.from_record(record)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Malformed cache record dropped", key=key, error=str(e))
            return None
        if self._entry_key(entry.source_id) != key:
            logger.warning("Cache record key mismatch", key=key, source_id=entry.source_id)
            return None
        actual_size = calculate_storage_size(entry.payload)
        if entry.stored_size_bytes != actual_size:
            logger.warning(
                "Cache record size mismatch",
                key=key,
                recorded_size=entry.stored_size_bytes,
                actual_size=actual_size,
            )
            return None
        return entry
