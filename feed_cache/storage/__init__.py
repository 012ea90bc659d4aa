"""
Storage backends for persisting cache records.
"""
from feed_cache.storage.base import StorageBackend
from feed_cache.storage.memory import MemoryStorage
from feed_cache.storage.sqlite_storage import SQLiteConfig, SQLiteStorage

__all__ = ["StorageBackend", "MemoryStorage", "SQLiteConfig", "SQLiteStorage"]
