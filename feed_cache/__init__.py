"""Feed cache module."""

from .cache import CacheAnalytics, FeedCache, MissReason
from .compression import CompressionCodec, CompressionResult, DecompressionResult
from .config import CacheConfig
from .storage import MemoryStorage, SQLiteConfig, SQLiteStorage

__version__ = "1.0.0"

__all__ = [
    "CacheAnalytics",
    "CacheConfig",
    "CompressionCodec",
    "CompressionResult",
    "DecompressionResult",
    "FeedCache",
    "MemoryStorage",
    "MissReason",
    "SQLiteConfig",
    "SQLiteStorage",
]
