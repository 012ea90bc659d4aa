"""Storage backend interface for the feed cache."""

from abc import ABC, abstractmethod
from typing import List, Optional


class StorageBackend(ABC):
    """A string key-value store owned by a single cache.

    Implementations raise StorageError (or QuotaExceededError) on failure;
    the cache turns those into misses or logged warnings.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the value stored under ``key``, or None if absent."""

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""

    @abstractmethod
    def remove(self, key: str) -> None:
        """Remove ``key``; removing a missing key is not an error."""

    @abstractmethod
    def keys(self, prefix: str = "") -> List[str]:
        """Return all keys starting with ``prefix``."""

    def close(self) -> None:
        """Release any resources held by the backend."""
