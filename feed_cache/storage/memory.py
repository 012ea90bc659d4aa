"""In-memory storage backend with an optional byte quota."""

import threading
from typing import Dict, List, Optional

from feed_cache.errors import QuotaExceededError
from feed_cache.storage.base import StorageBackend


def _record_size(key: str, value: str) -> int:
    return len(key.encode("utf-8")) + len(value.encode("utf-8"))


class MemoryStorage(StorageBackend):
    """Dict-backed key-value store.

    When ``quota_bytes`` is set, writes that would push the total size of
    keys and values past it raise QuotaExceededError, the way browser local
    storage does.
    """

    def __init__(self, quota_bytes: Optional[int] = None) -> None:
        self.quota_bytes = quota_bytes
        self._data: Dict[str, str] = {}
        self._size = 0
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            previous = self._data.get(key)
            new_size = self._size + _record_size(key, value)
            if previous is not None:
                new_size -= _record_size(key, previous)

            if self.quota_bytes is not None and new_size > self.quota_bytes:
                raise QuotaExceededError(
                    f"Writing {key} would exceed the storage quota",
                    {"key": key, "quota_bytes": self.quota_bytes, "required_bytes": new_size},
                )

            self._data[key] = value
            self._size = new_size

    def remove(self, key: str) -> None:
        with self._lock:
            previous = self._data.pop(key, None)
            if previous is not None:
                self._size -= _record_size(key, previous)

    def keys(self, prefix: str = "") -> List[str]:
        with self._lock:
            return [key for key in self._data if key.startswith(prefix)]

    @property
    def size_bytes(self) -> int:
        return self._size

    def __len__(self) -> int:
        return len(self._data)
