"""Tests for storage backends."""
import sqlite3
from pathlib import Path

import pytest

from feed_cache.cache import FeedCache
from feed_cache.errors import QuotaExceededError, StorageError
from feed_cache.storage import MemoryStorage, SQLiteConfig, SQLiteStorage


@pytest.fixture
def test_db_path(tmp_path):
    """Fixture providing a temporary database path."""
    return str(tmp_path / "cache" / "test.db")


@pytest.fixture
def sqlite_storage(test_db_path):
    """Fixture providing a SQLiteStorage instance."""
    return SQLiteStorage(SQLiteConfig(db_path=test_db_path))


@pytest.fixture(params=["memory", "sqlite"])
def backend(request, tmp_path):
    if request.param == "memory":
        return MemoryStorage()
    return SQLiteStorage(SQLiteConfig(db_path=str(tmp_path / "backend.db")))


def test_storage_initialization(test_db_path):
    """Test storage initialization creates database and tables."""
    storage = SQLiteStorage(SQLiteConfig(db_path=test_db_path))

    assert Path(test_db_path).exists()

    with storage._connection() as conn:
        tables = {
            row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
        }
    assert "cache_records" in tables


def test_set_get_remove(backend):
    assert backend.get("a") is None

    backend.set("a", "1")
    backend.set("a", "2")

    assert backend.get("a") == "2"

    backend.remove("a")
    backend.remove("a")

    assert backend.get("a") is None


def test_keys_by_prefix(backend):
    backend.set("feed_cache:entry:x", "1")
    backend.set("feed_cache:entry:y", "2")
    backend.set("feed_cache:index", "3")
    backend.set("feedXcache:entry:z", "4")

    assert sorted(backend.keys("feed_cache:entry:")) == [
        "feed_cache:entry:x",
        "feed_cache:entry:y",
    ]
    assert len(backend.keys()) == 4


def test_unicode_values(backend):
    backend.set("k", "Élection présidentielle")

    assert backend.get("k") == "Élection présidentielle"


def test_memory_quota():
    storage = MemoryStorage(quota_bytes=10)
    storage.set("a", "12345")

    with pytest.raises(QuotaExceededError):
        storage.set("b", "123456789")

    assert storage.get("b") is None
    assert storage.size_bytes == 6

    # Replacing a value only counts the difference
    storage.set("a", "123456789")
    assert storage.size_bytes == 10


def test_quota_error_is_storage_error():
    assert issubclass(QuotaExceededError, StorageError)


def test_sqlite_error_wrapped(sqlite_storage, mocker):
    mocker.patch.object(
        sqlite_storage, "_get_connection", side_effect=sqlite3.OperationalError("locked")
    )

    with pytest.raises(StorageError):
        sqlite_storage.get("a")
    with pytest.raises(StorageError):
        sqlite_storage.set("a", "1")


def test_feed_cache_persists_to_sqlite(test_db_path, mock_articles):
    """Entries written through one SQLite-backed cache are read by another."""
    with FeedCache(storage=SQLiteStorage(SQLiteConfig(db_path=test_db_path))) as cache:
        assert cache.set_cached_feed("bbc-news", mock_articles)

    with FeedCache(storage=SQLiteStorage(SQLiteConfig(db_path=test_db_path))) as cache:
        assert cache.get_cached_feed("bbc-news") == mock_articles
        assert cache.get_cache_stats()["total_entries"] == 1
        cache.clear_cache()

    assert SQLiteStorage(SQLiteConfig(db_path=test_db_path)).keys("feed_cache:entry:") == []
