"""SQLite storage backend for cache records."""
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional

import structlog
from pydantic import BaseModel

from feed_cache.errors import StorageError
from feed_cache.storage.base import StorageBackend

logger = structlog.get_logger(__name__)


class SQLiteConfig(BaseModel):
    """Configuration for SQLite storage."""

    db_path: str
    timeout: float = 10.0


class SQLiteStorage(StorageBackend):
    """SQLite-backed key-value store for cache records."""

    def __init__(self, config: SQLiteConfig):
        """Initialize SQLite storage.

        Args:
            config: SQLite configuration
        """
        self.db_path = Path(config.db_path)
        self.timeout = config.timeout
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        # Initialize database
        with self._connection() as conn:
            with open(Path(__file__).parent / "schema.sql") as f:
                conn.executescript(f.read())

    def _get_connection(self) -> sqlite3.Connection:
        """Get SQLite connection with row factory."""
        conn = sqlite3.connect(self.db_path, timeout=self.timeout)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        """Yield a connection that commits on success and is always closed."""
        conn = self._get_connection()
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def get(self, key: str) -> Optional[str]:
        """Get the value stored under a key.

        Args:
            key: Record key

        Returns:
            Stored value or None if the key is absent

        Raises:
            StorageError: If the database cannot be read
        """
        try:
            with self._connection() as conn:
                row = conn.execute(
                    "SELECT value FROM cache_records WHERE key = ?", (key,)
                ).fetchone()
        except sqlite3.Error as e:
            logger.error("Error reading cache record", key=key, error=str(e))
            raise StorageError(f"Failed to read {key}: {e}", details={"key": key}) from e
        return row["value"] if row else None

    def set(self, key: str, value: str) -> None:
        """Store a value under a key, replacing any existing value.

        Raises:
            StorageError: If the database cannot be written
        """
        try:
            with self._connection() as conn:
                conn.execute(
                    """
                    INSERT INTO cache_records (key, value, updated_at)
                    VALUES (?, ?, CURRENT_TIMESTAMP)
                    ON CONFLICT(key) DO UPDATE SET
                        value = excluded.value,
                        updated_at = excluded.updated_at
                    """,
                    (key, value),
                )
        except sqlite3.Error as e:
            logger.error("Error writing cache record", key=key, error=str(e))
            raise StorageError(f"Failed to write {key}: {e}", details={"key": key}) from e

    def remove(self, key: str) -> None:
        """Remove a key. Missing keys are ignored."""
        try:
            with self._connection() as conn:
                conn.execute("DELETE FROM cache_records WHERE key = ?", (key,))
        except sqlite3.Error as e:
            logger.error("Error removing cache record", key=key, error=str(e))
            raise StorageError(f"Failed to remove {key}: {e}", details={"key": key}) from e

    def keys(self, prefix: str = "") -> List[str]:
        """List keys starting with a prefix."""
        escaped = prefix.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        try:
            with self._connection() as conn:
                rows = conn.execute(
                    "SELECT key FROM cache_records WHERE key LIKE ? ESCAPE '\\' ORDER BY key",
                    (escaped + "%",),
                ).fetchall()
        except sqlite3.Error as e:
            logger.error("Error listing cache records", prefix=prefix, error=str(e))
            raise StorageError(f"Failed to list keys: {e}", details={"prefix": prefix}) from e
        return [row["key"] for row in rows]
