"""Data models for cached feeds."""

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class SourceLean(str, Enum):
    """Political lean tag attached to a news source."""

    LEFT = "left"
    LEAN_LEFT = "lean-left"
    CENTER = "center"
    LEAN_RIGHT = "lean-right"
    RIGHT = "right"
    UNKNOWN = "unknown"


class Article(BaseModel):
    """Model for a single article supplied by the fetch layer."""

    title: str = Field(..., description="Article headline")
    description: str = ""
    link: str
    pubDate: str = Field(..., description="ISO-8601 publish timestamp")
    source: str
    sourceLean: SourceLean = SourceLean.UNKNOWN
    imageUrl: Optional[str] = None
    author: Optional[str] = None
    content: Optional[str] = None

    def to_record(self) -> Dict[str, Any]:
        """Convert to the plain dict stored in the cache."""
        return self.model_dump(mode="json", exclude_none=True)


def parse_articles(raw: List[Dict[str, Any]]) -> List[Article]:
    """Validate a list of raw article dicts."""
    return [Article.model_validate(item) for item in raw]


@dataclass
class CacheEntry:
    """One cached article list for a source.

    Attributes:
        source_id: Source identifier, unique across the cache
        payload: Compressed text or raw JSON, depending on ``compressed``
        compressed: Whether ``payload`` holds the compressed form
        original_size_bytes: Size of the serialized article list
        stored_size_bytes: Size of ``payload``
        created_at: Epoch milliseconds of the last write
        last_accessed_at: Epoch milliseconds of the last write or hit
        access_count: Number of hits since the last write
        article_count: Number of articles in the cached list
    """

    source_id: str
    payload: str
    compressed: bool
    original_size_bytes: int
    stored_size_bytes: int
    created_at: int
    last_accessed_at: int
    access_count: int = 0
    article_count: int = 0

    def is_expired(self, now_ms: int, ttl_ms: int) -> bool:
        return now_ms - self.created_at > ttl_ms

    def touch(self, now_ms: int) -> None:
        self.last_accessed_at = now_ms
        self.access_count += 1

    def info(self) -> Dict[str, Any]:
        """Entry metadata without the payload."""
        data = asdict(self)
        del data["payload"]
        return data

    def to_record(self) -> Dict[str, Any]:
        """Convert to the persisted record layout."""
        return {
            "sourceId": self.source_id,
            "compressed": self.compressed,
            "payload": self.payload,
            "originalSizeBytes": self.original_size_bytes,
            "storedSizeBytes": self.stored_size_bytes,
            "createdAt": self.created_at,
            "lastAccessedAt": self.last_accessed_at,
            "accessCount": self.access_count,
            "articleCount": self.article_count,
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "CacheEntry":
        """Build an entry from a persisted record.

        Raises:
            KeyError: If a required field is missing
            TypeError, ValueError: If a field has the wrong type
        """
        payload = record["payload"]
        if not isinstance(payload, str):
            raise TypeError("payload must be a string")
        return cls(
            source_id=str(record["sourceId"]),
            payload=payload,
            compressed=bool(record["compressed"]),
            original_size_bytes=int(record["originalSizeBytes"]),
            stored_size_bytes=int(record["storedSizeBytes"]),
            created_at=int(record["createdAt"]),
            last_accessed_at=int(record["lastAccessedAt"]),
            access_count=int(record.get("accessCount", 0)),
            article_count=int(record.get("articleCount", 0)),
        )
