"""Helpers for measuring, formatting and generating cache data."""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

_LEANS = ["left", "lean-left", "center", "lean-right", "right"]
_SIZE_UNITS = ["Bytes", "KB", "MB", "GB"]


def calculate_storage_size(data: str) -> int:
    """Return the UTF-8 byte size of ``data``."""
    return len(data.encode("utf-8"))


def format_bytes(num_bytes: int) -> str:
    """Format a byte count into a human-readable string.

    Examples:
        >>> format_bytes(0)
        '0 Bytes'
        >>> format_bytes(1536)
        '1.5 KB'
    """
    if num_bytes <= 0:
        return "0 Bytes"
    value = float(num_bytes)
    unit = 0
    while value >= 1024 and unit < len(_SIZE_UNITS) - 1:
        value /= 1024
        unit += 1
    return f"{round(value, 2):g} {_SIZE_UNITS[unit]}"


def format_cache_age(age_ms: Optional[int]) -> str:
    """Describe how long ago an entry was written."""
    if age_ms is None:
        return "Not cached"
    minutes = age_ms // 60000
    if minutes < 1:
        return "Less than 1 minute ago"
    if minutes == 1:
        return "1 minute ago"
    return f"{minutes} minutes ago"


def generate_mock_articles(
    count: int = 50, now: Optional[datetime] = None
) -> List[Dict[str, Any]]:
    """Generate article records with realistic, repetitive text.

    Used by the benchmark command and the test suite.
    """
    now = now or datetime.now(timezone.utc)
    articles = []
    for i in range(count):
        n = i + 1
        articles.append(
            {
                "title": (
                    f"Test Article {n} - Lorem ipsum dolor sit amet, consectetur "
                    "adipiscing elit, sed do eiusmod tempor incididunt ut labore"
                ),
                "description": (
                    f"This is a test article description {n}. Ut enim ad minim veniam, "
                    "quis nostrud exercitation ullamco laboris nisi ut aliquip ex ea "
                    "commodo consequat."
                ),
                "link": f"https://example.com/article-{n}",
                "pubDate": (now - timedelta(hours=i)).isoformat(),
                "source": f"test-source-{i % 5}",
                "sourceLean": _LEANS[i % 5],
                "imageUrl": f"https://example.com/image-{n}.jpg",
                "author": f"Test Author {n}",
                "content": f"This is the full content of test article {n}. " * 10,
            }
        )
    return articles
