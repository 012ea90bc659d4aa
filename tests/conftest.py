import pytest
import structlog
from prometheus_client import CollectorRegistry

from feed_cache.cache import CacheAnalytics, FeedCache
from feed_cache.config import CacheConfig
from feed_cache.metrics import CacheMetrics
from feed_cache.storage import MemoryStorage
from feed_cache.utils import generate_mock_articles


class FakeClock:
    """Manually advanced clock returning seconds since the epoch."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def reset_structlog():
    """Undo logging configuration done by CLI tests."""
    yield
    structlog.reset_defaults()


@pytest.fixture(autouse=True)
def clear_cache_env(monkeypatch):
    """Keep FEED_CACHE_* variables from the host out of the tests."""
    for name in [
        "FEED_CACHE_DB_PATH",
        "FEED_CACHE_MAX_SIZE_BYTES",
        "FEED_CACHE_TTL_SECONDS",
        "FEED_CACHE_ENABLE_COMPRESSION",
        "FEED_CACHE_COMPRESSION_THRESHOLD",
        "FEED_CACHE_COMPRESSION_LEVEL",
        "FEED_CACHE_NAMESPACE",
        "FEED_CACHE_RESET_ANALYTICS_ON_CLEAR",
    ]:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def registry():
    return CollectorRegistry()


@pytest.fixture
def analytics(registry):
    return CacheAnalytics(metrics=CacheMetrics(registry=registry))


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def cache_config():
    return CacheConfig(max_size_bytes=1024 * 1024, ttl_seconds=1800)


@pytest.fixture
def cache(cache_config, storage, analytics, clock):
    """FeedCache over in-memory storage with a fake clock."""
    feed_cache = FeedCache(config=cache_config, storage=storage, analytics=analytics, clock=clock)
    yield feed_cache
    feed_cache.clear_cache()


@pytest.fixture
def mock_articles():
    return generate_mock_articles(100)
