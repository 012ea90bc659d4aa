"""Configuration settings for the feed cache."""

import os
from dataclasses import dataclass, fields
from typing import Any, Dict, Mapping, Optional

ENV_PREFIX = "FEED_CACHE_"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"Invalid boolean value: {value!r}")


@dataclass
class CacheConfig:
    """Configuration for the feed cache.

    Attributes:
        max_size_bytes: Budget for the sum of stored entry sizes
        ttl_seconds: Time-to-live in seconds for cache entries
        enable_compression: Whether to try compressing cached feeds
        compression_threshold: Compressed form is kept only when
            stored/original is below this ratio
        compression_level: zlib compression level (1-9)
        namespace: Key prefix used in the backing storage
        reset_analytics_on_clear: If True, clear_cache() also resets analytics
    """

    max_size_bytes: int = 50 * 1024 * 1024
    ttl_seconds: int = 30 * 60
    enable_compression: bool = True
    compression_threshold: float = 0.9
    compression_level: int = 6
    namespace: str = "feed_cache"
    reset_analytics_on_clear: bool = False

    def __post_init__(self) -> None:
        if self.max_size_bytes <= 0:
            raise ValueError("max_size_bytes must be positive")
        if self.ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        if not 0.0 < self.compression_threshold <= 1.0:
            raise ValueError("compression_threshold must be in (0, 1]")
        if not 1 <= self.compression_level <= 9:
            raise ValueError("compression_level must be between 1 and 9")
        if not self.namespace:
            raise ValueError("namespace must not be empty")

    @property
    def ttl_ms(self) -> int:
        return self.ttl_seconds * 1000

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> "CacheConfig":
        """Create a CacheConfig instance from a dictionary.

        Args:
            config_dict: Dictionary containing configuration values

        Returns:
            CacheConfig instance with values from dictionary
        """
        return cls(**{k: v for k, v in config_dict.items() if k in cls.__dataclass_fields__})

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "CacheConfig":
        """Create a CacheConfig from FEED_CACHE_* environment variables.

        Unset variables keep their defaults.

        Args:
            environ: Mapping to read from, defaults to os.environ

        Returns:
            CacheConfig instance
        """
        environ = os.environ if environ is None else environ
        values: Dict[str, Any] = {}
        for field in fields(cls):
            raw = environ.get(ENV_PREFIX + field.name.upper())
            if raw is None:
                continue
            if field.type in (bool, "bool"):
                values[field.name] = _parse_bool(raw)
            elif field.type in (int, "int"):
                values[field.name] = int(raw)
            elif field.type in (float, "float"):
                values[field.name] = float(raw)
            else:
                values[field.name] = raw
        return cls(**values)
