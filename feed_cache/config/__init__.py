"""Configuration management for feed cache components."""

from .cache_config import CacheConfig

__all__ = ["CacheConfig"]
