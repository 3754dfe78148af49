"""Persistent, size-bounded on-disk cache for files and directory trees."""

from .config import CacheConfig, load_config
from .errors import (
    CacheConfigurationError,
    CacheError,
    CacheKeyNotFoundError,
    CommandError,
    EvictionError,
    TransportError,
)
from .schemas import MANIFEST_VERSION, CacheEntry, CacheManifest
from .storage import FileCache, cache_or_produce

__version__ = "0.1.0"

__all__ = [
    "MANIFEST_VERSION",
    "CacheConfig",
    "CacheConfigurationError",
    "CacheEntry",
    "CacheError",
    "CacheKeyNotFoundError",
    "CacheManifest",
    "CommandError",
    "EvictionError",
    "FileCache",
    "TransportError",
    "__version__",
    "cache_or_produce",
    "load_config",
]
