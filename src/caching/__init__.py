"""
Caching Module

In-memory TTL cache store and the two-tier validation result cache
"""

from .cache_keys import CacheKeyBuilder
from .cache_store import (
    CacheStore,
    CacheEntry,
    CacheMetrics,
    CacheOperationResult,
    now_ms
)
from .validation_cache import ValidationCache

__all__ = [
    "CacheKeyBuilder",
    "CacheStore",
    "CacheEntry",
    "CacheMetrics",
    "CacheOperationResult",
    "ValidationCache",
    "now_ms"
]
