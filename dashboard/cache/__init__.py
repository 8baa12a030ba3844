"""
In-memory TTL caching with single-flight population and background sweep.
"""
from .core import CacheEntry, CacheStats
from .ttl_policies import (
    TTL_CONFIG,
    get_ttl_for_source,
    is_cached_source,
)
from .coalescer import KeyedCoalescer
from .store import CacheStore

__all__ = [
    # Core types
    "CacheEntry",
    "CacheStats",
    # TTL policies
    "TTL_CONFIG",
    "get_ttl_for_source",
    "is_cached_source",
    # Coalescing
    "KeyedCoalescer",
    # Store
    "CacheStore",
]
