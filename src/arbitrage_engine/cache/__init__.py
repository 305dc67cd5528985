"""Snapshot caching."""

from .snapshot_cache import SnapshotCache, CacheEntry, CacheKey, quote_cache_key

__all__ = [
    "SnapshotCache",
    "CacheEntry",
    "CacheKey",
    "quote_cache_key",
]
