"""
TTL cache of read-only snapshots.

Keys are tuples, values are frozen ``CacheEntry`` snapshots replaced
wholesale on every write, and the TTL is enforced on read. An optional
Redis layer shares entries between processes (``setex`` + JSON).
"""
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Hashable, Iterable, Optional, Tuple

logger = logging.getLogger(__name__)

CacheKey = Tuple[Hashable, ...]


def quote_cache_key(token: str, networks: Iterable[str]) -> CacheKey:
    """Key for one token's quotes across a set of networks."""
    return token.upper(), tuple(sorted(set(networks)))


@dataclass(frozen=True)
class CacheEntry:
    key: CacheKey
    value: Any
    version: int
    stored_at: float
    ttl_seconds: float

    def is_expired(self, now: float) -> bool:
        return now - self.stored_at >= self.ttl_seconds


class SnapshotCache:
    """Memory cache with an optional Redis layer behind it."""

    def __init__(
        self,
        ttl_seconds: float = 15.0,
        redis_client=None,
        namespace: str = "arb",
        encoder: Optional[Callable[[Any], Any]] = None,
        decoder: Optional[Callable[[Any], Any]] = None,
        clock: Callable[[], float] = time.time
    ):
        """
        Initialize the cache.

        Args:
            ttl_seconds: Entry lifetime
            redis_client: Optional ``redis.asyncio`` client for the shared layer
            namespace: Prefix for Redis keys
            encoder: Converts a value to JSON-serializable data for Redis
            decoder: Rebuilds a value from the JSON data read from Redis
            clock: Time source in epoch seconds
        """
        self.ttl_seconds = ttl_seconds
        self.redis_client = redis_client
        self.namespace = namespace
        self.encoder = encoder or (lambda value: value)
        self.decoder = decoder or (lambda data: data)
        self.clock = clock

        self._entries: Dict[CacheKey, CacheEntry] = {}
        self._versions: Dict[CacheKey, int] = {}
        self._stats = {
            "hits": 0,
            "misses": 0,
            "expired": 0,
            "redis_hits": 0,
            "redis_errors": 0,
            "writes": 0,
        }

    def _redis_key(self, key: CacheKey) -> str:
        parts = []
        for part in key:
            if isinstance(part, (tuple, list)):
                parts.append(",".join(str(p) for p in part))
            else:
                parts.append(str(part))
        return f"{self.namespace}:" + "|".join(parts)

    async def get(self, key: CacheKey) -> Optional[CacheEntry]:
        """Return the live entry for ``key``, or None if missing or expired."""
        now = self.clock()
        entry = self._entries.get(key)
        if entry is not None:
            if not entry.is_expired(now):
                self._stats["hits"] += 1
                return entry
            self._stats["expired"] += 1
            self._entries.pop(key, None)

        if self.redis_client is not None:
            entry = await self._get_from_redis(key, now)
            if entry is not None:
                self._stats["redis_hits"] += 1
                self._entries[key] = entry
                return entry

        self._stats["misses"] += 1
        return None

    async def set(self, key: CacheKey, value: Any) -> CacheEntry:
        """Store a new snapshot for ``key``, replacing any previous one."""
        version = self._versions.get(key, 0) + 1
        self._versions[key] = version
        entry = CacheEntry(
            key=key,
            value=value,
            version=version,
            stored_at=self.clock(),
            ttl_seconds=self.ttl_seconds,
        )
        self._entries[key] = entry
        self._stats["writes"] += 1

        if self.redis_client is not None:
            await self._set_in_redis(entry)
        return entry

    async def invalidate(self, key: CacheKey) -> None:
        self._entries.pop(key, None)
        if self.redis_client is not None:
            try:
                await self.redis_client.delete(self._redis_key(key))
            except Exception as e:
                self._stats["redis_errors"] += 1
                logger.warning(f"Failed to delete cache key {key}: {e}")

    def clear(self) -> None:
        self._entries.clear()

    async def _get_from_redis(self, key: CacheKey, now: float) -> Optional[CacheEntry]:
        try:
            raw = await self.redis_client.get(self._redis_key(key))
        except Exception as e:
            self._stats["redis_errors"] += 1
            logger.warning(f"Redis read failed for {key}: {e}")
            return None

        if not raw:
            return None

        try:
            data = json.loads(raw)
            entry = CacheEntry(
                key=key,
                value=self.decoder(data["value"]),
                version=int(data["version"]),
                stored_at=float(data["stored_at"]),
                ttl_seconds=self.ttl_seconds,
            )
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Failed to parse cached snapshot for {key}: {e}")
            return None

        if entry.is_expired(now):
            return None
        return entry

    async def _set_in_redis(self, entry: CacheEntry) -> None:
        payload = json.dumps({
            "value": self.encoder(entry.value),
            "version": entry.version,
            "stored_at": entry.stored_at,
        })
        try:
            await self.redis_client.setex(
                self._redis_key(entry.key),
                max(1, int(self.ttl_seconds)),
                payload,
            )
        except Exception as e:
            self._stats["redis_errors"] += 1
            logger.warning(f"Redis write failed for {entry.key}: {e}")

    def get_cache_stats(self) -> Dict[str, Any]:
        return {
            "entries": len(self._entries),
            "ttl_seconds": self.ttl_seconds,
            "backend": "redis" if self.redis_client is not None else "memory",
            **self._stats,
        }
