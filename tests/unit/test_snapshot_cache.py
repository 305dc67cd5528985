"""Unit tests for the quote snapshot cache."""
import dataclasses
import json
import pytest
from unittest.mock import AsyncMock

from arbitrage_engine.cache.snapshot_cache import SnapshotCache, quote_cache_key

NOW = 1_700_000_000.0


class FakeClock:
    def __init__(self, now=NOW):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def mock_redis():
    redis = AsyncMock()
    redis.get.return_value = None
    return redis


class TestMemoryCache:
    """Test the in-process layer."""

    @pytest.mark.asyncio
    async def test_set_and_get(self, clock):
        cache = SnapshotCache(ttl_seconds=15, clock=clock)
        key = quote_cache_key("weth", ["polygon", "ethereum"])

        stored = await cache.set(key, {"price": "2000"})
        entry = await cache.get(key)

        assert entry is stored
        assert entry.value == {"price": "2000"}
        assert entry.version == 1
        assert cache.get_cache_stats()["hits"] == 1

    @pytest.mark.asyncio
    async def test_writes_replace_snapshot(self, clock):
        cache = SnapshotCache(clock=clock)
        key = ("WETH", ("ethereum",))

        first = await cache.set(key, [1])
        second = await cache.set(key, [2])

        assert second.version == 2
        assert first.value == [1]
        assert (await cache.get(key)).value == [2]
        with pytest.raises(dataclasses.FrozenInstanceError):
            second.value = [3]

    @pytest.mark.asyncio
    async def test_entry_expires(self, clock):
        cache = SnapshotCache(ttl_seconds=15, clock=clock)
        key = ("WETH", ("ethereum",))
        await cache.set(key, "snapshot")

        clock.now += 15
        assert await cache.get(key) is None

        stats = cache.get_cache_stats()
        assert stats["expired"] == 1
        assert stats["misses"] == 1
        assert stats["backend"] == "memory"

    @pytest.mark.asyncio
    async def test_invalidate(self, clock):
        cache = SnapshotCache(clock=clock)
        key = ("DAI", ("bsc",))
        await cache.set(key, "snapshot")
        await cache.invalidate(key)

        assert await cache.get(key) is None

    def test_quote_cache_key_normalizes(self):
        key = quote_cache_key("weth", ["polygon", "ethereum", "polygon"])
        assert key == ("WETH", ("ethereum", "polygon"))


class TestRedisLayer:
    """Test the shared Redis layer."""

    @pytest.mark.asyncio
    async def test_set_writes_with_ttl(self, clock, mock_redis):
        cache = SnapshotCache(ttl_seconds=15, redis_client=mock_redis, clock=clock)
        await cache.set(("WETH", ("ethereum", "polygon")), {"price": "2000"})

        mock_redis.setex.assert_called_once()
        key, ttl, payload = mock_redis.setex.call_args.args
        assert key == "arb:WETH|ethereum,polygon"
        assert ttl == 15
        assert json.loads(payload) == {"value": {"price": "2000"}, "version": 1, "stored_at": NOW}

    @pytest.mark.asyncio
    async def test_get_falls_back_to_redis(self, clock, mock_redis):
        mock_redis.get.return_value = json.dumps({
            "value": ["2000"], "version": 3, "stored_at": NOW - 5,
        })
        cache = SnapshotCache(
            ttl_seconds=15,
            redis_client=mock_redis,
            decoder=lambda data: tuple(data),
            clock=clock,
        )

        entry = await cache.get(("WETH", ("ethereum",)))

        assert entry.value == ("2000",)
        assert entry.version == 3
        assert cache.get_cache_stats()["redis_hits"] == 1

    @pytest.mark.asyncio
    async def test_expired_redis_entry_ignored(self, clock, mock_redis):
        mock_redis.get.return_value = json.dumps({
            "value": [], "version": 1, "stored_at": NOW - 60,
        })
        cache = SnapshotCache(ttl_seconds=15, redis_client=mock_redis, clock=clock)

        assert await cache.get(("WETH", ("ethereum",))) is None

    @pytest.mark.asyncio
    async def test_redis_errors_do_not_propagate(self, clock, mock_redis):
        mock_redis.get.side_effect = ConnectionError("redis down")
        mock_redis.setex.side_effect = ConnectionError("redis down")
        cache = SnapshotCache(redis_client=mock_redis, clock=clock)
        key = ("WETH", ("ethereum",))

        await cache.set(key, "snapshot")
        cache.clear()
        assert await cache.get(key) is None
        assert cache.get_cache_stats()["redis_errors"] == 2
