"""Unit tests for the cache backends."""

import pytest
from libs.common.cache import MemoryCache, NullCache, build_cache
from libs.common.config import Settings


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.mark.unit
@pytest.mark.asyncio
async def test_memory_cache_expires_entries():
    clock = FakeClock()
    cache = MemoryCache(default_ttl=60, clock=clock)

    await cache.set("orders:stats", {"pending": 3})
    assert await cache.get("orders:stats") == {"pending": 3}

    clock.now += 59
    assert await cache.get("orders:stats") == {"pending": 3}

    clock.now += 1
    assert await cache.get("orders:stats") is None


@pytest.mark.unit
@pytest.mark.asyncio
async def test_memory_cache_per_key_ttl():
    clock = FakeClock()
    cache = MemoryCache(default_ttl=300, clock=clock)
    await cache.set("short", 1, ttl=5)
    await cache.set("long", 2)

    clock.now += 10
    assert await cache.get("short") is None
    assert await cache.get("long") == 2


@pytest.mark.unit
@pytest.mark.asyncio
async def test_memory_cache_pattern_invalidation():
    cache = MemoryCache()
    await cache.set("orders:stats", 1)
    await cache.set("orders:list:1", 2)
    await cache.set("coupons:analytics", 3)

    assert await cache.invalidate_pattern("orders:*") == 2
    assert await cache.get("orders:stats") is None
    assert await cache.get("orders:list:1") is None
    assert await cache.get("coupons:analytics") == 3


@pytest.mark.unit
@pytest.mark.asyncio
async def test_memory_cache_evicts_expired_when_full():
    clock = FakeClock()
    cache = MemoryCache(default_ttl=1, max_entries=2, clock=clock)
    await cache.set("a", 1)
    await cache.set("b", 2)
    clock.now += 5
    await cache.set("c", 3)

    assert set(cache._entries) == {"c"}


@pytest.mark.unit
@pytest.mark.asyncio
async def test_null_cache_never_hits():
    cache = NullCache()
    await cache.set("orders:stats", 1)
    assert await cache.get("orders:stats") is None
    assert await cache.invalidate_pattern("orders:*") == 0


@pytest.mark.unit
def test_build_cache_picks_backend():
    assert isinstance(build_cache(Settings(CACHE_BACKEND="memory")), MemoryCache)
    assert isinstance(build_cache(Settings(CACHE_BACKEND="none")), NullCache)
