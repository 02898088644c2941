"""Best-effort response cache.

The cache is an optimisation only: every backend treats its own failures as
misses and nothing in the store depends on a hit for correctness.

A backend is built once per application from settings and kept on
``app.state.cache``; handlers receive it through ``Depends(get_cache)``:

    @router.get("/orders/stats")
    async def stats(cache: Cache = Depends(get_cache)):
        cached = await cache.get("orders:stats")

Backends:
- ``NullCache``: never stores anything (default).
- ``MemoryCache``: per-process expiring map, for single-process deployments.
- ``RedisCache``: shared cache on Redis.
"""

import fnmatch
import json
import time
from typing import Any, Optional, Protocol

from fastapi import Request
from redis import asyncio as aioredis
from redis.exceptions import RedisError

from libs.common.config import Settings
from libs.common.logging import get_logger

logger = get_logger(__name__)


class Cache(Protocol):
    async def get(self, key: str) -> Optional[Any]: ...

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None: ...

    async def invalidate(self, key: str) -> None: ...

    async def invalidate_pattern(self, pattern: str) -> int: ...


class NullCache:
    """Cache that never hits."""

    async def get(self, key: str) -> Optional[Any]:
        return None

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        return None

    async def invalidate(self, key: str) -> None:
        return None

    async def invalidate_pattern(self, pattern: str) -> int:
        return 0


class MemoryCache:
    """In-process expiring map with glob-style pattern invalidation."""

    def __init__(self, default_ttl: int = 300, max_entries: int = 1000, clock=None):
        self.default_ttl = default_ttl
        self.max_entries = max_entries
        self._clock = clock or time.monotonic
        self._entries: dict[str, tuple[float, Any]] = {}

    async def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if self._clock() >= expires_at:
            self._entries.pop(key, None)
            return None
        return value

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        ttl = self.default_ttl if ttl is None else ttl
        self._entries[key] = (self._clock() + ttl, value)
        if len(self._entries) > self.max_entries:
            self._evict_expired()

    async def invalidate(self, key: str) -> None:
        self._entries.pop(key, None)

    async def invalidate_pattern(self, pattern: str) -> int:
        matched = [key for key in self._entries if fnmatch.fnmatchcase(key, pattern)]
        for key in matched:
            del self._entries[key]
        return len(matched)

    def _evict_expired(self) -> None:
        now = self._clock()
        for key in [k for k, (exp, _) in self._entries.items() if now >= exp]:
            del self._entries[key]


class RedisCache:
    """Redis-backed cache storing JSON values."""

    def __init__(self, redis: aioredis.Redis, default_ttl: int = 300):
        self.redis = redis
        self.default_ttl = default_ttl

    @classmethod
    def from_url(cls, url: str, default_ttl: int = 300) -> "RedisCache":
        return cls(aioredis.from_url(url, decode_responses=True), default_ttl)

    async def get(self, key: str) -> Optional[Any]:
        try:
            raw = await self.redis.get(key)
        except RedisError as e:
            logger.warning(f"Cache get failed for {key}: {e}")
            return None
        return json.loads(raw) if raw is not None else None

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        try:
            await self.redis.set(
                key, json.dumps(value, default=str), ex=ttl or self.default_ttl
            )
        except RedisError as e:
            logger.warning(f"Cache set failed for {key}: {e}")

    async def invalidate(self, key: str) -> None:
        try:
            await self.redis.delete(key)
        except RedisError as e:
            logger.warning(f"Cache invalidate failed for {key}: {e}")

    async def invalidate_pattern(self, pattern: str) -> int:
        removed = 0
        try:
            async for key in self.redis.scan_iter(match=pattern):
                removed += await self.redis.delete(key)
        except RedisError as e:
            logger.warning(f"Cache pattern invalidate failed for {pattern}: {e}")
        return removed


def build_cache(settings: Settings) -> Cache:
    """Pick the cache backend configured for this deployment."""
    ttl = settings.CACHE_DEFAULT_TTL_SECONDS
    if settings.CACHE_BACKEND == "redis":
        return RedisCache.from_url(settings.REDIS_URL, default_ttl=ttl)
    if settings.CACHE_BACKEND == "memory":
        return MemoryCache(default_ttl=ttl)
    return NullCache()


def get_cache(request: Request) -> Cache:
    """FastAPI dependency returning the application's cache backend."""
    cache = getattr(request.app.state, "cache", None)
    return cache if cache is not None else NullCache()
