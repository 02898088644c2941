"""Shared helpers for store routers."""

from libs.common.cache import Cache

ORDER_STATS_KEY = "orders:stats"
ORDER_CACHE_PATTERN = "orders:*"


async def invalidate_order_cache(cache: Cache) -> None:
    """Drop cached order summaries after any order change."""
    await cache.invalidate_pattern(ORDER_CACHE_PATTERN)
