"""
Redis caching for tour aggregates.

What we cache:
  - Tour statistics by difficulty: "tours:stats:all"
  - Monthly plans: "tours:stats:plan:{year}"

Both are full-table aggregations that change only when a tour or a review is
written, while the pages reading them are hit far more often.

Invalidation:
  - Any tour create/update/delete/image upload and any review write deletes
    every "tours:stats:*" key (SCAN over a tiny keyspace)
  - TTL-based expiry as safety net

Redis is optional: every call degrades to a miss/no-op when it is disabled or
unreachable.
"""

import json
from typing import Any, Optional

from redis.exceptions import RedisError

from tourbook.core.config import get_settings
from tourbook.core.logging import get_logger
from tourbook.core.metrics import record_cache_operation
from tourbook.infrastructure.redis_client import get_redis

logger = get_logger(__name__)

STATS_PREFIX = "tours:stats:"


def tour_stats_key() -> str:
    return f"{STATS_PREFIX}all"


def monthly_plan_key(year: int) -> str:
    return f"{STATS_PREFIX}plan:{year}"


async def get_cached(key: str) -> Optional[Any]:
    client = await get_redis()
    if not client:
        return None

    try:
        data = await client.get(key)
    except RedisError as e:
        logger.error("cache_get_error", key=key, error=str(e))
        return None

    record_cache_operation("get", hit=data is not None)
    if data is None:
        logger.debug("cache_miss", key=key)
        return None
    logger.debug("cache_hit", key=key)
    return json.loads(data)


async def set_cached(key: str, data: Any) -> None:
    client = await get_redis()
    if not client:
        return

    ttl = get_settings().REDIS_CACHE_TTL
    try:
        await client.setex(key, ttl, json.dumps(data, default=str))
        logger.debug("cache_set", key=key, ttl=ttl)
    except RedisError as e:
        logger.error("cache_set_error", key=key, error=str(e))


async def invalidate_tour_cache() -> None:
    client = await get_redis()
    if not client:
        return

    try:
        deleted = 0
        async for key in client.scan_iter(match=f"{STATS_PREFIX}*", count=100):
            await client.delete(key)
            deleted += 1
        logger.info("cache_invalidated", keys_deleted=deleted)
    except RedisError as e:
        logger.error("cache_invalidation_error", error=str(e))


async def get_cache_stats() -> dict:
    """Redis status for the health endpoint."""
    client = await get_redis()
    if not client:
        return {"status": "disabled"}

    try:
        info = await client.info("stats")
    except RedisError as e:
        return {"status": "error", "error": str(e)}
    hits = info.get("keyspace_hits", 0)
    misses = info.get("keyspace_misses", 0)
    return {
        "status": "connected",
        "hits": hits,
        "misses": misses,
        "hit_rate": round(hits / max(hits + misses, 1) * 100, 2),
    }
