"""Shared Redis pool for the rate limiter.

Nothing else touches Redis: balances are never cached, every read goes to
PostgreSQL.
"""

import logging

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from config.settings import settings

logger = logging.getLogger(__name__)

_pool: aioredis.Redis | None = None


async def get_redis() -> aioredis.Redis:
    global _pool  # noqa: PLW0603
    if _pool is None:
        _pool = aioredis.from_url(settings.REDIS_URL, decode_responses=True)
    return _pool


async def check_redis() -> bool:
    """Ping once at startup. Failure is logged, not fatal: the limiter fails open."""
    try:
        return bool(await (await get_redis()).ping())
    except RedisError as exc:
        logger.warning("Redis unreachable at %s: %s", settings.REDIS_URL, exc)
        return False


async def close_redis() -> None:
    global _pool  # noqa: PLW0603
    if _pool is not None:
        await _pool.aclose()
        _pool = None
