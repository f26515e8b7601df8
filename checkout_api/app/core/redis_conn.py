# checkout_api/app/core/redis_conn.py
from __future__ import annotations

import logging
from typing import Optional

from redis.asyncio import Redis as AsyncRedis  # requires redis>=5
from redis.exceptions import RedisError

from checkout_api.app.core.config import settings

log = logging.getLogger(__name__)

_async_client: Optional[AsyncRedis] = None


def get_async_redis() -> AsyncRedis:
    """
    Return the process-wide asynchronous Redis client.
    The client holds a connection pool; constructing it does not connect.
    """
    global _async_client
    if _async_client is None:
        _async_client = AsyncRedis.from_url(settings.redis_url, decode_responses=True)
    return _async_client


async def close_async_redis() -> None:
    global _async_client
    if _async_client is not None:
        await _async_client.aclose()
        _async_client = None


async def ping_async() -> bool:
    """
    Lightweight ping for health checks.
    """
    try:
        return bool(await get_async_redis().ping())
    except (RedisError, OSError) as e:
        log.warning("redis ping failed: %s", e)
        return False
