"""
Redis access for vehicle claim locks.

The connection pool is created on first use so importing the API (tests,
migrations, the seed script) never touches Redis.
"""

from typing import Optional

import redis.asyncio as aioredis

from rentquad.config import settings

_pool: Optional[aioredis.ConnectionPool] = None


async def get_redis() -> aioredis.Redis:
    global _pool
    if _pool is None:
        _pool = aioredis.ConnectionPool.from_url(
            settings.redis_url, decode_responses=True
        )
    return aioredis.Redis(connection_pool=_pool)


async def close_redis() -> None:
    """Disconnect the shared pool (application shutdown)."""
    global _pool
    if _pool is not None:
        await _pool.disconnect()
        _pool = None
