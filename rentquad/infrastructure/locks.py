"""
Redis-based distributed lock.

Backs the per-vehicle rental claim: the session that starts a rental takes
``lock:vehicle:<id>`` and holds it until the flow ends (completion, reset
or session close), so no other API process can start the same vehicle in
the meantime.  The TTL bounds how long a crashed process can keep a
vehicle; live holders refresh it with ``extend``.

Implementation uses SET NX EX for acquire and Lua scripts for atomic
check-and-delete on release and check-and-expire on extend.
"""

from __future__ import annotations

import uuid

import redis.asyncio as aioredis

_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""

_EXTEND_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("expire", KEYS[1], ARGV[2])
else
    return 0
end
"""


class DistributedLock:
    def __init__(
        self, client: aioredis.Redis, key: str, ttl_seconds: int = 300
    ):
        self.redis = client
        self.key = f"lock:{key}"
        self.ttl = ttl_seconds
        self.token = str(uuid.uuid4())

    async def acquire(self) -> bool:
        """Try to acquire. Returns True on success."""
        return bool(
            await self.redis.set(self.key, self.token, nx=True, ex=self.ttl)
        )

    async def extend(self) -> bool:
        """Reset the TTL.  Returns False if the lock expired or changed hands."""
        return bool(
            await self.redis.eval(_EXTEND_SCRIPT, 1, self.key, self.token, self.ttl)
        )

    async def release(self) -> None:
        """Release only if we still own the lock (atomic via Lua)."""
        await self.redis.eval(_RELEASE_SCRIPT, 1, self.key, self.token)
