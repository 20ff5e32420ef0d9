import asyncio
import uuid
from typing import Optional

import redis.asyncio as redis
import structlog

from salon_booking.core.config import settings

logger = structlog.get_logger(__name__)

# Deletes the key only while it still holds our token
_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
end
return 0
"""


class RedisClient:
    """Redis client used for short-lived booking locks."""

    def __init__(self, url: Optional[str] = None):
        self.url = url or settings.REDIS_URL
        self.redis_pool = None

    async def init_redis(self):
        """Initialize Redis connection pool."""
        try:
            self.redis_pool = redis.ConnectionPool.from_url(
                self.url,
                decode_responses=True,
                retry_on_timeout=True,
                socket_keepalive=True,
            )

            async with redis.Redis(connection_pool=self.redis_pool) as r:
                await r.ping()
                logger.info("Redis connection established")

        except Exception as e:
            logger.error("Failed to connect to Redis", exc_info=e)
            raise

    async def get_redis(self) -> redis.Redis:
        """Get Redis client instance."""
        if not self.redis_pool:
            await self.init_redis()
        return redis.Redis(connection_pool=self.redis_pool)

    @staticmethod
    def slot_lock_key(staff_id: int, date: str) -> str:
        return f"slot_lock:{staff_id}:{date}"

    async def acquire_slot_lock(
        self,
        staff_id: int,
        date: str,
        ttl_seconds: Optional[int] = None,
        wait_seconds: float = 5.0,
        poll_interval: float = 0.05,
    ) -> Optional[str]:
        """Lock a staff member's day while a booking is admitted.

        Returns the lock token, or None when another admission kept the lock
        for longer than ``wait_seconds``. Connection errors propagate as
        ``redis.RedisError``.
        """
        ttl = ttl_seconds or settings.SLOT_LOCK_SECONDS
        key = self.slot_lock_key(staff_id, date)
        token = uuid.uuid4().hex
        client = await self.get_redis()

        loop = asyncio.get_running_loop()
        deadline = loop.time() + wait_seconds
        while True:
            if await client.set(key, token, nx=True, ex=ttl):
                logger.debug("Slot lock acquired", key=key)
                return token
            if loop.time() >= deadline:
                logger.warning("Slot lock wait timed out", key=key)
                return None
            await asyncio.sleep(poll_interval)

    async def release_slot_lock(self, staff_id: int, date: str, token: str) -> bool:
        """Release a lock previously returned by ``acquire_slot_lock``."""
        key = self.slot_lock_key(staff_id, date)
        try:
            client = await self.get_redis()
            released = await client.eval(_RELEASE_SCRIPT, 1, key, token)
            return bool(released)
        except redis.RedisError as e:
            # The TTL expires the lock on its own
            logger.error("Redis lock release error", key=key, exc_info=e)
            return False
