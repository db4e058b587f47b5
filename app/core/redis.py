from contextlib import asynccontextmanager
from typing import AsyncIterator

import redis.asyncio as redis
import structlog
from redis.exceptions import LockError, RedisError

from app.core.config import settings

logger = structlog.get_logger(__name__)


class RedisClient:
    """Redis client used to serialise bookings per calendar date."""

    def __init__(self):
        self.redis_pool = None

    async def init_redis(self):
        """Initialize Redis connection pool."""
        try:
            self.redis_pool = redis.ConnectionPool.from_url(
                settings.REDIS_URL,
                decode_responses=True,
                retry_on_timeout=True,
                socket_keepalive=True,
                socket_connect_timeout=2,
            )

            # Test connection
            async with redis.Redis(connection_pool=self.redis_pool) as r:
                await r.ping()
                logger.info("Redis connection established")

        except Exception as e:
            self.redis_pool = None
            logger.error("Failed to connect to Redis", exc_info=e)
            raise

    async def get_redis(self) -> redis.Redis:
        """Get Redis client instance."""
        if not self.redis_pool:
            await self.init_redis()
        return redis.Redis(connection_pool=self.redis_pool)

    @asynccontextmanager
    async def booking_lock(
        self,
        booking_date: str,
        timeout: int = 30,
        blocking_timeout: float = 5.0,
    ) -> AsyncIterator[bool]:
        """Hold the per-date booking lock for the duration of the block.

        Yields False when another booking for the same date held the lock for
        longer than ``blocking_timeout``. When Redis is unreachable the block
        still runs and the partial unique index on appointments is the only
        guard.
        """
        lock_key = f"booking_lock:{booking_date}"
        lock = None
        try:
            client = await self.get_redis()
            lock = client.lock(
                lock_key, timeout=timeout, blocking_timeout=blocking_timeout
            )
            acquired = await lock.acquire()
        except (RedisError, OSError) as e:
            logger.warning(
                "Booking lock unavailable, relying on database constraint",
                date=booking_date,
                error=str(e),
            )
            lock, acquired = None, True

        try:
            yield acquired
        finally:
            if lock is not None and acquired:
                try:
                    await lock.release()
                except (LockError, RedisError) as e:
                    logger.warning(
                        "Failed to release booking lock",
                        date=booking_date,
                        error=str(e),
                    )


# Global Redis client instance
redis_client = RedisClient()
