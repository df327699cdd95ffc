"""Redis client and the Redis-backed rate-limit store.

Rate-limit records are stored as JSON under ``ratelimit:<identifier>`` with a
TTL covering the rest of the daily window plus the burst spacing, so Redis
reclaims idle identifiers on its own.
"""

import logging
import math

import redis.asyncio as redis
from redis.exceptions import WatchError

from app.config import settings
from app.core.rate_limit import Mutation, RateLimitRecord, RateLimitResult

logger = logging.getLogger(__name__)

# Global Redis connection pool
_redis_pool: redis.ConnectionPool | None = None
_redis_client: redis.Redis | None = None


async def get_redis() -> redis.Redis:
    """Get Redis client instance (creates connection pool on first call)."""
    global _redis_pool, _redis_client

    if _redis_client is None:
        _redis_pool = redis.ConnectionPool.from_url(
            settings.redis_url,
            decode_responses=True,
            max_connections=10,
        )
        _redis_client = redis.Redis(connection_pool=_redis_pool)
        logger.info("Redis connection pool initialized")

    return _redis_client


async def close_redis() -> None:
    """Close Redis connection pool."""
    global _redis_pool, _redis_client

    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None

    if _redis_pool:
        await _redis_pool.aclose()
        _redis_pool = None

    logger.info("Redis connection pool closed")


class RedisRateLimitStore:
    """Rate-limit records in Redis, updated with WATCH/MULTI compare-and-swap."""

    def __init__(
        self,
        redis_client: redis.Redis,
        grace_seconds: float = 0.0,
        key_prefix: str = "ratelimit:",
    ):
        self.redis = redis_client
        self.grace_seconds = grace_seconds
        self.key_prefix = key_prefix

    def _key(self, identifier: str) -> str:
        return f"{self.key_prefix}{identifier}"

    def _ttl(self, record: RateLimitRecord, now: float) -> int:
        return max(1, math.ceil(record.window_reset_at + self.grace_seconds - now))

    async def get(self, identifier: str) -> RateLimitRecord | None:
        raw = await self.redis.get(self._key(identifier))  # type: ignore[misc]
        if raw is None:
            return None
        return RateLimitRecord.from_json(raw)

    async def update(self, identifier: str, now: float, mutate: Mutation) -> RateLimitResult:
        """Apply *mutate* atomically; retries only when another writer won the race."""
        key = self._key(identifier)
        async with self.redis.pipeline(transaction=True) as pipe:
            while True:
                try:
                    await pipe.watch(key)
                    raw = await pipe.get(key)
                    current = RateLimitRecord.from_json(raw) if raw is not None else None
                    updated, result = mutate(current)

                    if updated == current:
                        await pipe.unwatch()
                        return result

                    pipe.multi()
                    pipe.set(key, updated.to_json(), ex=self._ttl(updated, now))
                    await pipe.execute()
                    return result
                except WatchError:
                    logger.debug("Concurrent rate-limit update for %s, re-evaluating", identifier)
                    continue

    async def reset(self, identifier: str) -> None:
        await self.redis.delete(self._key(identifier))  # type: ignore[misc]
