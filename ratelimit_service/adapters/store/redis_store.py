"""Redis sorted-set store shared by every limiter process."""

from __future__ import annotations

import logging
from typing import Any

import redis.asyncio as redis

from ratelimit_service.adapters.store.base import OrderedSetStore, WindowSnapshot
from ratelimit_service.core.config import RedisSettings
from ratelimit_service.core.errors import StoreUnavailableError

logger = logging.getLogger(__name__)


def create_redis_client(redis_settings: RedisSettings) -> redis.Redis:
    """Build an asyncio Redis client; no connection is opened until first use."""

    return redis.from_url(
        redis_settings.url,
        decode_responses=True,
        socket_timeout=redis_settings.socket_timeout_seconds,
        socket_connect_timeout=redis_settings.connect_timeout_seconds,
    )


def _score_of(entries: Any) -> int | None:
    """Extract the score from a ``ZRANGE ... WITHSCORES`` reply."""
    if not entries:
        return None
    _, score = entries[0]
    return int(score)


def _unavailable(operation: str, exc: Exception) -> StoreUnavailableError:
    logger.warning(
        "store.redis_error",
        extra={
            "operation": operation,
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
        },
    )
    return StoreUnavailableError(
        code="store_unavailable",
        message="Rate limit store is unavailable",
        details={"operation": operation},
    )


class RedisOrderedSetStore(OrderedSetStore):
    """OrderedSetStore over Redis ZSET commands.

    ``record_and_count`` wraps ZADD, ZREMRANGEBYSCORE, ZCARD, EXPIRE and
    ZRANGE in a MULTI/EXEC transaction, so concurrent limiter processes are
    serialized per request and the count each one reads already includes
    every insert committed before it.
    """

    def __init__(self, client: redis.Redis) -> None:
        self._client = client

    async def add_member(self, key: str, score: int, member: str) -> None:
        try:
            await self._client.zadd(key, {member: score})
        except (redis.RedisError, OSError) as exc:
            raise _unavailable("add_member", exc) from exc

    async def remove_range_by_score(self, key: str, min_score: int, max_score: int) -> None:
        try:
            await self._client.zremrangebyscore(key, min_score, max_score)
        except (redis.RedisError, OSError) as exc:
            raise _unavailable("remove_range_by_score", exc) from exc

    async def cardinality(self, key: str) -> Any:
        try:
            return await self._client.zcard(key)
        except (redis.RedisError, OSError) as exc:
            raise _unavailable("cardinality", exc) from exc

    async def set_expiry(self, key: str, ttl_seconds: int) -> None:
        try:
            await self._client.expire(key, ttl_seconds)
        except (redis.RedisError, OSError) as exc:
            raise _unavailable("set_expiry", exc) from exc

    async def oldest_score(self, key: str) -> int | None:
        try:
            entries = await self._client.zrange(key, 0, 0, withscores=True)
        except (redis.RedisError, OSError) as exc:
            raise _unavailable("oldest_score", exc) from exc
        return _score_of(entries)

    async def record_and_count(
        self,
        key: str,
        *,
        score: int,
        member: str,
        prune_max_score: int,
        ttl_seconds: int,
    ) -> WindowSnapshot:
        # Use a transactional pipeline so the five commands run back to back
        pipeline = self._client.pipeline(transaction=True)
        pipeline.zadd(key, {member: score})
        pipeline.zremrangebyscore(key, 0, prune_max_score)
        pipeline.zcard(key)
        pipeline.expire(key, ttl_seconds)
        pipeline.zrange(key, 0, 0, withscores=True)
        try:
            _, _, count, _, oldest = await pipeline.execute()
        except (redis.RedisError, OSError) as exc:
            raise _unavailable("record_and_count", exc) from exc
        return WindowSnapshot(cardinality=count, oldest_score=_score_of(oldest))

    async def ping(self) -> None:
        try:
            await self._client.ping()
        except (redis.RedisError, OSError) as exc:
            raise _unavailable("ping", exc) from exc

    async def close(self) -> None:
        await self._client.aclose()
