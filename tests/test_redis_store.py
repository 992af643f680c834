"""Tests for the Redis ordered-set store.

Unit tests run against mocked clients. The integration test at the bottom
talks to a real server and only runs when REDIS_URL is set.
"""

import asyncio
import os
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest
import redis.asyncio as redis

from ratelimit_service.adapters.rate_limit.sliding_window import SlidingWindowLimiter
from ratelimit_service.adapters.store.redis_store import RedisOrderedSetStore, create_redis_client
from ratelimit_service.core.config import RedisSettings
from ratelimit_service.core.errors import StoreUnavailableError


@pytest.fixture
def client() -> MagicMock:
    client = MagicMock()
    pipeline = MagicMock()
    pipeline.execute = AsyncMock(return_value=[1, 1, 2, True, [("4000-abc", 4000.0)]])
    client.pipeline.return_value = pipeline
    for name in ("zadd", "zremrangebyscore", "zcard", "expire", "zrange", "ping", "aclose"):
        setattr(client, name, AsyncMock())
    return client


@pytest.mark.asyncio
async def test_record_and_count_runs_one_transaction(client: MagicMock) -> None:
    store = RedisOrderedSetStore(client)

    snapshot = await store.record_and_count(
        "rl:user", score=12_000, member="12000-x", prune_max_score=2_000, ttl_seconds=10
    )

    assert snapshot.cardinality == 2
    assert snapshot.oldest_score == 4_000

    client.pipeline.assert_called_once_with(transaction=True)
    pipeline = client.pipeline.return_value
    pipeline.zadd.assert_called_once_with("rl:user", {"12000-x": 12_000})
    pipeline.zremrangebyscore.assert_called_once_with("rl:user", 0, 2_000)
    pipeline.zcard.assert_called_once_with("rl:user")
    pipeline.expire.assert_called_once_with("rl:user", 10)
    pipeline.zrange.assert_called_once_with("rl:user", 0, 0, withscores=True)
    pipeline.execute.assert_awaited_once()


@pytest.mark.asyncio
async def test_record_and_count_empty_oldest(client: MagicMock) -> None:
    client.pipeline.return_value.execute.return_value = [1, 0, 0, True, []]
    store = RedisOrderedSetStore(client)

    snapshot = await store.record_and_count(
        "k", score=1, member="m", prune_max_score=0, ttl_seconds=1
    )

    assert snapshot.oldest_score is None


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error",
    [redis.ConnectionError("refused"), redis.TimeoutError("slow"), OSError("reset")],
)
async def test_transaction_failure_is_store_unavailable(client: MagicMock, error) -> None:
    client.pipeline.return_value.execute.side_effect = error
    store = RedisOrderedSetStore(client)

    with pytest.raises(StoreUnavailableError) as excinfo:
        await store.record_and_count("k", score=1, member="m", prune_max_score=0, ttl_seconds=1)

    assert excinfo.value.details == {"operation": "record_and_count"}
    assert excinfo.value.__cause__ is error


@pytest.mark.asyncio
async def test_single_commands_are_forwarded(client: MagicMock) -> None:
    client.zcard.return_value = 3
    client.zrange.return_value = [("m", 1500.0)]
    store = RedisOrderedSetStore(client)

    await store.add_member("k", 1500, "m")
    await store.remove_range_by_score("k", 0, 1000)
    assert await store.cardinality("k") == 3
    await store.set_expiry("k", 30)
    assert await store.oldest_score("k") == 1500

    client.zadd.assert_awaited_once_with("k", {"m": 1500})
    client.zremrangebyscore.assert_awaited_once_with("k", 0, 1000)
    client.expire.assert_awaited_once_with("k", 30)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "operation,call",
    [
        ("add_member", lambda s: s.add_member("k", 1, "m")),
        ("remove_range_by_score", lambda s: s.remove_range_by_score("k", 0, 1)),
        ("cardinality", lambda s: s.cardinality("k")),
        ("set_expiry", lambda s: s.set_expiry("k", 1)),
        ("oldest_score", lambda s: s.oldest_score("k")),
        ("ping", lambda s: s.ping()),
    ],
)
async def test_single_command_failure_is_store_unavailable(client: MagicMock, operation, call) -> None:
    for name in ("zadd", "zremrangebyscore", "zcard", "expire", "zrange", "ping"):
        getattr(client, name).side_effect = redis.ConnectionError("down")
    store = RedisOrderedSetStore(client)

    with pytest.raises(StoreUnavailableError) as excinfo:
        await call(store)

    assert excinfo.value.details == {"operation": operation}


@pytest.mark.asyncio
async def test_close_releases_client(client: MagicMock) -> None:
    await RedisOrderedSetStore(client).close()

    client.aclose.assert_awaited_once()


def test_create_redis_client_uses_settings() -> None:
    client = create_redis_client(
        RedisSettings(url="redis://example:6380/2", socket_timeout_seconds=0.25)
    )

    kwargs = client.connection_pool.connection_kwargs
    assert kwargs["host"] == "example"
    assert kwargs["port"] == 6380
    assert kwargs["db"] == 2
    assert kwargs["socket_timeout"] == 0.25


@pytest.mark.integration
@pytest.mark.asyncio
async def test_redis_limiter_enforces_limit_exactly() -> None:
    redis_url = os.getenv("REDIS_URL")
    if not redis_url:
        pytest.skip("REDIS_URL not set")

    client = redis.from_url(redis_url, decode_responses=True)
    try:
        await client.ping()
    except (redis.RedisError, OSError):
        await client.aclose()
        pytest.skip("Redis unavailable")

    prefix = f"test-rate-limit:{uuid4()}:"
    limiter = SlidingWindowLimiter(
        RedisOrderedSetStore(client), key_prefix=prefix, timeout_seconds=2.0
    )

    try:
        assert await limiter.allow("tenant-1", 2, 60) is True
        assert await limiter.allow("tenant-1", 2, 60) is True
        assert await limiter.allow("tenant-1", 2, 60) is False

        results = await asyncio.gather(*(limiter.allow("tenant-2", 5, 60) for _ in range(30)))
        assert sum(results) == 5
        assert 0 < await client.ttl(f"{prefix}tenant-2") <= 60
    finally:
        await client.delete(f"{prefix}tenant-1", f"{prefix}tenant-2")
        await client.aclose()
