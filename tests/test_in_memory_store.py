"""Unit tests for the process-local ordered-set store."""

from unittest.mock import Mock

import pytest

from ratelimit_service.adapters.store.in_memory import InMemoryOrderedSetStore


@pytest.mark.asyncio
async def test_remove_range_is_inclusive_on_both_ends() -> None:
    store = InMemoryOrderedSetStore()
    for score in (10, 20, 30, 40):
        await store.add_member("k", score, f"m{score}")

    await store.remove_range_by_score("k", 20, 30)

    assert store.members("k") == {"m10": 10, "m40": 40}
    assert await store.cardinality("k") == 2
    assert await store.oldest_score("k") == 10


@pytest.mark.asyncio
async def test_same_member_is_stored_once() -> None:
    store = InMemoryOrderedSetStore()

    await store.add_member("k", 1, "same")
    await store.add_member("k", 2, "same")

    assert store.members("k") == {"same": 2}


@pytest.mark.asyncio
async def test_missing_key_reads_as_empty() -> None:
    store = InMemoryOrderedSetStore()

    assert await store.cardinality("missing") == 0
    assert await store.oldest_score("missing") is None
    await store.set_expiry("missing", 10)
    await store.remove_range_by_score("missing", 0, 100)
    assert store.members("missing") == {}


@pytest.mark.asyncio
async def test_key_disappears_when_last_member_pruned() -> None:
    store = InMemoryOrderedSetStore()
    await store.add_member("k", 5, "m")

    await store.remove_range_by_score("k", 0, 5)

    assert "k" not in store._keys


@pytest.mark.asyncio
async def test_expiry_drops_idle_keys() -> None:
    clock = Mock(return_value=100.0)
    store = InMemoryOrderedSetStore(clock=clock)
    await store.add_member("k", 1, "m")
    await store.set_expiry("k", 10)

    clock.return_value = 109.9
    assert await store.cardinality("k") == 1

    clock.return_value = 110.0
    assert await store.cardinality("k") == 0


@pytest.mark.asyncio
async def test_record_and_count_refreshes_ttl() -> None:
    clock = Mock(return_value=0.0)
    store = InMemoryOrderedSetStore(clock=clock)

    snapshot = await store.record_and_count(
        "k", score=1_000, member="a", prune_max_score=-9_000, ttl_seconds=10
    )
    assert snapshot.cardinality == 1
    assert snapshot.oldest_score == 1_000

    clock.return_value = 8.0
    snapshot = await store.record_and_count(
        "k", score=9_000, member="b", prune_max_score=-1_000, ttl_seconds=10
    )
    assert snapshot.cardinality == 2

    # First TTL would have lapsed at 10.0; the second check pushed it to 18.0
    clock.return_value = 15.0
    assert await store.cardinality("k") == 2

    clock.return_value = 18.0
    assert await store.cardinality("k") == 0


@pytest.mark.asyncio
async def test_record_and_count_prunes_before_counting() -> None:
    store = InMemoryOrderedSetStore()
    await store.add_member("k", 1_000, "old")
    await store.add_member("k", 5_000, "mid")

    snapshot = await store.record_and_count(
        "k", score=11_000, member="new", prune_max_score=1_000, ttl_seconds=10
    )

    assert snapshot.cardinality == 2
    assert snapshot.oldest_score == 5_000
