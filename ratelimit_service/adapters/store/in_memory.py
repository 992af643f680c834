"""Process-local ordered-set store.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: uses a lock around shared state, so record_and_count is atomic
  with respect to other callers in the same process.
- TTLs are enforced lazily when a key is touched.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Callable

from ratelimit_service.adapters.store.base import OrderedSetStore, WindowSnapshot


@dataclass
class _SortedSet:
    members: dict[str, int] = field(default_factory=dict)
    expires_at: float | None = None


class InMemoryOrderedSetStore(OrderedSetStore):
    """Dictionary-backed stand-in for a Redis sorted-set keyspace."""

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        """Initialize the store.

        Args:
            clock: Time source in seconds used for key expiry only.
        """
        self._clock = clock
        self._lock = threading.RLock()
        self._keys: dict[str, _SortedSet] = {}

    def _live(self, key: str) -> _SortedSet | None:
        entry = self._keys.get(key)
        if entry is None:
            return None
        if entry.expires_at is not None and entry.expires_at <= self._clock():
            del self._keys[key]
            return None
        return entry

    def _add(self, key: str, score: int, member: str) -> None:
        entry = self._live(key)
        if entry is None:
            entry = self._keys[key] = _SortedSet()
        entry.members[member] = score

    def _remove_range(self, key: str, min_score: int, max_score: int) -> None:
        entry = self._live(key)
        if entry is None:
            return
        for member, score in list(entry.members.items()):
            if min_score <= score <= max_score:
                del entry.members[member]
        # Redis deletes a sorted set once its last member is gone.
        if not entry.members:
            del self._keys[key]

    def _card(self, key: str) -> int:
        entry = self._live(key)
        return len(entry.members) if entry else 0

    def _expire(self, key: str, ttl_seconds: int) -> None:
        entry = self._live(key)
        if entry is not None:
            entry.expires_at = self._clock() + ttl_seconds

    def _oldest(self, key: str) -> int | None:
        entry = self._live(key)
        if not entry or not entry.members:
            return None
        return min(entry.members.values())

    async def add_member(self, key: str, score: int, member: str) -> None:
        with self._lock:
            self._add(key, score, member)

    async def remove_range_by_score(self, key: str, min_score: int, max_score: int) -> None:
        with self._lock:
            self._remove_range(key, min_score, max_score)

    async def cardinality(self, key: str) -> int:
        with self._lock:
            return self._card(key)

    async def set_expiry(self, key: str, ttl_seconds: int) -> None:
        with self._lock:
            self._expire(key, ttl_seconds)

    async def oldest_score(self, key: str) -> int | None:
        with self._lock:
            return self._oldest(key)

    async def record_and_count(
        self,
        key: str,
        *,
        score: int,
        member: str,
        prune_max_score: int,
        ttl_seconds: int,
    ) -> WindowSnapshot:
        with self._lock:
            self._add(key, score, member)
            self._remove_range(key, 0, prune_max_score)
            count = self._card(key)
            self._expire(key, ttl_seconds)
            return WindowSnapshot(cardinality=count, oldest_score=self._oldest(key))

    def members(self, key: str) -> dict[str, int]:
        """Snapshot of ``key``'s members and scores (empty when missing)."""

        with self._lock:
            entry = self._live(key)
            return dict(entry.members) if entry else {}
