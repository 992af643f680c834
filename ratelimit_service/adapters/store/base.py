"""Ordered-set store interface consumed by the sliding-window limiter.

The limiter only ever needs a handful of sorted-set primitives. Keeping them
behind this abstraction lets the same limiter run against Redis in production
and against a process-local store in development and tests.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class WindowSnapshot:
    """What the store reports after recording one request.

    Attributes:
        cardinality: Raw member count as returned by the store. Left unparsed
            so the limiter can reject values that are not a valid set size.
        oldest_score: Score of the oldest surviving record, if any.
    """

    cardinality: Any
    oldest_score: int | None


class OrderedSetStore(ABC):
    """Async sorted-set operations keyed by string.

    Implementations raise StoreUnavailableError for any transport or server
    failure; they never swallow errors.
    """

    @abstractmethod
    async def add_member(self, key: str, score: int, member: str) -> None:
        """Insert ``member`` with ``score`` into the set at ``key``."""

    @abstractmethod
    async def remove_range_by_score(self, key: str, min_score: int, max_score: int) -> None:
        """Remove members whose score lies in ``[min_score, max_score]``."""

    @abstractmethod
    async def cardinality(self, key: str) -> Any:
        """Return the member count of the set at ``key`` (0 if missing)."""

    @abstractmethod
    async def set_expiry(self, key: str, ttl_seconds: int) -> None:
        """Set or refresh the time-to-live of ``key``."""

    @abstractmethod
    async def oldest_score(self, key: str) -> int | None:
        """Return the lowest score stored at ``key``, or None when empty."""

    @abstractmethod
    async def record_and_count(
        self,
        key: str,
        *,
        score: int,
        member: str,
        prune_max_score: int,
        ttl_seconds: int,
    ) -> WindowSnapshot:
        """Insert, prune, count and refresh TTL for one request atomically.

        No other caller may observe or modify ``key`` between the insert and
        the count.
        """

    async def ping(self) -> None:
        """Raise StoreUnavailableError if the store cannot serve requests."""

    async def close(self) -> None:
        """Release connections held by the store."""
