"""Distributed sliding-window rate limiter over an ordered-set store.

Every check records the request first and decides afterwards:

1. insert a record scored with the current time in milliseconds
2. drop records scored in ``[0, now - window_ms]``
3. count what is left
4. refresh the key TTL to the window length
5. admit when ``count <= limit``

Denied requests stay recorded, so a caller that retries in a tight loop keeps
its own window full. A record scored exactly ``now - window_ms`` is pruned:
the window is ``(now - window_ms, now]``.

In atomic mode (default) steps 1-4 go to the store as one transaction and the
limit is exact under any concurrency. In best-effort mode each step is its own
round trip and concurrent callers for one identity can be over-admitted.
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
import uuid
from typing import Any, Awaitable, Callable, TypeVar

from ratelimit_service.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult
from ratelimit_service.adapters.store.base import OrderedSetStore, WindowSnapshot
from ratelimit_service.core.errors import (
    StoreInconsistentError,
    StoreUnavailableError,
    ValidationAppError,
)
from ratelimit_service.core.logging import hash_identity

logger = logging.getLogger(__name__)

UINT32_MAX = 2**32 - 1
DEFAULT_STORE_TIMEOUT_SECONDS = 0.5

T = TypeVar("T")


def wall_clock_ms() -> int:
    """Milliseconds since the Unix epoch."""
    return int(time.time() * 1000)


def unique_member(now_ms: int) -> str:
    """Set member for one request; unique even within a single millisecond."""
    return f"{now_ms}-{uuid.uuid4().hex}"


def _validate(identity: str, limit: int, window_seconds: int) -> None:
    if not isinstance(identity, str) or not identity:
        raise ValidationAppError(
            code="invalid_input",
            message="identity must be a non-empty string",
            details={"field": "identity"},
        )
    if isinstance(limit, bool) or not isinstance(limit, int) or not 0 <= limit <= UINT32_MAX:
        raise ValidationAppError(
            code="invalid_input",
            message=f"limit must be an integer between 0 and {UINT32_MAX}",
            details={"field": "limit"},
        )
    if (
        isinstance(window_seconds, bool)
        or not isinstance(window_seconds, int)
        or not 1 <= window_seconds <= UINT32_MAX
    ):
        raise ValidationAppError(
            code="invalid_input",
            message=f"window_seconds must be an integer between 1 and {UINT32_MAX}",
            details={"field": "window_seconds"},
        )


def _parse_cardinality(raw: Any) -> int:
    """Turn a store-reported set size into an int, refusing anything odd."""
    if isinstance(raw, bool):
        count = None
    elif isinstance(raw, int):
        count = raw
    elif isinstance(raw, (str, bytes)):
        try:
            count = int(raw)
        except ValueError:
            count = None
    else:
        count = None

    if count is None or count < 0:
        raise StoreInconsistentError(
            code="store_inconsistent",
            message="Rate limit store returned an invalid cardinality",
            details={"raw_value": repr(raw)[:64]},
        )
    return count


class SlidingWindowLimiter(AbstractRateLimiter):
    """Sliding-window log limiter whose state lives entirely in the store.

    The limiter holds no per-identity state, so one instance can be shared by
    any number of tasks, and any number of processes can point at the same
    store.
    """

    def __init__(
        self,
        store: OrderedSetStore,
        *,
        key_prefix: str = "",
        atomic: bool = True,
        timeout_seconds: float = DEFAULT_STORE_TIMEOUT_SECONDS,
        clock: Callable[[], int] = wall_clock_ms,
        member_factory: Callable[[int], str] = unique_member,
    ) -> None:
        """Initialize the limiter.

        Args:
            store: Ordered-set store shared by every limiter process.
            key_prefix: Prepended to identities to form store keys.
            atomic: Send the whole check as one store transaction.
            timeout_seconds: Upper bound per store round trip.
            clock: Time source returning milliseconds since the epoch.
            member_factory: Builds the set member for a request at a timestamp.
        """
        if timeout_seconds is None or timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")

        self._store = store
        self._key_prefix = key_prefix
        self._atomic = atomic
        self._timeout = timeout_seconds
        self._clock = clock
        self._member_factory = member_factory

    @property
    def atomic(self) -> bool:
        return self._atomic

    def key_for(self, identity: str) -> str:
        return f"{self._key_prefix}{identity}"

    async def _call(self, operation: str, factory: Callable[[], Awaitable[T]]) -> T:
        """Run one store round trip under the configured timeout."""
        try:
            return await asyncio.wait_for(factory(), timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            logger.warning(
                "rate_limit.store_timeout",
                extra={"operation": operation, "timeout_s": self._timeout},
            )
            raise StoreUnavailableError(
                code="store_unavailable",
                message="Rate limit store timed out",
                details={"operation": operation, "timeout_seconds": self._timeout},
            ) from exc

    async def _record_separately(
        self, key: str, *, score: int, member: str, prune_max_score: int, ttl_seconds: int
    ) -> WindowSnapshot:
        await self._call("add_member", lambda: self._store.add_member(key, score, member))
        await self._call(
            "remove_range_by_score",
            lambda: self._store.remove_range_by_score(key, 0, prune_max_score),
        )
        count = await self._call("cardinality", lambda: self._store.cardinality(key))
        await self._call("set_expiry", lambda: self._store.set_expiry(key, ttl_seconds))
        oldest = await self._call("oldest_score", lambda: self._store.oldest_score(key))
        return WindowSnapshot(cardinality=count, oldest_score=oldest)

    async def check(self, identity: str, limit: int, window_seconds: int) -> RateLimitResult:
        """Record one request for ``identity`` and decide whether it may proceed.

        Raises:
            ValidationAppError: Bad input; nothing was written to the store.
            StoreUnavailableError: A store round trip failed or timed out.
            StoreInconsistentError: The store reported an unusable count.
        """
        _validate(identity, limit, window_seconds)

        now = self._clock()
        window_ms = window_seconds * 1000

        if limit == 0:
            # Nothing can ever be admitted, so there is nothing to record.
            return RateLimitResult(
                allowed=False,
                limit=0,
                count=0,
                remaining=0,
                reset_at=math.ceil((now + window_ms) / 1000),
                retry_after_seconds=window_seconds,
            )

        key = self.key_for(identity)
        kwargs = dict(
            score=now,
            member=self._member_factory(now),
            prune_max_score=now - window_ms,
            ttl_seconds=window_seconds,
        )
        if self._atomic:
            snapshot = await self._call(
                "record_and_count", lambda: self._store.record_and_count(key, **kwargs)
            )
        else:
            snapshot = await self._record_separately(key, **kwargs)

        count = _parse_cardinality(snapshot.cardinality)
        oldest = snapshot.oldest_score if snapshot.oldest_score is not None else now
        reset_at_ms = oldest + window_ms
        allowed = count <= limit

        result = RateLimitResult(
            allowed=allowed,
            limit=limit,
            count=count,
            remaining=max(0, limit - count),
            reset_at=math.ceil(reset_at_ms / 1000),
            retry_after_seconds=None if allowed else max(1, math.ceil((reset_at_ms - now) / 1000)),
        )

        logger.debug(
            "rate_limit.checked",
            extra={
                "identity_hash": hash_identity(identity),
                "allowed": allowed,
                "count": count,
                "limit": limit,
                "window_s": window_seconds,
                "atomic": self._atomic,
            },
        )
        return result

    async def ping(self) -> None:
        await self._call("ping", self._store.ping)

    async def close(self) -> None:
        await self._store.close()
