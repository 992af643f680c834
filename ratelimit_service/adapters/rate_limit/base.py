"""Rate limiter interfaces.

The API depends on this abstraction (not the concrete implementation) so the
HTTP layer and tests can substitute limiters freely.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class RateLimitResult:
    """Result of a rate limit check.

    Attributes:
        allowed: Whether the request is allowed to proceed.
        limit: Max requests per window.
        count: Records in the window after this request was recorded.
        remaining: Remaining requests in the current window (0 when blocked).
        reset_at: UNIX epoch seconds when the oldest record leaves the window.
        retry_after_seconds: Suggested wait time in seconds when blocked.
    """

    allowed: bool
    limit: int
    count: int
    remaining: int
    reset_at: int
    retry_after_seconds: int | None


class AbstractRateLimiter(ABC):
    """Interface for rate limiters."""

    @abstractmethod
    async def check(self, identity: str, limit: int, window_seconds: int) -> RateLimitResult:
        """Record one request for ``identity`` and decide whether it may proceed.

        Args:
            identity: Opaque principal identifier (e.g., client id, IP address).
            limit: Max requests admitted per window.
            window_seconds: Length of the rolling window.

        Returns:
            RateLimitResult describing whether it was allowed.
        """
        raise NotImplementedError

    async def allow(self, identity: str, limit: int, window_seconds: int) -> bool:
        """Shorthand for ``check(...).allowed``."""
        result = await self.check(identity, limit, window_seconds)
        return result.allowed

    async def ping(self) -> None:
        """Raise if the limiter's backing store is not reachable."""

    async def close(self) -> None:
        """Release resources held by the limiter."""
