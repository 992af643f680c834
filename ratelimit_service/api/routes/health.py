from __future__ import annotations

from fastapi import APIRouter, Depends

from ratelimit_service.adapters.rate_limit.base import AbstractRateLimiter
from ratelimit_service.core.rate_limit import get_rate_limiter

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check() -> dict:
    """Liveness check; does not touch the store."""

    return {"status": "ok"}


@router.get("/health/ready")
async def readiness_check(
    limiter: AbstractRateLimiter = Depends(get_rate_limiter),
) -> dict:
    """Readiness check.

    Pings the ordered-set store. A StoreUnavailableError propagates to the
    global handler, which answers 503.
    """

    await limiter.ping()
    return {"status": "ready"}
