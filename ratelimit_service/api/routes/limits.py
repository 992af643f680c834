from __future__ import annotations

from fastapi import APIRouter, Depends

from ratelimit_service.adapters.rate_limit.base import AbstractRateLimiter
from ratelimit_service.core.rate_limit import enforce_rate_limit, get_rate_limiter
from ratelimit_service.schemas.limits import LimitCheckRequest, LimitCheckResponse

router = APIRouter(tags=["Limits"])


@router.post(
    "/limits/check",
    response_model=LimitCheckResponse,
    dependencies=[Depends(enforce_rate_limit)],
)
async def check_limit(
    body: LimitCheckRequest,
    limiter: AbstractRateLimiter = Depends(get_rate_limiter),
) -> LimitCheckResponse:
    """Record one request for an identity and return the admission decision.

    A denied decision is still a successful call (HTTP 200, ``allowed=false``);
    the request is recorded either way. Invalid input maps to 400 and store
    failures to 503/500 through the global exception handlers.

    Args:
        body: Identity, limit and window to evaluate.
        limiter: Shared limiter instance.

    Returns:
        LimitCheckResponse: Decision plus window metadata.
    """
    result = await limiter.check(body.identity, body.limit, body.window_seconds)
    return LimitCheckResponse.from_result(result)
