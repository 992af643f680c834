"""Pydantic schemas for the limit check endpoint."""

from __future__ import annotations

from pydantic import BaseModel, Field

from ratelimit_service.adapters.rate_limit.base import RateLimitResult


class LimitCheckRequest(BaseModel):
    """One admission decision request.

    Range checks are left to the limiter so every invalid value is reported
    with the same ``invalid_input`` error code.
    """

    identity: str = Field(
        ..., description="Opaque identifier of the rate-limited principal."
    )
    limit: int = Field(
        ..., description="Maximum requests admitted per window (0 always denies)."
    )
    window_seconds: int = Field(
        ..., description="Length of the rolling window in seconds."
    )


class LimitCheckResponse(BaseModel):
    """Admission decision and window metadata."""

    allowed: bool = Field(..., description="Whether the request may proceed.")
    limit: int = Field(..., description="Limit the decision was made against.")
    count: int = Field(
        ..., description="Requests recorded in the window, including this one."
    )
    remaining: int = Field(..., description="Requests left before denial starts.")
    reset_at: int = Field(
        ..., description="UNIX epoch seconds when the oldest recorded request leaves the window."
    )
    retry_after_seconds: int | None = Field(
        default=None,
        description="Suggested wait before retrying; only set when denied.",
    )

    @classmethod
    def from_result(cls, result: RateLimitResult) -> "LimitCheckResponse":
        return cls(
            allowed=result.allowed,
            limit=result.limit,
            count=result.count,
            remaining=result.remaining,
            reset_at=result.reset_at,
            retry_after_seconds=result.retry_after_seconds,
        )
