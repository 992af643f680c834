"""Application-level exception types.

This module defines domain errors used across the limiter, store adapters and
HTTP layer, enabling consistent error handling, logging, and API responses.

Taxonomy:
- ValidationAppError: bad limiter input, raised before any store call.
- StoreUnavailableError: the shared store could not be reached in time.
- StoreInconsistentError: the store answered with data we cannot trust.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional; only what is relevant to a given error is set.
    """

    code: str
    message: str
    hint: str
    field: str
    operation: str
    timeout_seconds: float
    raw_value: str
    request_id: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when limiter input or configuration validation fails."""


class StoreAppError(AppError):
    """Base class for failures talking to the shared ordered-set store."""


class StoreUnavailableError(StoreAppError):
    """Raised when a store round trip fails or times out."""


class StoreInconsistentError(StoreAppError):
    """Raised when the store reports a value that cannot be a set size."""
