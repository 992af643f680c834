"""Rate limiting dependency for FastAPI routes.

This module wires the sliding-window limiter into the HTTP layer.

Design goals:
- Minimal coupling: API routes depend on a dependency function only.
- Swap-friendly: the ordered-set store (Redis or in-process) is chosen by
  configuration behind an abstract interface.
- Explicit failure policy: when the store is down, APP_RATE_LIMIT_FAILURE_MODE
  decides whether guarded routes admit (open) or reject (closed).

Keyspaces:
- Identities sent to POST /v1/limits/check live under ``<prefix>api:``.
- The route guard's own identities live under ``<prefix>guard:``.
Both limiters share one store, but no body identity can reach a guard key.

Identity strategy (guard):
- The configured identity header (X-Client-ID by default) when present.
- Otherwise the client IP.
"""

from __future__ import annotations

import logging

from fastapi import HTTPException, Request, status

from ratelimit_service.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult
from ratelimit_service.adapters.rate_limit.sliding_window import SlidingWindowLimiter
from ratelimit_service.adapters.store.base import OrderedSetStore
from ratelimit_service.adapters.store.factory import create_store
from ratelimit_service.core.config import settings
from ratelimit_service.core.errors import StoreAppError
from ratelimit_service.core.logging import hash_identity

logger = logging.getLogger(__name__)

API_NAMESPACE = "api:"
GUARD_NAMESPACE = "guard:"

_store: OrderedSetStore | None = None
_limiters: dict[str, SlidingWindowLimiter] = {}
_limiter_config: tuple | None = None
# Stores replaced after a config change; closed on shutdown.
_retired_stores: list[OrderedSetStore] = []


def _current_config() -> tuple:
    return (
        settings.app.rate_limit_backend,
        settings.app.rate_limit_atomic,
        settings.app.store_timeout_seconds,
        settings.redis.url,
        settings.redis.key_prefix,
    )


def _limiter_for(namespace: str) -> SlidingWindowLimiter:
    """Return the process-wide limiter for ``namespace``.

    Limiters are stateless, but the store they wrap owns a connection pool, so
    one store is shared by every namespace. If configuration changes
    (primarily in tests), the store and limiters are rebuilt and the old store
    is kept for closing.
    """

    global _store, _limiters, _limiter_config

    config = _current_config()

    if _store is None or _limiter_config != config:
        if _store is not None:
            _retired_stores.append(_store)
        _store = create_store()
        _limiters = {}
        _limiter_config = config
        logger.info(
            "rate_limit.store_created",
            extra={
                "backend": settings.app.rate_limit_backend,
                "atomic": settings.app.rate_limit_atomic,
            },
        )

    limiter = _limiters.get(namespace)
    if limiter is None:
        limiter = _limiters[namespace] = SlidingWindowLimiter(
            _store,
            key_prefix=f"{settings.redis.key_prefix}{namespace}",
            atomic=settings.app.rate_limit_atomic,
            timeout_seconds=settings.app.store_timeout_seconds,
        )
    return limiter


def get_rate_limiter() -> AbstractRateLimiter:
    """Limiter for caller-supplied identities (the check endpoint)."""

    return _limiter_for(API_NAMESPACE)


def get_guard_limiter() -> AbstractRateLimiter:
    """Limiter used by enforce_rate_limit for the API's own callers."""

    return _limiter_for(GUARD_NAMESPACE)


async def close_rate_limiter() -> None:
    """Close the shared store and any store replaced by a config change."""

    global _store, _limiters, _limiter_config

    stores = _retired_stores + ([_store] if _store is not None else [])
    _retired_stores.clear()
    _store = None
    _limiters = {}
    _limiter_config = None

    for store in stores:
        await store.close()


def _build_rate_limit_key(request: Request) -> tuple[str, str]:
    """Build the limiter identity for the current request.

    Returns:
        Tuple of (identity, identity_type).
    """

    client_id = request.headers.get(settings.app.rate_limit_identity_header)
    if client_id:
        return f"client:{client_id}", "client_id"

    client_host = request.client.host if request.client else "unknown"
    return f"ip:{client_host}", "ip"


def rate_limit_headers(result: RateLimitResult) -> dict[str, str]:
    """X-RateLimit-* headers describing the caller's current window."""

    return {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(result.reset_at),
    }


async def enforce_rate_limit(request: Request) -> None:
    """FastAPI dependency enforcing rate limits.

    When enabled, records one request for the caller. If the caller exceeds
    the configured rate, raises HTTP 429.

    Raises:
        HTTPException: 429 Too Many Requests when rate limit is exceeded.
        StoreAppError: Store failure while APP_RATE_LIMIT_FAILURE_MODE=closed.
    """

    if not settings.app.rate_limit_enabled:
        return

    limiter = get_guard_limiter()
    identity, identity_type = _build_rate_limit_key(request)
    identity_hash = hash_identity(identity)
    window_s = settings.app.rate_limit_window_seconds

    try:
        result = await limiter.check(identity, settings.app.rate_limit_requests, window_s)
    except StoreAppError as exc:
        fail_open = settings.app.rate_limit_failure_mode == "open"
        logger.warning(
            "rate_limit.store_error",
            extra={
                "identity_type": identity_type,
                "identity_hash": identity_hash,
                "error_code": exc.code,
                "failure_mode": settings.app.rate_limit_failure_mode,
                "admitted": fail_open,
            },
        )
        if fail_open:
            request.state.rate_limit_outcome = "failed_open"
            return
        request.state.rate_limit_outcome = "store_error"
        raise

    request.state.rate_limit = result

    if result.allowed:
        logger.info(
            "rate_limit.allowed",
            extra={
                "identity_type": identity_type,
                "identity_hash": identity_hash,
                "limit": result.limit,
                "remaining": result.remaining,
                "window_s": window_s,
            },
        )
        request.state.rate_limit_outcome = "allowed"
        return

    request.state.rate_limit_outcome = "exceeded"

    retry_after = result.retry_after_seconds or 0
    logger.warning(
        "rate_limit.exceeded",
        extra={
            "identity_type": identity_type,
            "identity_hash": identity_hash,
            "limit": result.limit,
            "count": result.count,
            "window_s": window_s,
            "retry_after_s": retry_after,
        },
    )

    headers: dict[str, str] = {}
    if settings.app.rate_limit_include_headers:
        headers["Retry-After"] = str(retry_after)
        headers.update(rate_limit_headers(result))

    raise HTTPException(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        detail="Rate limit exceeded. Try again later.",
        headers=headers or None,
    )
