"""Application factory for FastAPI app.

Centralizes app construction (metadata, middleware, handlers, routers) to
improve testability and keep main.py trivial.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from ratelimit_service.api.routes import health_router, limits_router
from ratelimit_service.core.config import settings
from ratelimit_service.core.exception_handlers import setup_exception_handlers
from ratelimit_service.core.logging import configure_logging
from ratelimit_service.core.middleware import request_context_middleware
from ratelimit_service.core.rate_limit import close_rate_limiter


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    yield
    # Release the store's connection pool on shutdown
    await close_rate_limiter()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance.

    Returns:
        Configured FastAPI app with middleware, handlers and routers.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    app = FastAPI(
        title="Sliding Window Rate Limiter",
        description=(
            "Distributed sliding-window rate limiter. Decides whether a caller "
            "identity may make another request under 'at most N requests per "
            "rolling W seconds', using a shared Redis sorted set so every "
            "process sees the same window."
        ),
        version="0.1.0",
        debug=settings.app.debug,
        lifespan=lifespan,
    )

    # Middleware
    app.middleware("http")(request_context_middleware)

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    app.include_router(limits_router, prefix="/v1")
    app.include_router(health_router)

    return app
