"""HTTP middleware for request correlation and rate-limit reporting.

Usage:
    app.middleware("http")(request_context_middleware)
"""

from __future__ import annotations

import logging
import time
import uuid

from fastapi import Request, Response

from ratelimit_service.core.config import settings
from ratelimit_service.core.logging import clear_request_id, set_request_id
from ratelimit_service.core.rate_limit import rate_limit_headers

logger = logging.getLogger(__name__)


def _attach_window_headers(request: Request, response: Response) -> None:
    """Expose the guard's window on admitted responses too, not only on 429s."""
    result = getattr(request.state, "rate_limit", None)
    if result is None or not settings.app.rate_limit_include_headers:
        return
    for name, value in rate_limit_headers(result).items():
        response.headers.setdefault(name, value)


async def request_context_middleware(request: Request, call_next) -> Response:
    """Propagate a request id and report the rate-limit outcome of each request.

    The request id comes from the LOG_REQUEST_ID_HEADER header or a new UUID;
    it is stored in contextvars for log correlation and echoed on the
    response. enforce_rate_limit leaves its decision on ``request.state``;
    this middleware turns it into X-RateLimit-* headers and one
    ``http.request`` log line per request.

    Args:
        request: The incoming HTTP request object.
        call_next: The next middleware/route handler in the stack.

    Returns:
        Response: The downstream response with correlation, duration and
            rate-limit headers added.
    """

    header_name = settings.log.request_id_header
    request_id = request.headers.get(header_name) or str(uuid.uuid4())
    set_request_id(request_id)
    start = time.perf_counter()
    try:
        response: Response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "http.request",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": round(duration_ms, 2),
                "rate_limit": getattr(request.state, "rate_limit_outcome", "not_checked"),
            },
        )
    finally:
        clear_request_id()

    _attach_window_headers(request, response)
    response.headers[header_name] = request_id
    response.headers.setdefault("X-Request-Duration-ms", f"{duration_ms:.2f}")
    return response
