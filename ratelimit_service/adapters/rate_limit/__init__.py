"""Rate limiting adapters.

The HTTP layer depends on AbstractRateLimiter; the sliding-window limiter is
the production implementation and keeps all of its state in an ordered-set
store (see ratelimit_service.adapters.store).
"""
