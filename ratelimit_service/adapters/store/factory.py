"""Factory for the ordered-set store configured for this process."""

from ratelimit_service.adapters.store.base import OrderedSetStore
from ratelimit_service.adapters.store.in_memory import InMemoryOrderedSetStore
from ratelimit_service.adapters.store.redis_store import RedisOrderedSetStore, create_redis_client
from ratelimit_service.core.config import settings
from ratelimit_service.core.errors import ValidationAppError


def create_store() -> OrderedSetStore:
    """Instantiate the store selected by APP_RATE_LIMIT_BACKEND.

    Returns:
        OrderedSetStore: Redis-backed store, or a process-local one.

    Raises:
        ValidationAppError: If the backend name is not recognized.
    """
    backend = settings.app.rate_limit_backend.lower()

    if backend == "redis":
        return RedisOrderedSetStore(create_redis_client(settings.redis))

    if backend == "memory":
        return InMemoryOrderedSetStore()

    raise ValidationAppError(
        code="store_unknown_backend",
        message=f"Unknown rate limit backend: '{backend}'. Supported backends: redis, memory",
    )
