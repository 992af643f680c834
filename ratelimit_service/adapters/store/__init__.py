"""Ordered-set store adapters backing the limiter."""

from ratelimit_service.adapters.store.base import OrderedSetStore, WindowSnapshot
from ratelimit_service.adapters.store.factory import create_store
from ratelimit_service.adapters.store.in_memory import InMemoryOrderedSetStore
from ratelimit_service.adapters.store.redis_store import RedisOrderedSetStore, create_redis_client

__all__ = [
    "InMemoryOrderedSetStore",
    "OrderedSetStore",
    "RedisOrderedSetStore",
    "WindowSnapshot",
    "create_store",
    "create_redis_client",
]
