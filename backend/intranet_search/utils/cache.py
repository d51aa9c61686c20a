"""
Redis-backed cache for expensive chat-completion results.
"""

from typing import Any, Optional, Callable, TYPE_CHECKING
import functools
import json
import hashlib
import logging
from .redis_cache import RedisConnection, serialize_value, deserialize_value

if TYPE_CHECKING:
    import redis.asyncio as redis

logger = logging.getLogger(__name__)

KEY_PREFIX = "intranet_search"


class DistributedCache:
    """Redis-backed distributed cache with TTL support."""

    def __init__(self):
        self._redis: Optional["redis.Redis"] = None

    async def _get_redis(self):
        """Get Redis client instance."""
        if self._redis is None:
            self._redis = await RedisConnection.get_redis_client()
        return self._redis

    def reset(self):
        """Forget the client so the next call reconnects."""
        self._redis = None

    def _generate_key(self, name: str, *args, **kwargs) -> str:
        key_data = {
            'args': args,
            'kwargs': sorted(kwargs.items()) if kwargs else {}
        }
        key_str = json.dumps(key_data, sort_keys=True, default=str)
        return f"{KEY_PREFIX}:{name}:{hashlib.md5(key_str.encode()).hexdigest()}"

    async def get(self, key: str) -> Optional[Any]:
        """Get value from distributed cache. Errors count as a miss."""
        try:
            redis_client = await self._get_redis()
            value = await redis_client.get(key)
            if value is None:
                return None
            return deserialize_value(value)
        except Exception as e:
            logger.error(f"Cache get error for key {key}: {e}")
            return None

    async def set(self, key: str, value: Any, ttl_seconds: int = 300):
        """Set value in distributed cache with TTL."""
        try:
            redis_client = await self._get_redis()
            await redis_client.setex(key, ttl_seconds, serialize_value(value))
        except Exception as e:
            logger.error(f"Cache set error for key {key}: {e}")

    async def delete(self, key: str):
        try:
            redis_client = await self._get_redis()
            await redis_client.delete(key)
        except Exception as e:
            logger.error(f"Cache delete error for key {key}: {e}")


# Global cache instance
_cache_instance = DistributedCache()


def cached(ttl_seconds: int = 300, skip_args: int = 0):
    """
    Decorator for caching coroutine results in Redis.

    Args:
        ttl_seconds: Time to live of a cached result
        skip_args: Leading positional arguments left out of the key (``self``)

    Exceptions raised by the wrapped coroutine are not cached.
    """
    def decorator(func: Callable):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            cache_key = _cache_instance._generate_key(
                func.__qualname__, *args[skip_args:], **kwargs
            )

            cached_result = await _cache_instance.get(cache_key)
            if cached_result is not None:
                logger.debug(f"Cache hit for {func.__qualname__}")
                return cached_result

            result = await func(*args, **kwargs)
            await _cache_instance.set(cache_key, result, ttl_seconds)
            logger.debug(f"Cached result for {func.__qualname__}")
            return result

        return wrapper
    return decorator
