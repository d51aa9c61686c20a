"""
Redis connection utilities for the distributed cache.
"""

import redis.asyncio as redis
from typing import Optional, Any
import json
import logging
from ..core.config import settings

logger = logging.getLogger(__name__)


class RedisConnection:
    """Singleton Redis connection manager with connection pooling."""

    _pool: Optional[redis.ConnectionPool] = None
    _client: Optional[redis.Redis] = None

    @classmethod
    def redis_url(cls) -> str:
        return f"redis://{settings.REDIS_HOST}:{settings.REDIS_PORT}/{settings.REDIS_DB}"

    @classmethod
    async def get_redis_client(cls) -> redis.Redis:
        """Get Redis client with connection pooling."""
        if cls._client is None:
            try:
                cls._pool = redis.ConnectionPool.from_url(
                    cls.redis_url(),
                    max_connections=20,
                    retry_on_timeout=True,
                    decode_responses=False  # JSON handled by serialize_value
                )
                client = redis.Redis(connection_pool=cls._pool)
                await client.ping()
                cls._client = client
                logger.info(f"Redis connection established: {cls.redis_url()}")

            except Exception as e:
                logger.error(f"Failed to connect to Redis: {e}")
                raise

        return cls._client

    @classmethod
    async def close(cls):
        """Close Redis connections and cleanup."""
        if cls._client:
            try:
                await cls._client.aclose()
                logger.info("Redis client closed")
            except Exception as e:
                logger.error(f"Error closing Redis client: {e}")
            finally:
                cls._client = None

        if cls._pool:
            try:
                await cls._pool.aclose()
                logger.info("Redis connection pool closed")
            except Exception as e:
                logger.error(f"Error closing Redis pool: {e}")
            finally:
                cls._pool = None


def serialize_value(value: Any) -> str:
    """Serialize value to JSON string for Redis storage."""
    return json.dumps(value, default=str)


def deserialize_value(value: bytes) -> Any:
    """Deserialize JSON from Redis; undecodable values count as a miss."""
    if value is None:
        return None

    try:
        if isinstance(value, bytes):
            value = value.decode('utf-8')
        return json.loads(value)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        logger.error(f"Failed to deserialize cached value: {e}")
        return None
