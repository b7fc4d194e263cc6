"""
Redis caching layer.

Every operation fails open: when redis is unreachable or not initialized a
read is a miss and a write is dropped, so callers fall back to the database.

Usage:
    from core.cache import redis_cache

    await redis_cache.set("key", {"a": 1}, ttl=60)
    value = await redis_cache.get("key")
"""

import json
import logging
from typing import Any, Optional
from datetime import datetime, date
from enum import Enum

from redis.asyncio import Redis, from_url
from core.config import settings

logger = logging.getLogger(__name__)


class RedisCache:
    _instance = None
    _redis: Optional[Redis] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(RedisCache, cls).__new__(cls)
        return cls._instance

    async def init(self, url: Optional[str] = None):
        """Initialize Redis connection."""
        if not self._redis:
            self._redis = from_url(
                url or str(settings.redis_url),
                encoding="utf-8",
                decode_responses=True,
            )
            logger.info("Redis cache initialized")

    async def close(self):
        """Close Redis connection."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None
            logger.info("Redis cache closed")

    @property
    def available(self) -> bool:
        return self._redis is not None

    async def get(self, key: str) -> Optional[Any]:
        """Get value from cache."""
        if not self._redis:
            return None
        try:
            val = await self._redis.get(key)
            if val:
                return json.loads(val)
        except Exception as e:
            logger.error(f"Cache get error for {key}: {e}")
        return None

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """Set value in cache."""
        if not self._redis:
            return False
        try:
            serialized = json.dumps(value, default=self._json_serializer)
            await self._redis.set(key, serialized, ex=ttl)
            return True
        except Exception as e:
            logger.error(f"Cache set error for {key}: {e}")
            return False

    async def delete(self, key: str) -> bool:
        """Delete key from cache."""
        if not self._redis:
            return False
        try:
            await self._redis.delete(key)
            return True
        except Exception as e:
            logger.error(f"Cache delete error for {key}: {e}")
            return False

    @staticmethod
    def _json_serializer(obj):
        """JSON serializer for datetime and enum values."""
        if isinstance(obj, (datetime, date)):
            return obj.isoformat()
        if isinstance(obj, Enum):
            return obj.value
        raise TypeError(f"Type {type(obj)} not serializable")


# Global instance
redis_cache = RedisCache()
