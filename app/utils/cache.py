"""
Redis cache utility for quiz player views
"""
import redis
import json
import logging
from typing import Optional, Any
from app.config import settings

logger = logging.getLogger(__name__)


class CacheService:
    """Redis-based caching service; every method is a no-op when Redis is down"""

    def __init__(self):
        try:
            self.redis_client = redis.from_url(
                settings.REDIS_URL,
                decode_responses=True,
                socket_connect_timeout=2
            )
            # Test connection
            self.redis_client.ping()
            logger.info("Redis connection established")
        except Exception as e:
            logger.warning(f"Redis connection failed: {str(e)}. Caching disabled.")
            self.redis_client = None

    def player_view_key(self, quiz_id: str) -> str:
        """
        Cache key for the questions a player sees (no correctness flags)

        Args:
            quiz_id: Quiz UUID

        Returns:
            Cache key string
        """
        return f"quiz:{quiz_id}:player"

    def get(self, key: str) -> Optional[Any]:
        """
        Get value from cache

        Args:
            key: Cache key

        Returns:
            Cached value or None
        """
        if not self.redis_client:
            return None

        try:
            value = self.redis_client.get(key)
            if value:
                logger.debug(f"Cache hit: {key}")
                return json.loads(value)
            logger.debug(f"Cache miss: {key}")
            return None
        except Exception as e:
            logger.error(f"Cache get error: {str(e)}")
            return None

    def set(
        self,
        key: str,
        value: Any,
        ttl: int = None
    ) -> bool:
        """
        Set value in cache

        Args:
            key: Cache key
            value: Value to cache (must be JSON serializable)
            ttl: Time to live in seconds (default from settings)

        Returns:
            Success status
        """
        if not self.redis_client:
            return False

        try:
            ttl = ttl or settings.QUIZ_CACHE_TTL
            serialized = json.dumps(value)
            self.redis_client.setex(key, ttl, serialized)
            logger.debug(f"Cache set: {key} (TTL: {ttl}s)")
            return True
        except Exception as e:
            logger.error(f"Cache set error: {str(e)}")
            return False

    def clear_quiz_cache(self, quiz_id: str) -> bool:
        """Clear all cached views of a quiz"""
        if not self.redis_client:
            return False

        try:
            pattern = f"quiz:{quiz_id}:*"
            keys = self.redis_client.keys(pattern)
            if keys:
                self.redis_client.delete(*keys)
                logger.info(f"Cleared {len(keys)} cache entries for quiz {quiz_id}")
            return True
        except Exception as e:
            logger.error(f"Cache clear error: {str(e)}")
            return False


# Global instance
cache_service = CacheService()
