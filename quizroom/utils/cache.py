"""
Redis cache utility for the quiz status poll
"""
import redis
import json
import logging
from typing import Optional, Any
from quizroom.config import settings

logger = logging.getLogger(__name__)


class CacheService:
    """
    Redis-based cache for quiz timing snapshots

    Every connected student polls quiz status every few seconds, so the
    timing row is cached briefly and invalidated on every status or
    duration change.
    """

    def __init__(self, url: Optional[str] = None, enabled: Optional[bool] = None):
        enabled = settings.CACHE_ENABLED if enabled is None else enabled
        self.redis_client = None

        if not enabled:
            logger.info("Caching disabled by configuration")
            return

        try:
            self.redis_client = redis.from_url(
                url or settings.REDIS_URL,
                decode_responses=True,
                socket_connect_timeout=5
            )
            # Test connection
            self.redis_client.ping()
            logger.info("Redis connection established")
        except Exception as e:
            logger.warning(f"Redis connection failed: {str(e)}. Caching disabled.")
            self.redis_client = None

    def quiz_status_key(self, quiz_id: Any) -> str:
        """Cache key for one quiz's timing snapshot"""
        return f"quiz-status:{quiz_id}"

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
            ttl = ttl or settings.STATUS_CACHE_TTL
            serialized = json.dumps(value)
            self.redis_client.setex(key, ttl, serialized)
            logger.debug(f"Cache set: {key} (TTL: {ttl}s)")
            return True
        except Exception as e:
            logger.error(f"Cache set error: {str(e)}")
            return False

    def delete(self, key: str) -> bool:
        """Delete key from cache"""
        if not self.redis_client:
            return False

        try:
            self.redis_client.delete(key)
            logger.info(f"Cache delete: {key}")
            return True
        except Exception as e:
            logger.error(f"Cache delete error: {str(e)}")
            return False

    def invalidate_quiz(self, quiz_id: Any) -> bool:
        """Drop the cached timing after a status or duration change"""
        return self.delete(self.quiz_status_key(quiz_id))


# Global instance
cache_service = CacheService()
