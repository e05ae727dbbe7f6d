"""
Rate limiting middleware for API endpoints
"""
import time
import logging
from collections import defaultdict
from typing import Dict, List
from fastapi import Request, HTTPException
from quizroom.config import settings

logger = logging.getLogger(__name__)


# Every connected student polls these every few seconds
POLL_SUFFIXES = ("/status",)


class RateLimiter:
    """
    In-memory sliding-window rate limiter
    Production: Use Redis for distributed rate limiting
    """

    def __init__(self, requests_per_minute: int = 60, requests_per_hour: int = 1000, enabled: bool = True):
        self.requests_per_minute = requests_per_minute
        self.requests_per_hour = requests_per_hour
        self.enabled = enabled

        # Storage: {client_id: [timestamp, ...]}
        self.minute_tracker: Dict[str, List[float]] = defaultdict(list)
        self.hour_tracker: Dict[str, List[float]] = defaultdict(list)

    def _get_client_id(self, request: Request) -> str:
        """Principal forwarded by the gateway, else the client IP"""
        teacher_id = request.headers.get("X-Teacher-Id")
        if teacher_id:
            return f"teacher:{teacher_id}"

        student_id = request.headers.get("X-Student-Id")
        if student_id:
            return f"student:{student_id}"

        return request.client.host if request.client else "unknown"

    def is_poll(self, request: Request) -> bool:
        return request.method == "GET" and request.url.path.endswith(POLL_SUFFIXES)

    def _cleanup_old_entries(self, tracker: Dict[str, List[float]], window_seconds: int, now: float) -> None:
        """Remove entries older than window, dropping clients with none left"""
        cutoff = now - window_seconds

        for client_id in list(tracker.keys()):
            tracker[client_id] = [ts for ts in tracker[client_id] if ts > cutoff]

            # Remove empty entries
            if not tracker[client_id]:
                del tracker[client_id]

    def reset(self) -> None:
        self.minute_tracker.clear()
        self.hour_tracker.clear()

    async def check_rate_limit(self, request: Request) -> None:
        """
        Check if request exceeds rate limits

        Status polls count toward the hourly budget only.

        Raises:
            HTTPException: 429 if rate limit exceeded
        """
        if not self.enabled:
            return

        client_id = self._get_client_id(request)
        now = time.time()
        poll = self.is_poll(request)

        self._cleanup_old_entries(self.minute_tracker, 60, now)
        self._cleanup_old_entries(self.hour_tracker, 3600, now)

        minute_hits = len(self.minute_tracker.get(client_id, ()))
        hour_hits = len(self.hour_tracker.get(client_id, ()))

        if not poll and minute_hits >= self.requests_per_minute:
            logger.warning(f"Rate limit exceeded (minute): {client_id}")
            raise HTTPException(
                status_code=429,
                detail={
                    "error": "rate_limit_exceeded",
                    "message": f"Too many requests. Limit: {self.requests_per_minute} requests per minute",
                    "retry_after": 60
                }
            )

        if hour_hits >= self.requests_per_hour:
            logger.warning(f"Rate limit exceeded (hour): {client_id}")
            raise HTTPException(
                status_code=429,
                detail={
                    "error": "rate_limit_exceeded",
                    "message": f"Too many requests. Limit: {self.requests_per_hour} requests per hour",
                    "retry_after": 3600
                }
            )

        if not poll:
            self.minute_tracker[client_id].append(now)
            minute_hits += 1
        self.hour_tracker[client_id].append(now)

        logger.debug(f"Rate limit check passed: {client_id} (minute: {minute_hits}, hour: {hour_hits + 1})")


# Global instance
rate_limiter = RateLimiter(
    requests_per_minute=settings.RATE_LIMIT_PER_MINUTE,
    requests_per_hour=settings.RATE_LIMIT_PER_HOUR,
    enabled=settings.RATE_LIMIT_ENABLED
)
