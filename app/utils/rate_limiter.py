"""
Rate limiting for API endpoints
"""
import time
from collections import defaultdict, deque
from fastapi import Request
from typing import Deque, Dict
import logging

from jose import jwt, JWTError

from app.config import settings
from app.exceptions import RateLimitError

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    In-memory sliding-window rate limiter, per worker

    Authenticated requests are counted per user, anonymous ones per IP.
    """

    def __init__(self, requests_per_minute: int = 60, requests_per_hour: int = 1000):
        self.requests_per_minute = requests_per_minute
        self.requests_per_hour = requests_per_hour

        # Storage: {client_id: deque of request timestamps}
        self.minute_tracker: Dict[str, Deque[float]] = defaultdict(deque)
        self.hour_tracker: Dict[str, Deque[float]] = defaultdict(deque)

    def _get_client_id(self, request: Request) -> str:
        """Token subject when a valid bearer token is sent, else client IP"""
        authorization = request.headers.get("authorization", "")
        if authorization.lower().startswith("bearer "):
            try:
                payload = jwt.decode(
                    authorization[7:],
                    settings.JWT_SECRET_KEY,
                    algorithms=[settings.JWT_ALGORITHM],
                )
                if payload.get("sub"):
                    return f"user:{payload['sub']}"
            except JWTError:
                # Bad tokens are counted against the IP
                pass

        client_ip = request.client.host if request.client else "unknown"
        return f"ip:{client_ip}"

    @staticmethod
    def _prune(window: Deque[float], cutoff: float) -> None:
        while window and window[0] <= cutoff:
            window.popleft()

    def _cleanup_old_entries(self, tracker: Dict[str, Deque[float]], cutoff: float) -> None:
        """Prune every client's window and forget clients with no recent requests"""
        for client_id in list(tracker.keys()):
            self._prune(tracker[client_id], cutoff)
            if not tracker[client_id]:
                del tracker[client_id]

    async def check_rate_limit(self, request: Request) -> None:
        """
        Check if request exceeds rate limits

        Raises:
            RateLimitError: 429 if rate limit exceeded
        """
        client_id = self._get_client_id(request)
        current_time = time.time()

        self._cleanup_old_entries(self.minute_tracker, current_time - 60)
        self._cleanup_old_entries(self.hour_tracker, current_time - 3600)

        minute_window = self.minute_tracker[client_id]
        hour_window = self.hour_tracker[client_id]

        if len(minute_window) >= self.requests_per_minute:
            logger.warning(f"Rate limit exceeded (minute): {client_id}")
            raise RateLimitError(
                f"Too many requests. Limit: {self.requests_per_minute} requests per minute",
                retry_after=60,
            )

        if len(hour_window) >= self.requests_per_hour:
            logger.warning(f"Rate limit exceeded (hour): {client_id}")
            raise RateLimitError(
                f"Too many requests. Limit: {self.requests_per_hour} requests per hour",
                retry_after=3600,
            )

        minute_window.append(current_time)
        hour_window.append(current_time)

        logger.debug(f"Rate limit check passed: {client_id} (minute: {len(minute_window)}, hour: {len(hour_window)})")

    def reset(self) -> None:
        self.minute_tracker.clear()
        self.hour_tracker.clear()


# Global instance
rate_limiter = RateLimiter(
    requests_per_minute=settings.RATE_LIMIT_PER_MINUTE,
    requests_per_hour=settings.RATE_LIMIT_PER_HOUR
)
