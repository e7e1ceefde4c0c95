"""
Rate limiting for the HTTP API
"""
import time
from collections import deque
from typing import Callable, Deque, Dict, Iterable, Optional
import logging

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Rate limiter that enforces a request limit per client key
    Uses sliding window algorithm
    """

    def __init__(self, max_requests: int, window_seconds: float, clock: Callable[[], float] = time.monotonic):
        """
        Initialize rate limiter

        Args:
            max_requests: Maximum number of requests allowed per window
            window_seconds: Length of the sliding window
            clock: Time source (seconds)
        """
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._requests: Dict[str, Deque[float]] = {}
        self._last_sweep = clock()

    def _cleanup_old_requests(self, key: str, current_time: float) -> Deque[float]:
        """Remove requests that fell out of the window; forget keys left empty"""
        times = self._requests.get(key)
        if times is None:
            return deque()
        while times and current_time - times[0] >= self.window_seconds:
            times.popleft()
        if not times:
            del self._requests[key]
        return times

    def _sweep(self, current_time: float) -> None:
        """Drop every client whose requests have all left the window"""
        for key in list(self._requests):
            self._cleanup_old_requests(key, current_time)
        self._last_sweep = current_time

    def allow(self, key: str) -> bool:
        """
        Record a request for key if it is within the limit

        Returns:
            False when the key has already used up its window
        """
        if not self.max_requests:
            return True

        current_time = self._clock()
        if current_time - self._last_sweep >= self.window_seconds:
            self._sweep(current_time)
        times = self._cleanup_old_requests(key, current_time)
        if len(times) >= self.max_requests:
            return False
        self._requests.setdefault(key, times).append(current_time)
        return True

    def retry_after(self, key: str) -> int:
        """Seconds until the oldest request for key leaves the window"""
        times = self._requests.get(key)
        if not times:
            return 0
        return max(0, int(self.window_seconds - (self._clock() - times[0])) + 1)

    def get_stats(self, key: Optional[str] = None) -> dict:
        """Get current rate limiter statistics"""
        current_time = self._clock()
        self._sweep(current_time)
        stats = {
            'limit': self.max_requests,
            'window_seconds': self.window_seconds,
            'tracked_clients': len(self._requests),
        }
        if key is not None:
            stats['requests_in_window'] = len(self._cleanup_old_requests(key, current_time))
        return stats


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Apply a RateLimiter per client IP to /api requests, except exempt_paths."""

    def __init__(
        self,
        app,
        limiter: RateLimiter,
        path_prefix: str = "/api",
        exempt_paths: Iterable[str] = (),
    ):
        super().__init__(app)
        self.limiter = limiter
        self.path_prefix = path_prefix
        self.exempt_paths = {p.rstrip("/") for p in exempt_paths}

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if path.startswith(self.path_prefix) and path.rstrip("/") not in self.exempt_paths:
            key = request.client.host if request.client else "unknown"
            if not self.limiter.allow(key):
                logger.warning("Rate limit exceeded for %s on %s", key, request.url.path)
                return JSONResponse(
                    status_code=429,
                    content={
                        "error": "Too many requests",
                        "details": "Too many requests from this IP, please try again later.",
                    },
                    headers={"Retry-After": str(self.limiter.retry_after(key))},
                )
        return await call_next(request)
