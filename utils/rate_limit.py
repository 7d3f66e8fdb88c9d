"""
Fixed-window rate limiting per client IP.

Counters live in Redis when REDIS_URL is configured and reachable, so that
several workers share one budget; otherwise they are kept in process memory.
"""
import logging
import math
from time import time
from typing import Callable, Dict, Optional, Tuple

import redis
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from config.settings import settings
from utils.responses import error_response
from utils.shared_utils import get_client_ip

logger = logging.getLogger(__name__)

FIFTEEN_MINUTES = 15 * 60
ONE_HOUR = 60 * 60


def _connect_redis() -> Optional[redis.Redis]:
    if not settings.redis_url:
        logger.info("REDIS_URL not set. Using in-memory rate limiting.")
        return None
    try:
        # Parse Redis URL (supports redis:// and redis://:password@host:port)
        client = redis.from_url(settings.redis_url, decode_responses=True)
        client.ping()
        logger.info("Redis connected successfully for rate limiting")
        return client
    except redis.RedisError as e:
        logger.warning(f"Redis connection failed: {e}. Falling back to in-memory rate limiting.")
        return None


_redis_client = _connect_redis()


class RateLimitExceeded(Exception):
    def __init__(self, message: str, retry_after: int):
        super().__init__(message)
        self.message = message
        self.retry_after = retry_after


class FixedWindowRateLimiter:
    """
    Allows ``max_requests`` per key inside each ``window_seconds`` window.
    Windows are aligned to multiples of the window length.
    """

    def __init__(
        self,
        name: str,
        max_requests: int,
        window_seconds: int,
        message: str = "Too many requests. Please try again later.",
        redis_client: Optional[redis.Redis] = None,
        clock: Callable[[], float] = time,
    ):
        self.name = name
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.message = message
        self._redis = redis_client
        self._clock = clock
        # Fallback: in-memory storage (key -> (window_index, count))
        self._windows: Dict[str, Tuple[int, int]] = {}

    def _window(self) -> Tuple[int, int]:
        now = self._clock()
        index = int(now // self.window_seconds)
        retry_after = max(1, math.ceil((index + 1) * self.window_seconds - now))
        return index, retry_after

    def _hit_redis(self, key: str, index: int) -> int:
        redis_key = f"rate_limit:{self.name}:{key}:{index}"
        count = self._redis.incr(redis_key)
        if count == 1:
            self._redis.expire(redis_key, self.window_seconds + 5)
        return int(count)

    def _hit_memory(self, key: str, index: int) -> int:
        current_index, count = self._windows.get(key, (index, 0))
        if current_index != index:
            count = 0
        count += 1
        self._windows[key] = (index, count)
        return count

    def hit(self, key: str) -> Tuple[bool, int]:
        """
        Count one request for ``key``.

        Returns:
            (allowed, retry_after_seconds)
        """
        index, retry_after = self._window()
        count = None
        if self._redis is not None:
            try:
                count = self._hit_redis(key, index)
            except redis.RedisError as e:
                logger.warning(f"Redis rate limit check failed: {e}. Falling back to in-memory.")
        if count is None:
            count = self._hit_memory(key, index)
        return count <= self.max_requests, retry_after

    def reset(self) -> None:
        self._windows.clear()


global_limiter = FixedWindowRateLimiter(
    "api", 100, FIFTEEN_MINUTES,
    message="Too many requests from this IP, please try again after 15 minutes.",
    redis_client=_redis_client,
)
ai_limiter = FixedWindowRateLimiter(
    "ai", 30, FIFTEEN_MINUTES,
    message="The stars need a moment to realign. Too many AI requests, please try again later.",
    redis_client=_redis_client,
)
auth_limiter = FixedWindowRateLimiter(
    "auth", 10, FIFTEEN_MINUTES,
    message="Too many login attempts. Please try again in 15 minutes.",
    redis_client=_redis_client,
)
newsletter_limiter = FixedWindowRateLimiter(
    "newsletter", 5, ONE_HOUR,
    message="Too many subscription attempts. Please try again later.",
    redis_client=_redis_client,
)


class RateLimit:
    """
    Route dependency applying a limiter to the caller's IP.

    Usage:
        @router.post("/tarot", dependencies=[Depends(RateLimit(ai_limiter))])
    """

    def __init__(self, limiter: FixedWindowRateLimiter):
        self.limiter = limiter

    async def __call__(self, request: Request) -> None:
        if not settings.rate_limit_enabled:
            return
        allowed, retry_after = self.limiter.hit(get_client_ip(request))
        if not allowed:
            logger.warning(f"Rate limit '{self.limiter.name}' exceeded for {get_client_ip(request)}")
            raise RateLimitExceeded(self.limiter.message, retry_after)


ai_rate_limit = RateLimit(ai_limiter)
auth_rate_limit = RateLimit(auth_limiter)
newsletter_rate_limit = RateLimit(newsletter_limiter)


class RateLimiterMiddleware(BaseHTTPMiddleware):
    """
    Global per-IP budget for every /api/ path.
    """

    def __init__(self, app, limiter: FixedWindowRateLimiter = global_limiter):
        super().__init__(app)
        self.limiter = limiter

    async def dispatch(self, request: Request, call_next) -> Response:
        if settings.rate_limit_enabled and request.url.path.startswith("/api/"):
            allowed, retry_after = self.limiter.hit(get_client_ip(request))
            if not allowed:
                return too_many_requests_response(self.limiter.message, retry_after)
        return await call_next(request)


def too_many_requests_response(message: str, retry_after: int) -> Response:
    response = error_response(message, status=429)
    response.headers["Retry-After"] = str(retry_after)
    return response
