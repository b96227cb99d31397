"""
Rate limiting middleware using Redis-backed sliding window
"""

import time
import uuid
import logging
from typing import Optional, Tuple
from fastapi import Request, status
from fastapi.responses import JSONResponse
from redis import RedisError
from starlette.middleware.base import BaseHTTPMiddleware

from friendvault.infrastructure.settings import get_settings
from friendvault.infrastructure.logging_config import trace_id_context
from friendvault.schemas.common import error_body
from friendvault.utils.metrics import record_rate_limit_exceeded

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Redis-backed rate limiter using sliding window algorithm.

    Uses Redis sorted sets; key format: "ratelimit:{endpoint_group}:{identifier}"
    """

    def __init__(
        self,
        redis_client,
        limit: int,
        window_seconds: int = 60,
    ):
        self.redis = redis_client
        self.limit = limit
        self.window_seconds = window_seconds

    def get_key(self, endpoint_group: str, identifier: str) -> str:
        """Generate Redis key for rate limit"""
        return f"ratelimit:{endpoint_group}:{identifier}"

    def check_rate_limit(
        self,
        endpoint_group: str,
        identifier: str,
    ) -> Tuple[bool, int, int, int]:
        """
        Check if request is within rate limit.

        Returns:
            Tuple of (is_allowed, remaining, limit, reset_time)
        """
        key = self.get_key(endpoint_group, identifier)
        now = time.time()
        window_start = now - self.window_seconds

        # Drop entries outside the window
        self.redis.zremrangebyscore(key, 0, window_start)
        current_count = self.redis.zcard(key)

        if current_count >= self.limit:
            oldest_entry = self.redis.zrange(key, 0, 0, withscores=True)
            if oldest_entry:
                reset_time = int(oldest_entry[0][1]) + self.window_seconds
            else:
                reset_time = int(now) + self.window_seconds
            return False, 0, self.limit, reset_time

        # Unique member per request so bursts within one second all count
        self.redis.zadd(key, {f"{now}:{uuid.uuid4().hex}": now})
        self.redis.expire(key, self.window_seconds + 10)

        remaining = max(0, self.limit - current_count - 1)
        return True, remaining, self.limit, int(now) + self.window_seconds


def get_client_identifier(request: Request) -> str:
    """
    Extract client identifier from request (IP address).

    Handles proxy headers (X-Forwarded-For, X-Real-IP).
    """
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()

    if request.client:
        return request.client.host

    return "unknown"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Rate limits the /api/v1/* endpoint group.

    Health, readiness, metrics and docs are never limited. If Redis is
    unreachable the request is let through and a warning is logged.
    """

    def __init__(self, app, redis_client):
        super().__init__(app)
        self.redis = redis_client
        self.settings = get_settings()
        self.limiters = {
            "api": RateLimiter(
                redis_client=redis_client,
                limit=self.settings.RL_API_PER_MIN,
                window_seconds=60,
            ),
        }

    def get_endpoint_group(self, path: str) -> Optional[str]:
        """Determine endpoint group from path"""
        if path.startswith(f"{self.settings.API_V1_PREFIX}/"):
            return "api"
        return None

    async def dispatch(self, request: Request, call_next):
        endpoint_group = self.get_endpoint_group(request.url.path)
        if not endpoint_group or request.method == "OPTIONS":
            return await call_next(request)

        identifier = get_client_identifier(request)
        limiter = self.limiters[endpoint_group]

        try:
            is_allowed, remaining, limit, reset_time = limiter.check_rate_limit(
                endpoint_group=endpoint_group,
                identifier=identifier,
            )
        except RedisError as e:
            logger.warning(f"Rate limiter unavailable, allowing request: {e}")
            return await call_next(request)

        trace_id = trace_id_context.get()

        if not is_allowed:
            record_rate_limit_exceeded(group=endpoint_group)
            logger.warning(
                "Rate limit exceeded",
                extra={
                    "endpoint_group": endpoint_group,
                    "identifier": identifier,
                    "path": request.url.path,
                    "method": request.method,
                },
            )
            # Raised exceptions bypass the app's handlers at this layer
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content=error_body(
                    "RATE_LIMITED",
                    f"Rate limit exceeded. Maximum {limit} requests per minute.",
                    details={"endpoint_group": endpoint_group, "reset_at": reset_time},
                    trace_id=trace_id,
                ),
                headers={
                    "X-RateLimit-Limit": str(limit),
                    "X-RateLimit-Remaining": "0",
                    "X-RateLimit-Reset": str(reset_time),
                },
            )

        response = await call_next(request)

        response.headers["X-RateLimit-Limit"] = str(limit)
        response.headers["X-RateLimit-Remaining"] = str(remaining)
        response.headers["X-RateLimit-Reset"] = str(reset_time)

        return response
