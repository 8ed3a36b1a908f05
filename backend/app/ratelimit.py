"""Rate limiting utilities."""

import logging
from datetime import datetime

import redis

from backend.app.config import Settings
from backend.app.db.context import RequestContext
from backend.app.db.inmemory import InMemoryRateLimiter
from backend.app.db.repositories import RateLimiter, RetryAfter

logger = logging.getLogger(__name__)

GENERATION_BUCKET = "generation"
CRUD_BUCKET = "crud"
MCP_BUCKET = "mcp"


def make_rate_limit_key(ctx: RequestContext, bucket: str) -> str:
    """Create rate limit key from context and bucket.

    Args:
        ctx: Request context
        bucket: Bucket name (e.g., "generation", "crud")

    Returns:
        Rate limit key
    """
    return f"{ctx.user_id}:{bucket}"


class RedisRateLimiter:
    """Redis-based rate limiter using INCR + EXPIRE pattern."""

    def __init__(self, redis_client: redis.Redis, max_requests: int, window_seconds: int = 60) -> None:
        """Initialize rate limiter.

        Args:
            redis_client: Redis client
            max_requests: Maximum requests per window
            window_seconds: Window size in seconds (default 60)
        """
        self._redis = redis_client
        self._max_requests = max_requests
        self._window_seconds = window_seconds

    def check_quota(self, key: str, now: datetime) -> RetryAfter | None:
        """Check if quota is available.

        Uses Redis INCR + EXPIRE for atomic counting.

        Args:
            key: Rate limit key
            now: Current timestamp

        Returns:
            RetryAfter if over quota, None if allowed
        """
        window_start = int(now.timestamp() / self._window_seconds) * self._window_seconds
        redis_key = f"ratelimit:{key}:{window_start}"

        count = self._redis.incr(redis_key)

        if count == 1:
            self._redis.expire(redis_key, self._window_seconds)

        if count > self._max_requests:
            ttl = self._redis.ttl(redis_key)
            return RetryAfter(seconds=max(1, ttl))

        return None


def create_bucket_limiters(settings: Settings) -> dict[str, RateLimiter]:
    """Build one limiter per bucket from configured per-minute quotas.

    Uses Redis when redis_url is set so quotas hold across workers.
    """
    quotas = {
        GENERATION_BUCKET: settings.generation_runs_per_min,
        CRUD_BUCKET: settings.crud_ops_per_min,
        MCP_BUCKET: settings.mcp_calls_per_min,
    }

    if settings.redis_url:
        client = redis.Redis.from_url(settings.redis_url)
        logger.info("Using Redis rate limiter")
        return {
            bucket: RedisRateLimiter(client, max_requests=quota)
            for bucket, quota in quotas.items()
        }

    logger.info("Using in-memory rate limiter")
    return {bucket: InMemoryRateLimiter(max_requests=quota) for bucket, quota in quotas.items()}
