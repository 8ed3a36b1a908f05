"""Rate limiting middleware."""

from datetime import datetime, timezone
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from backend.app.api.auth import get_current_context
from backend.app.config import get_settings
from backend.app.db.context import RequestContext
from backend.app.db.repositories import RateLimiter
from backend.app.ratelimit import (
    CRUD_BUCKET,
    GENERATION_BUCKET,
    MCP_BUCKET,
    create_bucket_limiters,
    make_rate_limit_key,
)


class RateLimitMiddleware:
    """Middleware for rate limiting HTTP requests.

    Maps request paths to buckets and enforces each bucket's limiter.
    """

    def __init__(self, limiters: dict[str, RateLimiter], bucket_map: dict[str, str]) -> None:
        """Initialize rate limit middleware.

        Args:
            limiters: Rate limiter per bucket name
            bucket_map: Mapping from path patterns to bucket names; first match wins
        """
        self._limiters = limiters
        self._bucket_map = bucket_map

    def check_rate_limit(
        self, path: str, ctx: RequestContext, now: datetime | None = None
    ) -> tuple[bool, int]:
        """Check if request is allowed under rate limit.

        Args:
            path: Request path
            ctx: Request context
            now: Current time (for testing)

        Returns:
            Tuple of (allowed, retry_after_seconds)
        """
        if now is None:
            now = datetime.now(timezone.utc)

        bucket = self._get_bucket(path)
        if bucket is None:
            return (True, 0)

        limiter = self._limiters.get(bucket)
        if limiter is None:
            return (True, 0)

        key = make_rate_limit_key(ctx, bucket)
        retry_after = limiter.check_quota(key, now)

        if retry_after is None:
            return (True, 0)

        return (False, retry_after.seconds)

    def _get_bucket(self, path: str) -> str | None:
        """Get bucket name for path.

        Args:
            path: Request path

        Returns:
            Bucket name or None if no rate limit
        """
        for pattern, bucket in self._bucket_map.items():
            if pattern in path:
                return bucket

        return None


def create_default_bucket_map() -> dict[str, str]:
    """Create default bucket mapping.

    Returns:
        Dictionary mapping path patterns to bucket names
    """
    return {
        "/repositories/generate": GENERATION_BUCKET,
        "/docs/index": GENERATION_BUCKET,
        "/api/mcp": MCP_BUCKET,
        "/mcp/token": CRUD_BUCKET,
        "/rules": CRUD_BUCKET,
        "/repositories": CRUD_BUCKET,
        "/templates": CRUD_BUCKET,
    }


_middleware: RateLimitMiddleware | None = None


def get_rate_limit_middleware() -> RateLimitMiddleware:
    """Get process-wide rate limit middleware built from settings."""
    global _middleware
    if _middleware is None:
        _middleware = RateLimitMiddleware(
            create_bucket_limiters(get_settings()), create_default_bucket_map()
        )
    return _middleware


async def enforce_rate_limit(
    request: Request,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    middleware: Annotated[RateLimitMiddleware, Depends(get_rate_limit_middleware)],
) -> RequestContext:
    """FastAPI dependency: authenticate, then apply the path's bucket quota.

    Raises:
        HTTPException: 429 with Retry-After when over quota
    """
    allowed, retry_after = middleware.check_rate_limit(request.url.path, ctx)
    if not allowed:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Rate limit exceeded",
            headers={"Retry-After": str(retry_after)},
        )
    return ctx
