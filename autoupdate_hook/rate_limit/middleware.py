"""
Rate Limit Middleware
=====================
ASGI middleware that throttles requests ahead of authentication.
"""

from typing import Optional, Set

import structlog
from starlette.datastructures import Headers
from starlette.responses import PlainTextResponse

from autoupdate_hook import metrics
from .keys import extract_rate_limit_key
from .models import RateLimiter, RateLimitInfo

logger = structlog.get_logger(__name__)

DEFAULT_EXCLUDED_PATHS = {"/health", "/metrics"}


def rate_limit_headers(info: RateLimitInfo) -> dict:
    """Standard rate limit response headers for ``info``."""
    headers = {
        "X-RateLimit-Limit": str(info.limit),
        "X-RateLimit-Remaining": str(info.remaining),
    }
    if not info.allowed and info.retry_after is not None:
        headers["X-RateLimit-After"] = str(info.retry_after)
        headers["Retry-After"] = str(info.retry_after)
    return headers


class RateLimitMiddleware:
    """
    Admits or rejects each request using the bearer-derived bucket key.

    Rejected requests get ``429`` without reaching the route; admitted ones
    carry the remaining quota in their response headers.
    """

    def __init__(
        self,
        app,
        limiter: RateLimiter,
        excluded_paths: Optional[Set[str]] = None,
    ):
        self.app = app
        self.limiter = limiter
        self.excluded_paths = excluded_paths or DEFAULT_EXCLUDED_PATHS

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http" or scope.get("path") in self.excluded_paths:
            await self.app(scope, receive, send)
            return

        key = extract_rate_limit_key(Headers(scope=scope))
        info = await self.limiter.check(key)
        headers = rate_limit_headers(info)

        if not info.allowed:
            logger.info("rate_limited", retry_after=info.retry_after, anonymous=key == "")
            metrics.record_request("rate_limited")
            response = PlainTextResponse(
                f"Too Many Requests! Wait for {info.retry_after}s",
                status_code=429,
                headers=headers,
            )
            await response(scope, receive, send)
            return

        async def send_wrapper(message):
            if message["type"] == "http.response.start":
                raw = list(message.get("headers", []))
                for name, value in headers.items():
                    raw.append((name.lower().encode("latin-1"), value.encode("latin-1")))
                message = {**message, "headers": raw}
            await send(message)

        await self.app(scope, receive, send_wrapper)
