"""
Rate Limiting
=============
Bucket key derivation, token bucket limiters and the throttling middleware.
"""

from .models import RateLimiter, RateLimitInfo
from .keys import extract_rate_limit_key
from .in_memory import InMemoryRateLimiter
from .redis_limiter import RedisRateLimiter, TOKEN_BUCKET_SCRIPT
from .middleware import RateLimitMiddleware, rate_limit_headers

__all__ = [
    # Models
    "RateLimiter",
    "RateLimitInfo",
    # Keys
    "extract_rate_limit_key",
    # Limiters
    "InMemoryRateLimiter",
    "RedisRateLimiter",
    "TOKEN_BUCKET_SCRIPT",
    # Middleware
    "RateLimitMiddleware",
    "rate_limit_headers",
]
