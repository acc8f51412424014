"""
Rate Limit Models
=================
Data models for rate limiting decisions.
"""

from dataclasses import dataclass
from typing import Optional, Protocol


@dataclass
class RateLimitInfo:
    """Rate limit check result with quota information."""
    allowed: bool
    remaining: int
    limit: int
    reset_at: int  # Unix timestamp
    retry_after: Optional[int] = None  # Seconds until retry allowed


class RateLimiter(Protocol):
    """Minimal limiter contract: admit or reject one request for ``key``."""

    async def check(self, key: str) -> RateLimitInfo:
        ...
