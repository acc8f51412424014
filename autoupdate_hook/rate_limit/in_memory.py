"""
In-Memory Rate Limiter
======================
Per-key token bucket limiter for a single hook process.
"""

import math
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable

from .models import RateLimitInfo


@dataclass
class _Bucket:
    tokens: float
    updated_at: float


class InMemoryRateLimiter:
    """
    Token bucket rate limiter keyed by caller.

    Each bucket holds up to ``burst`` tokens and regains one token every
    ``period`` seconds. Only touched from the event loop, so no locking.
    """

    def __init__(
        self,
        burst: int = 5,
        period: float = 10.0,
        max_buckets: int = 10000,
        clock: Callable[[], float] = time.time,
    ):
        """
        Args:
            burst: Maximum number of requests admitted back to back
            period: Seconds needed to replenish one token
            max_buckets: Upper bound on tracked keys, least recently used evicted first
            clock: Time source, injectable for tests
        """
        if burst < 1:
            raise ValueError("burst must be at least 1")
        if period <= 0:
            raise ValueError("period must be positive")
        if max_buckets < 1:
            raise ValueError("max_buckets must be at least 1")
        self.burst = burst
        self.period = period
        self.max_buckets = max_buckets
        self._clock = clock
        self._buckets: "OrderedDict[str, _Bucket]" = OrderedDict()

    def _refill(self, bucket: _Bucket, now: float) -> None:
        elapsed = max(0.0, now - bucket.updated_at)
        bucket.tokens = min(float(self.burst), bucket.tokens + elapsed / self.period)
        bucket.updated_at = now

    def check_sync(self, key: str) -> RateLimitInfo:
        """
        Consume one token for ``key`` if available.

        Args:
            key: Bucket key (see ``extract_rate_limit_key``)

        Returns:
            RateLimitInfo with decision and quota
        """
        now = self._clock()

        bucket = self._buckets.get(key)
        if bucket is None:
            self._evict()
            bucket = _Bucket(tokens=float(self.burst), updated_at=now)
            self._buckets[key] = bucket
        else:
            self._buckets.move_to_end(key)

        self._refill(bucket, now)

        if bucket.tokens < 1.0:
            wait = math.ceil((1.0 - bucket.tokens) * self.period)
            return RateLimitInfo(
                allowed=False,
                remaining=0,
                limit=self.burst,
                reset_at=int(now) + wait,
                retry_after=wait,
            )

        bucket.tokens -= 1.0
        until_full = math.ceil((self.burst - bucket.tokens) * self.period)
        return RateLimitInfo(
            allowed=True,
            remaining=int(bucket.tokens),
            limit=self.burst,
            reset_at=int(now) + until_full,
        )

    async def check(self, key: str) -> RateLimitInfo:
        return self.check_sync(key)

    def _evict(self) -> None:
        """Make room for one new key by dropping least recently used buckets."""
        while len(self._buckets) >= self.max_buckets:
            self._buckets.popitem(last=False)
