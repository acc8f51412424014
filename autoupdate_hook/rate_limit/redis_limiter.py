"""
Redis Rate Limiter
==================
Redis-backed token bucket so several hook replicas share one budget per key.
"""

import hashlib
import time
from typing import Optional

import structlog
from redis.exceptions import NoScriptError, RedisError

from .models import RateLimitInfo

logger = structlog.get_logger(__name__)

# Lua script for an atomic token bucket in Redis
TOKEN_BUCKET_SCRIPT = """
local key = KEYS[1]
local burst = tonumber(ARGV[1])
local period = tonumber(ARGV[2])
local now = tonumber(ARGV[3])

local tokens = burst
local updated_at = now

local bucket = redis.call('HMGET', key, 'tokens', 'updated_at')
if bucket[1] then
    tokens = tonumber(bucket[1])
    updated_at = tonumber(bucket[2])
end

local elapsed = math.max(0, now - updated_at)
tokens = math.min(burst, tokens + elapsed / period)

if tokens < 1 then
    local wait = math.ceil((1 - tokens) * period)
    redis.call('HSET', key, 'tokens', tostring(tokens), 'updated_at', tostring(now))
    redis.call('EXPIRE', key, math.ceil(burst * period) + 1)
    return {0, 0, burst, math.floor(now) + wait, wait}
end

tokens = tokens - 1
redis.call('HSET', key, 'tokens', tostring(tokens), 'updated_at', tostring(now))
redis.call('EXPIRE', key, math.ceil(burst * period) + 1)

local until_full = math.ceil((burst - tokens) * period)
return {1, math.floor(tokens), burst, math.floor(now) + until_full, 0}
"""


class RedisRateLimiter:
    """
    Redis-backed token bucket rate limiter.

    Uses a Lua script so refill and consume happen atomically.
    """

    def __init__(
        self,
        redis_client,
        burst: int = 5,
        period: float = 10.0,
        prefix: str = "autoupdate_hook:ratelimit",
    ):
        """
        Args:
            redis_client: Async Redis client (``redis.asyncio``)
            burst: Maximum number of requests admitted back to back
            period: Seconds needed to replenish one token
            prefix: Namespace for bucket keys
        """
        self.redis = redis_client
        self.burst = burst
        self.period = period
        self.prefix = prefix
        self._script_sha: Optional[str] = None

    @classmethod
    def from_url(cls, url: str, **kwargs) -> "RedisRateLimiter":
        import redis.asyncio as redis

        return cls(redis.from_url(url), **kwargs)

    async def _ensure_script(self) -> str:
        """Load Lua script into Redis if needed."""
        if self._script_sha is None:
            self._script_sha = await self.redis.script_load(TOKEN_BUCKET_SCRIPT)
        return self._script_sha

    def get_key(self, key: str) -> str:
        """Redis key for a bucket; the bearer-derived key is stored hashed."""
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()
        return f"{self.prefix}:{digest}"

    async def _evaluate(self, key: str, now: float):
        script_sha = await self._ensure_script()
        try:
            return await self.redis.evalsha(
                script_sha, 1, self.get_key(key), self.burst, self.period, now
            )
        except NoScriptError:
            # Script cache was flushed (restart or SCRIPT FLUSH)
            logger.warning("rate_limit_script_reloaded")
            self._script_sha = None
            script_sha = await self._ensure_script()
            return await self.redis.evalsha(
                script_sha, 1, self.get_key(key), self.burst, self.period, now
            )

    async def check(self, key: str) -> RateLimitInfo:
        """
        Consume one token for ``key`` using Redis.

        Fails open when Redis is unavailable.

        Args:
            key: Bucket key

        Returns:
            RateLimitInfo with decision
        """
        now = time.time()

        try:
            result = await self._evaluate(key, now)
        except RedisError as e:
            logger.error("rate_limit_check_failed", error=str(e))
            return RateLimitInfo(
                allowed=True,
                remaining=self.burst,
                limit=self.burst,
                reset_at=int(now),
            )

        allowed, remaining, limit, reset_at, retry_after = (int(v) for v in result)

        if not allowed:
            logger.info("rate_limit_exceeded", retry_after=retry_after)

        return RateLimitInfo(
            allowed=bool(allowed),
            remaining=remaining,
            limit=limit,
            reset_at=reset_at,
            retry_after=retry_after if not allowed else None,
        )

    async def close(self) -> None:
        await self.redis.aclose()
