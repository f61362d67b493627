"""Per-client rate limiting backed by an external atomic cache."""

from ratelimiter.core.cache import (
    CacheGateway,
    CacheResult,
    CacheStatus,
    InMemoryCacheGateway,
    RedisCacheGateway,
)
from ratelimiter.exceptions import (
    CacheError,
    CacheReadError,
    CacheWriteError,
    InvalidInputError,
    MalformedStateError,
    RateLimiterError,
)
from ratelimiter.limiters import (
    FixedWindowLimiter,
    RateLimitDecision,
    RemainingQuery,
    SlidingWindowLimiter,
    TokenBucketLimiter,
    create_rate_limiter,
)

__version__ = "0.1.0"

__all__ = [
    "CacheGateway",
    "CacheResult",
    "CacheStatus",
    "InMemoryCacheGateway",
    "RedisCacheGateway",
    "RateLimiterError",
    "CacheError",
    "CacheReadError",
    "CacheWriteError",
    "InvalidInputError",
    "MalformedStateError",
    "FixedWindowLimiter",
    "SlidingWindowLimiter",
    "TokenBucketLimiter",
    "RateLimitDecision",
    "RemainingQuery",
    "create_rate_limiter",
]
