"""Cache-backed rate limiters.

Three independent strategies over the same ``CacheGateway`` contract:
fixed window, sliding window and token bucket. ``create_rate_limiter``
builds one from settings for applications that do not wire limiters by hand.
"""

from typing import Any, Optional

from ratelimiter.core.cache import CacheGateway, get_cache_gateway
from ratelimiter.core.config import settings
from ratelimiter.core.logging import get_logger

from ratelimiter.limiters.base import RateLimitBackend
from ratelimiter.limiters.fixed_window import FixedWindowLimiter
from ratelimiter.limiters.models import (
    BucketState,
    RateLimitDecision,
    RemainingQuery,
    SlidingWindowCount,
    TokenCount,
)
from ratelimiter.limiters.sliding_window import SlidingWindowLimiter
from ratelimiter.limiters.token_bucket import BucketStateCodec, TokenBucketLimiter

logger = get_logger(__name__)

__all__ = [
    # Models
    "RateLimitDecision",
    "RemainingQuery",
    "BucketState",
    "SlidingWindowCount",
    "TokenCount",
    # Limiters
    "RateLimitBackend",
    "FixedWindowLimiter",
    "SlidingWindowLimiter",
    "TokenBucketLimiter",
    "BucketStateCodec",
    "create_rate_limiter",
]


def create_rate_limiter(
    algorithm: Optional[str] = None,
    *,
    cache: Optional[CacheGateway] = None,
    cache_name: Optional[str] = None,
    **overrides: Any,
) -> RateLimitBackend:
    """Build a limiter from settings.

    Args:
        algorithm: fixed_window, sliding_window or token_bucket
            (None = settings.rate_limit_algorithm)
        cache: Gateway to use (None = the global gateway from get_cache_gateway)
        cache_name: Cache namespace (None = settings.cache_name)
        **overrides: Constructor arguments that take precedence over settings

    Returns:
        The configured limiter

    Raises:
        ValueError: If the algorithm is unknown
    """
    algorithm = (algorithm or settings.rate_limit_algorithm).strip().lower()
    common = {
        "cache": cache if cache is not None else get_cache_gateway(),
        "cache_name": cache_name or settings.cache_name,
        "key_prefix": settings.rate_limit_key_prefix,
    }

    if algorithm == FixedWindowLimiter.algorithm:
        options = {
            "max_requests": settings.rate_limit_max,
            "window": settings.rate_limit_window_seconds,
        }
        limiter_class: type[RateLimitBackend] = FixedWindowLimiter
    elif algorithm == SlidingWindowLimiter.algorithm:
        options = {
            "max_requests": settings.rate_limit_max,
            "window": settings.rate_limit_window_seconds,
            "interval_window": settings.rate_limit_interval_window_seconds,
        }
        limiter_class = SlidingWindowLimiter
    elif algorithm == TokenBucketLimiter.algorithm:
        options = {
            "max_tokens": settings.token_bucket_max_tokens,
            "starting_tokens": settings.token_bucket_starting_tokens,
            "refill_rate": settings.token_bucket_refill_rate,
            "refill_interval": settings.token_bucket_refill_interval_seconds,
        }
        limiter_class = TokenBucketLimiter
    else:
        raise ValueError(
            f"Unknown rate limit algorithm: {algorithm}. "
            "Use 'fixed_window', 'sliding_window' or 'token_bucket'"
        )

    limiter = limiter_class(**{**common, **options, **overrides})
    logger.debug(f"Using {limiter!r}")
    return limiter
