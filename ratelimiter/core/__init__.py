"""Core utilities for the rate limiter."""

from ratelimiter.core.cache import (
    CacheGateway,
    CacheResult,
    CacheStatus,
    InMemoryCacheGateway,
    RedisCacheGateway,
    get_cache_gateway,
    reset_cache_gateway,
)
from ratelimiter.core.config import settings
from ratelimiter.core.logging import get_logger, setup_logging
from ratelimiter.core.time_windows import window_sequence, window_start

__all__ = [
    "CacheGateway",
    "CacheResult",
    "CacheStatus",
    "InMemoryCacheGateway",
    "RedisCacheGateway",
    "get_cache_gateway",
    "reset_cache_gateway",
    "settings",
    "get_logger",
    "setup_logging",
    "window_start",
    "window_sequence",
]
