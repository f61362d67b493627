"""Middleware package for the rate limiter."""

from ratelimiter.middleware.rate_limit import RateLimitMiddleware

__all__ = [
    "RateLimitMiddleware",
]
