"""Rate limiting data models.

This module contains dataclasses for limiter decisions and limiter state.
"""

from dataclasses import dataclass
from typing import Optional

from ratelimiter.exceptions import RateLimiterError


@dataclass(frozen=True)
class RateLimitDecision:
    """Result of a ``limit`` call.

    ``remaining`` is only trustworthy when ``error`` is None.
    """
    allow: bool
    remaining: int
    error: Optional[RateLimiterError] = None

    @classmethod
    def allowed(cls, remaining: int) -> "RateLimitDecision":
        return cls(allow=True, remaining=remaining)

    @classmethod
    def denied(
        cls,
        remaining: int = 0,
        error: Optional[RateLimiterError] = None,
    ) -> "RateLimitDecision":
        return cls(allow=False, remaining=remaining, error=error)


@dataclass(frozen=True)
class RemainingQuery:
    """Result of a ``remaining`` call."""
    remaining: Optional[int]
    error: Optional[RateLimiterError] = None


@dataclass(frozen=True)
class BucketState:
    """Token bucket state as persisted in the cache."""
    last_updated_at: int
    tokens: int


@dataclass(frozen=True)
class SlidingWindowCount:
    """Requests counted across the sliding window's sub-intervals.

    ``last_interval`` is the current sub-interval, the one a consumed request
    is recorded against. It is computed even when the read failed.
    """
    count: int
    last_interval: int
    error: Optional[RateLimiterError] = None


@dataclass(frozen=True)
class TokenCount:
    """Tokens available after applying refills, before consumption."""
    tokens: Optional[int]
    last_updated_at: Optional[int]
    error: Optional[RateLimiterError] = None
