"""Sliding window rate limiter.

Approximates a continuous sliding window with fixed sub-intervals. Each
client has one dictionary at ``prefix:client`` whose fields are the epoch
seconds of a sub-interval, holding the number of requests admitted in it.
A decision sums the fields covering the last ``window`` seconds.

A larger ``interval_window`` trades accuracy for fewer stored fields and a
smaller per-call fetch (about ``window / interval_window`` fields).

Every increment refreshes the dictionary's TTL to ``window + interval_window``,
so a client that stops sending requests has its dictionary expire once no
field in it can be summed again.

The read and the increment are separate cache calls, so concurrent callers
for the same client can both be admitted past ``max_requests``. Use
``FixedWindowLimiter`` when the limit must hold exactly.
"""

import time
from typing import Callable, Optional

from ratelimiter.core.cache import CacheGateway, CacheStatus
from ratelimiter.core.time_windows import window_sequence
from ratelimiter.exceptions import CacheReadError, CacheWriteError, MalformedStateError
from ratelimiter.limiters.base import DEFAULT_KEY_PREFIX, RateLimitBackend
from ratelimiter.limiters.models import (
    RateLimitDecision,
    RemainingQuery,
    SlidingWindowCount,
)


class SlidingWindowLimiter(RateLimitBackend):
    """Allow ``max_requests`` within any trailing ``window`` seconds."""

    algorithm = "sliding_window"

    DEFAULT_MAX_REQUESTS = 100
    DEFAULT_WINDOW = 900

    def __init__(
        self,
        *,
        cache: CacheGateway,
        cache_name: str,
        key_prefix: Optional[str] = DEFAULT_KEY_PREFIX,
        max_requests: int = DEFAULT_MAX_REQUESTS,
        window: int = DEFAULT_WINDOW,
        interval_window: Optional[int] = None,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the sliding window limiter.

        Args:
            cache: Gateway to the cache service
            cache_name: Cache namespace
            key_prefix: Prefix for cache keys
            max_requests: Maximum requests allowed in the look-back horizon
            window: Look-back horizon in seconds
            interval_window: Sub-interval size in seconds (defaults to window)
            clock: Time source returning UNIX time in seconds
        """
        super().__init__(
            cache=cache, cache_name=cache_name, key_prefix=key_prefix, clock=clock
        )
        self.max_requests = self._require_positive("max_requests", max_requests)
        self.window = self._require_positive("window", window)
        self.interval_window = self._require_positive(
            "interval_window",
            interval_window if interval_window is not None else self.window,
        )
        # Oldest sub-interval still summed starts window + interval_window ago.
        self.ttl_seconds = self.window + self.interval_window

    @property
    def capacity(self) -> int:
        return self.max_requests

    def build_key(self, client_id: str) -> str:
        return f"{self.key_prefix}:{client_id}"

    async def _calculate_count(self, client_id: str) -> SlidingWindowCount:
        """Sum the requests recorded in the sub-intervals of the horizon."""
        now = self._clock()
        intervals = window_sequence(now - self.window, now, self.interval_window)
        last_interval = intervals[-1]
        key = self.build_key(client_id)

        result = await self.cache.dictionary_get_fields(
            self.cache_name, key, [str(interval) for interval in intervals]
        )
        if result.status is CacheStatus.ERROR:
            error = CacheReadError(result.error, key)
            self._log_failure(error, client_id, key, "dictionary_get_fields")
            return SlidingWindowCount(count=0, last_interval=last_interval, error=error)

        count = 0
        if result.status is CacheStatus.HIT:
            try:
                count = sum(int(value) for value in result.value.values())
            except (TypeError, ValueError):
                error = MalformedStateError(result.value)
                self._log_failure(error, client_id, key, "dictionary_get_fields")
                return SlidingWindowCount(
                    count=0, last_interval=last_interval, error=error
                )

        return SlidingWindowCount(count=count, last_interval=last_interval)

    async def limit(self, client_id: str) -> RateLimitDecision:
        invalid = self._check_client_id(client_id)
        if invalid is not None:
            return RateLimitDecision.denied(error=invalid)
        counted = await self._calculate_count(client_id)

        if counted.error is not None:
            return RateLimitDecision.denied(error=counted.error)

        key = self.build_key(client_id)
        if counted.count >= self.max_requests:
            self._log_denied(client_id, key)
            return RateLimitDecision.denied()

        result = await self.cache.dictionary_increment(
            self.cache_name,
            key,
            str(counted.last_interval),
            1,
            ttl_seconds=self.ttl_seconds,
        )
        if result.status is CacheStatus.ERROR:
            # The request was not recorded, so it is not counted in remaining.
            error = CacheWriteError(result.error, key)
            self._log_failure(error, client_id, key, "dictionary_increment")
            return RateLimitDecision.denied(
                remaining=self.max_requests - counted.count, error=error
            )

        return RateLimitDecision.allowed(self.max_requests - counted.count - 1)

    async def remaining(self, client_id: str) -> RemainingQuery:
        invalid = self._check_client_id(client_id)
        if invalid is not None:
            return RemainingQuery(remaining=None, error=invalid)
        counted = await self._calculate_count(client_id)

        if counted.error is not None:
            return RemainingQuery(remaining=None, error=counted.error)

        return RemainingQuery(remaining=max(0, self.max_requests - counted.count))
