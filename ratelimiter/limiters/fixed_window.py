"""Fixed window rate limiter.

One atomic counter per (client, window) at ``prefix:client:windowEpoch``.
The counter's TTL is the window length, so old windows expire on their own.
Because the increment is atomic in the cache, concurrent callers never lose
updates and the limit holds exactly.
"""

import time
from typing import Callable, Optional

from ratelimiter.core.cache import CacheGateway, CacheStatus
from ratelimiter.core.time_windows import window_start
from ratelimiter.exceptions import CacheReadError, CacheWriteError, MalformedStateError
from ratelimiter.limiters.base import DEFAULT_KEY_PREFIX, RateLimitBackend
from ratelimiter.limiters.models import RateLimitDecision, RemainingQuery


class FixedWindowLimiter(RateLimitBackend):
    """Allow ``max_requests`` per aligned window of ``window`` seconds."""

    algorithm = "fixed_window"

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
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the fixed window limiter.

        Args:
            cache: Gateway to the cache service
            cache_name: Cache namespace
            key_prefix: Prefix for cache keys
            max_requests: Maximum requests allowed per window
            window: Window size in seconds, also the counter TTL
            clock: Time source returning UNIX time in seconds
        """
        super().__init__(
            cache=cache, cache_name=cache_name, key_prefix=key_prefix, clock=clock
        )
        self.max_requests = self._require_positive("max_requests", max_requests)
        self.window = self._require_positive("window", window)

    @property
    def capacity(self) -> int:
        return self.max_requests

    def build_key(self, client_id: str, window: int) -> str:
        return f"{self.key_prefix}:{client_id}:{window}"

    def _current_key(self, client_id: str) -> str:
        return self.build_key(client_id, window_start(self._clock(), self.window))

    async def limit(self, client_id: str) -> RateLimitDecision:
        invalid = self._check_client_id(client_id)
        if invalid is not None:
            return RateLimitDecision.denied(error=invalid)
        key = self._current_key(client_id)

        result = await self.cache.increment(
            self.cache_name, key, 1, ttl_seconds=self.window
        )
        if result.status is CacheStatus.ERROR:
            error = CacheWriteError(result.error, key)
            self._log_failure(error, client_id, key, "increment")
            return RateLimitDecision.denied(error=error)

        count = result.value
        if count > self.max_requests:
            self._log_denied(client_id, key)
            return RateLimitDecision.denied()

        return RateLimitDecision.allowed(self.max_requests - count)

    async def remaining(self, client_id: str) -> RemainingQuery:
        invalid = self._check_client_id(client_id)
        if invalid is not None:
            return RemainingQuery(remaining=None, error=invalid)
        key = self._current_key(client_id)

        result = await self.cache.get(self.cache_name, key)
        if result.status is CacheStatus.ERROR:
            error = CacheReadError(result.error, key)
            self._log_failure(error, client_id, key, "get")
            return RemainingQuery(remaining=None, error=error)
        if result.status is CacheStatus.MISS:
            return RemainingQuery(remaining=self.max_requests)

        try:
            count = int(result.value)
        except (TypeError, ValueError):
            error = MalformedStateError(result.value)
            self._log_failure(error, client_id, key, "get")
            return RemainingQuery(remaining=None, error=error)

        if count >= self.max_requests:
            return RemainingQuery(remaining=0)
        return RemainingQuery(remaining=self.max_requests - count)
