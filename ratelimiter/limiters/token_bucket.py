"""Token bucket rate limiter.

Each client has one string at ``prefix:client`` holding
``"<lastUpdatedAt>:<tokens>"``. Refills are not written eagerly: on every read
the limiter adds ``refill_rate`` tokens per whole ``refill_interval`` elapsed
since ``lastUpdatedAt``, capped at ``max_tokens``. State is written only when
a token is consumed.

Each write carries a TTL long enough to refill an empty bucket, after which a
missing entry reads the same as a new client.

The read and the write are separate cache calls, so two concurrent callers
can both consume from the same observed state and the second write replaces
the first. Use ``FixedWindowLimiter`` when the limit must hold exactly.
"""

import math
import re
import time
from typing import Callable, Optional

from ratelimiter.core.cache import CacheGateway, CacheStatus
from ratelimiter.exceptions import (
    CacheReadError,
    CacheWriteError,
    InvalidInputError,
    MalformedStateError,
)
from ratelimiter.limiters.base import DEFAULT_KEY_PREFIX, RateLimitBackend
from ratelimiter.limiters.models import (
    BucketState,
    RateLimitDecision,
    RemainingQuery,
    TokenCount,
)


class BucketStateCodec:
    """Serialize ``BucketState`` as ``"<lastUpdatedAt>:<tokens>"``.

    Encoding writes whole seconds. Decoding also accepts a fractional
    ``lastUpdatedAt`` (``"1672531200.123:10"``), truncated to whole seconds.
    """

    _PATTERN = re.compile(r"(\d+)(?:\.\d+)?:(\d+)")

    @staticmethod
    def encode(state: BucketState) -> str:
        return f"{int(state.last_updated_at)}:{int(state.tokens)}"

    @classmethod
    def decode(cls, value: str) -> BucketState:
        """Parse a stored bucket payload.

        Raises:
            MalformedStateError: If value is not a non-negative timestamp
                and a non-negative integer separated by a colon
        """
        if not isinstance(value, str):
            raise MalformedStateError(value, f"Bucket state must be a string, got {type(value).__name__}")
        match = cls._PATTERN.fullmatch(value)
        if match is None:
            raise MalformedStateError(value)
        return BucketState(last_updated_at=int(match.group(1)), tokens=int(match.group(2)))


class TokenBucketLimiter(RateLimitBackend):
    """Allow bursts of up to ``max_tokens``, refilled at a fixed rate."""

    algorithm = "token_bucket"

    DEFAULT_MAX_TOKENS = 100
    DEFAULT_REFILL_RATE = 10
    DEFAULT_REFILL_INTERVAL = 60

    def __init__(
        self,
        *,
        cache: CacheGateway,
        cache_name: str,
        key_prefix: Optional[str] = DEFAULT_KEY_PREFIX,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        starting_tokens: Optional[int] = None,
        refill_rate: int = DEFAULT_REFILL_RATE,
        refill_interval: int = DEFAULT_REFILL_INTERVAL,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the token bucket limiter.

        Args:
            cache: Gateway to the cache service
            cache_name: Cache namespace
            key_prefix: Prefix for cache keys
            max_tokens: Bucket capacity
            starting_tokens: Tokens for a client with no stored state
                (defaults to max_tokens)
            refill_rate: Tokens added per refill interval
            refill_interval: Seconds between refills
            clock: Time source returning UNIX time in seconds
        """
        super().__init__(
            cache=cache, cache_name=cache_name, key_prefix=key_prefix, clock=clock
        )
        self.max_tokens = self._require_positive("max_tokens", max_tokens)
        if starting_tokens is None:
            starting_tokens = self.max_tokens
        if not isinstance(starting_tokens, int) or not 0 <= starting_tokens <= self.max_tokens:
            raise InvalidInputError("starting_tokens must be between 0 and max_tokens")
        self.starting_tokens = starting_tokens
        self.refill_rate = self._require_positive("refill_rate", refill_rate)
        self.refill_interval = self._require_positive("refill_interval", refill_interval)
        # Long enough for an empty bucket to refill completely.
        self.ttl_seconds = (
            math.ceil(self.max_tokens / self.refill_rate) * self.refill_interval
        )
        self.codec = BucketStateCodec()

    @property
    def capacity(self) -> int:
        return self.max_tokens

    def build_key(self, client_id: str) -> str:
        return f"{self.key_prefix}:{client_id}"

    async def _calculate_tokens(self, client_id: str) -> TokenCount:
        """Read the bucket and apply the refills owed since its last update.

        ``last_updated_at`` is returned as stored; only a consumption moves it.
        """
        key = self.build_key(client_id)
        result = await self.cache.get(self.cache_name, key)

        if result.status is CacheStatus.ERROR:
            error = CacheReadError(result.error, key)
            self._log_failure(error, client_id, key, "get")
            return TokenCount(tokens=None, last_updated_at=None, error=error)

        now = self._clock()
        if result.status is CacheStatus.HIT:
            try:
                state = self.codec.decode(result.value)
            except MalformedStateError as e:
                self._log_failure(e, client_id, key, "get")
                return TokenCount(tokens=None, last_updated_at=None, error=e)
        else:
            # Nothing stored yet; state is written on the first consumption.
            state = BucketState(last_updated_at=int(now), tokens=self.starting_tokens)

        tokens = state.tokens
        intervals = math.floor((now - state.last_updated_at) / self.refill_interval)
        if intervals > 0:
            tokens += intervals * self.refill_rate

        return TokenCount(
            tokens=min(self.max_tokens, tokens),
            last_updated_at=state.last_updated_at,
        )

    async def limit(self, client_id: str) -> RateLimitDecision:
        invalid = self._check_client_id(client_id)
        if invalid is not None:
            return RateLimitDecision.denied(error=invalid)
        counted = await self._calculate_tokens(client_id)

        if counted.error is not None:
            return RateLimitDecision.denied(error=counted.error)

        key = self.build_key(client_id)
        if counted.tokens <= 0:
            # Leave the stored state alone so refills keep accruing from it.
            self._log_denied(client_id, key)
            return RateLimitDecision.denied()

        tokens = counted.tokens - 1
        state = BucketState(last_updated_at=int(self._clock()), tokens=tokens)
        result = await self.cache.set(
            self.cache_name, key, self.codec.encode(state), ttl_seconds=self.ttl_seconds
        )
        if result.status is CacheStatus.ERROR:
            error = CacheWriteError(result.error, key)
            self._log_failure(error, client_id, key, "set")
            return RateLimitDecision.denied(remaining=tokens, error=error)

        return RateLimitDecision.allowed(tokens)

    async def remaining(self, client_id: str) -> RemainingQuery:
        invalid = self._check_client_id(client_id)
        if invalid is not None:
            return RemainingQuery(remaining=None, error=invalid)
        counted = await self._calculate_tokens(client_id)

        if counted.error is not None:
            return RemainingQuery(remaining=None, error=counted.error)

        return RemainingQuery(remaining=counted.tokens)
