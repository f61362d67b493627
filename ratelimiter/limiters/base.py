"""Base class shared by the cache-backed limiters."""

import time
from abc import ABC, abstractmethod
from typing import Callable, Optional

from ratelimiter.core.cache import CacheGateway
from ratelimiter.core.logging import get_log_context, get_logger
from ratelimiter.exceptions import InvalidInputError, RateLimiterError
from ratelimiter.limiters.models import RateLimitDecision, RemainingQuery

logger = get_logger(__name__)

DEFAULT_KEY_PREFIX = "ratelimit"


class RateLimitBackend(ABC):
    """Abstract base class for rate limiters.

    Limiters keep no state between calls; everything lives in the cache
    behind ``cache``. Several limiters may share one gateway as long as their
    key prefixes do not collide.
    """

    algorithm: str = ""

    def __init__(
        self,
        *,
        cache: CacheGateway,
        cache_name: str,
        key_prefix: Optional[str] = DEFAULT_KEY_PREFIX,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the limiter.

        Args:
            cache: Gateway to the cache service holding limiter state
            cache_name: Cache namespace used for every gateway call
            key_prefix: Prefix for cache keys
            clock: Time source returning UNIX time in seconds

        Raises:
            InvalidInputError: If cache or cache_name are missing
        """
        if not cache_name:
            raise InvalidInputError("cache_name is required")
        if cache is None:
            raise InvalidInputError("cache is required")
        self.cache = cache
        self.cache_name = cache_name
        self.key_prefix = key_prefix or DEFAULT_KEY_PREFIX
        self._clock = clock

    @property
    @abstractmethod
    def capacity(self) -> int:
        """Maximum number of requests the limiter admits at once."""
        pass

    @abstractmethod
    async def limit(self, client_id: str) -> RateLimitDecision:
        """Try to consume one unit of capacity for ``client_id``.

        Args:
            client_id: Identifier of the throttled client

        Returns:
            RateLimitDecision; cache failures are carried in ``error``
        """
        pass

    @abstractmethod
    async def remaining(self, client_id: str) -> RemainingQuery:
        """Report remaining capacity for ``client_id`` without consuming it.

        Args:
            client_id: Identifier of the throttled client

        Returns:
            RemainingQuery; cache failures are carried in ``error``
        """
        pass

    @staticmethod
    def _require_positive(name: str, value: int) -> int:
        if isinstance(value, bool) or not isinstance(value, int) or value < 1:
            raise InvalidInputError(f"{name} must be a positive integer")
        return value

    @staticmethod
    def _check_client_id(client_id: str) -> Optional[InvalidInputError]:
        if not client_id or not isinstance(client_id, str):
            return InvalidInputError("client_id must be a non-empty string")
        return None

    def _log_failure(
        self,
        error: RateLimiterError,
        client_id: str,
        key: str,
        operation: str,
    ) -> None:
        logger.warning(
            f"Rate limiter {operation} failed: {error.message}",
            extra=get_log_context(
                client_id=client_id,
                algorithm=self.algorithm,
                cache_name=self.cache_name,
                key=key,
                operation=operation,
            ),
        )

    def _log_denied(self, client_id: str, key: str) -> None:
        logger.debug(
            "Rate limit exceeded",
            extra=get_log_context(
                client_id=client_id,
                algorithm=self.algorithm,
                cache_name=self.cache_name,
                key=key,
            ),
        )

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(cache_name={self.cache_name!r}, "
            f"key_prefix={self.key_prefix!r}, capacity={self.capacity})"
        )
