"""Custom exceptions for the rate limiter.

Limiters never raise these across ``limit``/``remaining``; cache and state
failures, including an empty client id, are returned in the decision's
``error`` field instead. Only bad constructor configuration is raised.
"""

from typing import Any


class RateLimiterError(Exception):
    """Base class for rate limiter errors."""

    def __init__(self, message: str = "Rate limiter error"):
        self.message = message
        super().__init__(message)


class CacheError(RateLimiterError):
    """A cache gateway call failed.

    Attributes:
        cause: The underlying failure reported by the gateway
        key: Cache key the failed operation targeted
    """

    def __init__(
        self,
        message: str,
        cause: BaseException | None = None,
        key: str | None = None,
    ):
        self.cause = cause
        self.key = key
        super().__init__(message)


class CacheReadError(CacheError):
    """Raised when reading limiter state from the cache fails."""

    def __init__(self, cause: BaseException | None = None, key: str | None = None):
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Cache read failed for key {key!r}{detail}", cause, key)


class CacheWriteError(CacheError):
    """Raised when recording limiter state in the cache fails."""

    def __init__(self, cause: BaseException | None = None, key: str | None = None):
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Cache write failed for key {key!r}{detail}", cause, key)


class InvalidInputError(RateLimiterError, ValueError):
    """Raised when a required argument is missing or out of range."""


class MalformedStateError(RateLimiterError, ValueError):
    """Raised when a stored state payload cannot be decoded.

    Attributes:
        value: The raw stored value that failed to parse
    """

    def __init__(self, value: Any, detail: str | None = None):
        self.value = value
        message = detail or f"Malformed limiter state: {value!r}"
        super().__init__(message)
