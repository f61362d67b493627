"""Cache gateway abstraction for the rate limiter.

Limiters keep all of their state in an external cache reached through a
``CacheGateway``. Gateways never raise for backend failures: every operation
returns a ``CacheResult`` tagged with a ``CacheStatus`` and callers branch on
the status.
"""

import asyncio
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional, Sequence

import redis
import redis.asyncio as aioredis

from ratelimiter.core.logging import get_logger

logger = get_logger(__name__)


class CacheStatus(str, Enum):
    """Outcome of a cache gateway operation."""

    HIT = "hit"
    MISS = "miss"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class CacheResult:
    """Result of a cache gateway operation.

    ``value`` is set for HIT (the stored string, or a field mapping for
    dictionary reads) and for SUCCESS of increments (the new integer value).
    ``error`` is set only for ERROR.
    """

    status: CacheStatus
    value: Any = None
    error: Optional[BaseException] = None

    @classmethod
    def hit(cls, value: Any) -> "CacheResult":
        return cls(CacheStatus.HIT, value=value)

    @classmethod
    def miss(cls) -> "CacheResult":
        return cls(CacheStatus.MISS)

    @classmethod
    def success(cls, value: Any = None) -> "CacheResult":
        return cls(CacheStatus.SUCCESS, value=value)

    @classmethod
    def failure(cls, error: BaseException) -> "CacheResult":
        return cls(CacheStatus.ERROR, error=error)


class CacheGateway(ABC):
    """Abstract base class for cache gateways.

    ``cache_name`` selects a namespace inside the cache service. ``ttl_seconds``
    of ``None`` means the gateway's default TTL; a default of ``None`` means
    entries never expire.
    """

    def __init__(self, default_ttl_seconds: Optional[int] = None) -> None:
        self.default_ttl_seconds = default_ttl_seconds

    def _resolve_ttl(self, ttl_seconds: Optional[int]) -> Optional[int]:
        return ttl_seconds if ttl_seconds is not None else self.default_ttl_seconds

    @abstractmethod
    async def get(self, cache_name: str, key: str) -> CacheResult:
        """Read a string value.

        Returns:
            HIT with the stored string, MISS, or ERROR.
        """
        pass

    @abstractmethod
    async def set(
        self,
        cache_name: str,
        key: str,
        value: str,
        ttl_seconds: Optional[int] = None,
    ) -> CacheResult:
        """Store a string value, replacing any existing one.

        Returns:
            SUCCESS or ERROR.
        """
        pass

    @abstractmethod
    async def increment(
        self,
        cache_name: str,
        key: str,
        delta: int = 1,
        ttl_seconds: Optional[int] = None,
    ) -> CacheResult:
        """Atomically add ``delta`` to an integer value, creating it at 0.

        A resolved TTL is (re)applied on every increment.

        Returns:
            SUCCESS with the new value, or ERROR.
        """
        pass

    @abstractmethod
    async def dictionary_increment(
        self,
        cache_name: str,
        key: str,
        field: str,
        delta: int = 1,
        ttl_seconds: Optional[int] = None,
    ) -> CacheResult:
        """Atomically add ``delta`` to one field of a dictionary.

        A resolved TTL is (re)applied to the whole dictionary on every
        increment.

        Returns:
            SUCCESS with the field's new value, or ERROR.
        """
        pass

    @abstractmethod
    async def dictionary_get_fields(
        self,
        cache_name: str,
        key: str,
        fields: Sequence[str],
    ) -> CacheResult:
        """Read several fields of a dictionary in one call.

        Returns:
            HIT with a mapping of the present fields, MISS when none of the
            requested fields (or the dictionary itself) exist, or ERROR.
        """
        pass


@dataclass
class _CacheEntry:
    """Internal cache entry with TTL tracking."""

    value: Any
    expires_at: float | None = None

    def is_expired(self, now: float) -> bool:
        """Check if the entry has expired."""
        if self.expires_at is None:
            return False
        return now > self.expires_at


class InMemoryCacheGateway(CacheGateway):
    """In-memory cache gateway with TTL support.

    Stores all data in a Python dictionary keyed by ``(cache_name, key)``.
    The internal lock gives increments the same atomicity a cache service
    provides.

    Note: This cache is not distributed and data is lost when the
    process exits.
    """

    def __init__(
        self,
        default_ttl_seconds: Optional[int] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        super().__init__(default_ttl_seconds)
        self._data: Dict[tuple[str, str], _CacheEntry] = {}
        self._lock = asyncio.Lock()
        self._clock = clock

    def _expiry(self, ttl_seconds: Optional[int]) -> float | None:
        ttl = self._resolve_ttl(ttl_seconds)
        return self._clock() + ttl if ttl else None

    def _refresh_expiry(self, entry: _CacheEntry, ttl_seconds: Optional[int]) -> None:
        if self._resolve_ttl(ttl_seconds):
            entry.expires_at = self._expiry(ttl_seconds)

    def _live_entry(self, cache_name: str, key: str) -> _CacheEntry | None:
        entry = self._data.get((cache_name, key))
        if entry is None:
            return None
        if entry.is_expired(self._clock()):
            del self._data[(cache_name, key)]
            return None
        return entry

    async def get(self, cache_name: str, key: str) -> CacheResult:
        async with self._lock:
            entry = self._live_entry(cache_name, key)
            if entry is None:
                return CacheResult.miss()
            if not isinstance(entry.value, str):
                return CacheResult.failure(
                    TypeError(f"Key {key!r} does not hold a string value")
                )
            return CacheResult.hit(entry.value)

    async def set(
        self,
        cache_name: str,
        key: str,
        value: str,
        ttl_seconds: Optional[int] = None,
    ) -> CacheResult:
        async with self._lock:
            self._data[(cache_name, key)] = _CacheEntry(
                value=str(value), expires_at=self._expiry(ttl_seconds)
            )
            return CacheResult.success()

    async def increment(
        self,
        cache_name: str,
        key: str,
        delta: int = 1,
        ttl_seconds: Optional[int] = None,
    ) -> CacheResult:
        async with self._lock:
            entry = self._live_entry(cache_name, key)
            if entry is None:
                entry = _CacheEntry(value="0")
                self._data[(cache_name, key)] = entry
            try:
                new_value = int(entry.value) + delta
            except (TypeError, ValueError) as e:
                return CacheResult.failure(e)
            entry.value = str(new_value)
            self._refresh_expiry(entry, ttl_seconds)
            return CacheResult.success(new_value)

    async def dictionary_increment(
        self,
        cache_name: str,
        key: str,
        field: str,
        delta: int = 1,
        ttl_seconds: Optional[int] = None,
    ) -> CacheResult:
        async with self._lock:
            entry = self._live_entry(cache_name, key)
            if entry is None:
                entry = _CacheEntry(value={})
                self._data[(cache_name, key)] = entry
            if not isinstance(entry.value, dict):
                return CacheResult.failure(
                    TypeError(f"Key {key!r} does not hold a dictionary")
                )
            try:
                new_value = int(entry.value.get(field, "0")) + delta
            except ValueError as e:
                return CacheResult.failure(e)
            entry.value[field] = str(new_value)
            self._refresh_expiry(entry, ttl_seconds)
            return CacheResult.success(new_value)

    async def dictionary_get_fields(
        self,
        cache_name: str,
        key: str,
        fields: Sequence[str],
    ) -> CacheResult:
        async with self._lock:
            entry = self._live_entry(cache_name, key)
            if entry is None:
                return CacheResult.miss()
            if not isinstance(entry.value, dict):
                return CacheResult.failure(
                    TypeError(f"Key {key!r} does not hold a dictionary")
                )
            found = {f: entry.value[f] for f in fields if f in entry.value}
            if not found:
                return CacheResult.miss()
            return CacheResult.hit(found)

    async def clear(self) -> None:
        """Clear all entries from the cache."""
        async with self._lock:
            self._data.clear()


def _decode(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return str(value)


class RedisCacheGateway(CacheGateway):
    """Redis-based cache gateway.

    Physical Redis keys are ``"{cache_name}:{key}"``. Dictionaries are Redis
    hashes. Increments send INCRBY/HINCRBY and EXPIRE in one MULTI/EXEC
    pipeline, so the counter and its TTL are written together.

    Example:
        >>> gateway = RedisCacheGateway("redis://localhost:6379/0")
        >>> await gateway.increment("ratelimit", "api:client-1:1700000000", 1)
    """

    def __init__(
        self,
        redis_url: Optional[str] = None,
        redis_client: Optional[Any] = None,
        default_ttl_seconds: Optional[int] = None,
    ) -> None:
        """Initialize the Redis gateway.

        Args:
            redis_url: Redis connection URL (e.g., "redis://localhost:6379/0")
            redis_client: Optional pre-built asyncio Redis client
            default_ttl_seconds: TTL used when a call passes none
        """
        super().__init__(default_ttl_seconds)
        if redis_url is None and redis_client is None:
            raise ValueError("redis_url or redis_client is required")
        self._redis_url = redis_url
        self._redis = redis_client

    def _get_client(self) -> Any:
        """Get or create the Redis client connection."""
        if self._redis is None:
            self._redis = aioredis.from_url(self._redis_url, decode_responses=True)
        return self._redis

    @staticmethod
    def _physical_key(cache_name: str, key: str) -> str:
        return f"{cache_name}:{key}"

    def _failure(self, operation: str, key: str, error: Exception) -> CacheResult:
        if isinstance(error, redis.RedisError):
            logger.debug(f"Redis {operation} failed for {key}: {error}")
        else:
            logger.exception(f"Unexpected Redis {operation} error for {key}: {error}")
        return CacheResult.failure(error)

    async def get(self, cache_name: str, key: str) -> CacheResult:
        physical = self._physical_key(cache_name, key)
        try:
            value = await self._get_client().get(physical)
        except Exception as e:
            return self._failure("get", physical, e)
        if value is None:
            return CacheResult.miss()
        return CacheResult.hit(_decode(value))

    async def set(
        self,
        cache_name: str,
        key: str,
        value: str,
        ttl_seconds: Optional[int] = None,
    ) -> CacheResult:
        physical = self._physical_key(cache_name, key)
        ttl = self._resolve_ttl(ttl_seconds)
        try:
            if ttl:
                await self._get_client().set(physical, value, ex=ttl)
            else:
                await self._get_client().set(physical, value)
        except Exception as e:
            return self._failure("set", physical, e)
        return CacheResult.success()

    async def increment(
        self,
        cache_name: str,
        key: str,
        delta: int = 1,
        ttl_seconds: Optional[int] = None,
    ) -> CacheResult:
        physical = self._physical_key(cache_name, key)
        ttl = self._resolve_ttl(ttl_seconds)
        try:
            pipe = self._get_client().pipeline(transaction=True)
            pipe.incrby(physical, delta)
            if ttl:
                pipe.expire(physical, ttl)
            results = await pipe.execute()
            new_value = int(results[0])
        except Exception as e:
            return self._failure("increment", physical, e)
        return CacheResult.success(new_value)

    async def dictionary_increment(
        self,
        cache_name: str,
        key: str,
        field: str,
        delta: int = 1,
        ttl_seconds: Optional[int] = None,
    ) -> CacheResult:
        physical = self._physical_key(cache_name, key)
        ttl = self._resolve_ttl(ttl_seconds)
        try:
            pipe = self._get_client().pipeline(transaction=True)
            pipe.hincrby(physical, field, delta)
            if ttl:
                pipe.expire(physical, ttl)
            results = await pipe.execute()
            new_value = int(results[0])
        except Exception as e:
            return self._failure("dictionary_increment", physical, e)
        return CacheResult.success(new_value)

    async def dictionary_get_fields(
        self,
        cache_name: str,
        key: str,
        fields: Sequence[str],
    ) -> CacheResult:
        physical = self._physical_key(cache_name, key)
        fields = list(fields)
        if not fields:
            return CacheResult.miss()
        try:
            values = await self._get_client().hmget(physical, fields)
        except Exception as e:
            return self._failure("dictionary_get_fields", physical, e)
        found = {
            name: _decode(value)
            for name, value in zip(fields, values)
            if value is not None
        }
        if not found:
            return CacheResult.miss()
        return CacheResult.hit(found)

    async def close(self) -> None:
        """Close the Redis connection."""
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None


# Global gateway instance (singleton pattern)
_gateway_instance: CacheGateway | None = None


def get_cache_gateway(
    backend: str | None = None,
    redis_url: str | None = None,
    force_new: bool = False,
) -> CacheGateway:
    """Get or create the global cache gateway.

    Args:
        backend: Gateway to use ('memory', 'redis', or None for auto).
            When None, checks settings.redis_enabled.
        redis_url: Redis connection URL. If not provided, uses settings.redis_url.
        force_new: If True, create a new instance even if one exists.

    Returns:
        A CacheGateway instance (InMemoryCacheGateway or RedisCacheGateway).
    """
    global _gateway_instance

    if _gateway_instance is not None and not force_new:
        return _gateway_instance

    from ratelimiter.core.config import settings

    if backend is None:
        use_redis = settings.redis_enabled
    elif backend in ("redis", "memory"):
        use_redis = backend == "redis"
    else:
        raise ValueError(f"Unknown cache backend: {backend}. Use 'memory' or 'redis'")

    if use_redis:
        _gateway_instance = RedisCacheGateway(
            redis_url=redis_url or settings.redis_url,
            default_ttl_seconds=settings.cache_default_ttl,
        )
        logger.info("Using Redis cache gateway")
    else:
        _gateway_instance = InMemoryCacheGateway(
            default_ttl_seconds=settings.cache_default_ttl,
        )
        logger.debug("Using in-memory cache gateway")
    return _gateway_instance


def reset_cache_gateway() -> None:
    """Reset the global gateway instance.

    This is primarily useful for testing.
    """
    global _gateway_instance
    _gateway_instance = None
