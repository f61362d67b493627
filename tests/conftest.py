"""Shared fixtures for rate limiter tests."""

import logging
from unittest.mock import AsyncMock, Mock

import pytest

from ratelimiter.core.cache import CacheGateway, InMemoryCacheGateway, reset_cache_gateway

# 2023-01-01T00:00:00Z
NOW = 1672531200.0


@pytest.fixture(autouse=True)
def reset_globals():
    """Reset the global gateway and package logger between tests."""
    root_logger = logging.getLogger()
    root_handlers = list(root_logger.handlers)
    root_level = root_logger.level
    reset_cache_gateway()
    yield
    reset_cache_gateway()
    root_logger.handlers[:] = root_handlers
    root_logger.setLevel(root_level)
    package_logger = logging.getLogger("ratelimiter")
    package_logger.handlers.clear()
    package_logger.propagate = True
    package_logger.setLevel(logging.NOTSET)


@pytest.fixture
def clock():
    """Fake clock pinned to NOW; set ``clock.return_value`` to move time."""
    return Mock(return_value=NOW)


@pytest.fixture
def gateway():
    """In-memory gateway standing in for the cache service."""
    return InMemoryCacheGateway()


@pytest.fixture
def failing_gateway():
    """Gateway double whose calls can be scripted per test."""
    return AsyncMock(spec=CacheGateway)
