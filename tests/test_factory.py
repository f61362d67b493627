"""Tests for create_rate_limiter."""

from unittest.mock import patch

import pytest

from ratelimiter.core.cache import InMemoryCacheGateway, get_cache_gateway
from ratelimiter.core.config import Settings
from ratelimiter.limiters import (
    FixedWindowLimiter,
    SlidingWindowLimiter,
    TokenBucketLimiter,
    create_rate_limiter,
)


@pytest.fixture
def mock_settings():
    """Patch the settings the factory reads with known values."""
    test_settings = Settings(
        _env_file=None,
        cache_name="test-cache",
        rate_limit_key_prefix="api",
        rate_limit_max=5,
        rate_limit_window_seconds=60,
        rate_limit_interval_window_seconds=10,
        token_bucket_max_tokens=20,
        token_bucket_starting_tokens=4,
        token_bucket_refill_rate=2,
        token_bucket_refill_interval_seconds=30,
    )
    with patch("ratelimiter.limiters.settings", test_settings):
        yield test_settings


class TestCreateRateLimiter:
    """Tests for building limiters from settings."""

    def test_fixed_window(self, mock_settings, gateway):
        limiter = create_rate_limiter("fixed_window", cache=gateway)

        assert isinstance(limiter, FixedWindowLimiter)
        assert limiter.cache is gateway
        assert limiter.cache_name == "test-cache"
        assert limiter.key_prefix == "api"
        assert limiter.max_requests == 5
        assert limiter.window == 60

    def test_sliding_window(self, mock_settings, gateway):
        limiter = create_rate_limiter("sliding_window", cache=gateway)

        assert isinstance(limiter, SlidingWindowLimiter)
        assert limiter.max_requests == 5
        assert limiter.window == 60
        assert limiter.interval_window == 10

    def test_token_bucket(self, mock_settings, gateway):
        limiter = create_rate_limiter("token_bucket", cache=gateway)

        assert isinstance(limiter, TokenBucketLimiter)
        assert limiter.max_tokens == 20
        assert limiter.starting_tokens == 4
        assert limiter.refill_rate == 2
        assert limiter.refill_interval == 30

    def test_algorithm_from_settings(self, mock_settings, gateway):
        mock_settings.rate_limit_algorithm = "sliding_window"
        assert isinstance(create_rate_limiter(cache=gateway), SlidingWindowLimiter)

    def test_algorithm_name_is_normalized(self, mock_settings, gateway):
        limiter = create_rate_limiter(" Token_Bucket ", cache=gateway)
        assert isinstance(limiter, TokenBucketLimiter)

    def test_overrides_take_precedence(self, mock_settings, gateway):
        limiter = create_rate_limiter(
            "fixed_window", cache=gateway, cache_name="other", max_requests=50
        )
        assert limiter.cache_name == "other"
        assert limiter.max_requests == 50
        assert limiter.window == 60

    def test_defaults_to_global_gateway(self, mock_settings):
        limiter = create_rate_limiter("fixed_window")
        assert limiter.cache is get_cache_gateway()
        assert isinstance(limiter.cache, InMemoryCacheGateway)

    def test_unknown_algorithm(self, mock_settings, gateway):
        with pytest.raises(ValueError, match="Unknown rate limit algorithm"):
            create_rate_limiter("leaky_bucket", cache=gateway)
