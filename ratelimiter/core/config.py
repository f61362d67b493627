from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ALGORITHMS = ("fixed_window", "sliding_window", "token_bucket")
LOG_FORMATS = ("text", "structured", "json")


class Settings(BaseSettings):
    """Rate limiter settings loaded from environment variables.

    All settings can be configured via environment variables or .env file.
    These only feed the factory in ``ratelimiter.limiters``; limiters built
    by hand take their parameters as constructor arguments.
    """

    # Logging settings
    log_level: str = "INFO"
    log_format: str = "text"  # text | structured | json

    # Redis settings (optional)
    redis_enabled: bool = False
    redis_url: str = "redis://localhost:6379/0"

    # Cache settings
    cache_name: str = "ratelimit"
    cache_default_ttl: int | None = None  # None = entries never expire

    # Rate limiting settings
    rate_limit_algorithm: str = "fixed_window"
    rate_limit_key_prefix: str = "ratelimit"
    rate_limit_max: int = 100
    rate_limit_window_seconds: int = 900
    rate_limit_interval_window_seconds: int | None = None  # None = window
    rate_limit_fail_closed: bool = (
        True  # If True, deny requests when the limiter reports an error
    )

    # Token bucket settings
    token_bucket_max_tokens: int = 100
    token_bucket_starting_tokens: int | None = None  # None = max tokens
    token_bucket_refill_rate: int = 10
    token_bucket_refill_interval_seconds: int = 60

    @field_validator(
        "rate_limit_max",
        "rate_limit_window_seconds",
        "token_bucket_max_tokens",
        "token_bucket_refill_rate",
        "token_bucket_refill_interval_seconds",
    )
    @classmethod
    def validate_rate_limit_positive(cls, v: int) -> int:
        """Validate rate limit values are positive."""
        if v < 1:
            raise ValueError("Rate limit values must be at least 1")
        return v

    @field_validator(
        "rate_limit_interval_window_seconds",
        "cache_default_ttl",
    )
    @classmethod
    def validate_optional_positive(cls, v: int | None) -> int | None:
        """Validate optional values are positive when set."""
        if v is not None and v < 1:
            raise ValueError("value must be at least 1 when set")
        return v

    @field_validator("token_bucket_starting_tokens")
    @classmethod
    def validate_starting_tokens(cls, v: int | None) -> int | None:
        if v is not None and v < 0:
            raise ValueError("token_bucket_starting_tokens must not be negative")
        return v

    @field_validator("rate_limit_algorithm")
    @classmethod
    def validate_algorithm(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in ALGORITHMS:
            raise ValueError(
                f"rate_limit_algorithm must be one of {', '.join(ALGORITHMS)}"
            )
        return v

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in LOG_FORMATS:
            raise ValueError(f"log_format must be one of {', '.join(LOG_FORMATS)}")
        return v

    @field_validator("cache_name")
    @classmethod
    def validate_cache_name(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("cache_name must not be empty")
        return v

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


# Global settings instance
settings = Settings()
