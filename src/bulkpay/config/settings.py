"""Environment-based configuration using pydantic-settings.

Example:
    >>> from bulkpay.config import get_settings
    >>> settings = get_settings()
    >>> settings.retry.max_attempts
    3
    
    # Or with environment variables:
    # BULKPAY_RETRY_MAX_ATTEMPTS=5
    # BULKPAY_DOWNSTREAM_BASE_URL=http://processor:8081
    # BULKPAY_AUTH_SECRET=change-me
"""

from __future__ import annotations

from functools import lru_cache
from typing import TYPE_CHECKING, Annotated, Literal

from pydantic import Field, NonNegativeFloat, NonNegativeInt, PositiveFloat, PositiveInt, SecretStr, computed_field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

if TYPE_CHECKING:
    from bulkpay.channel import HttpChannelConfig
    from bulkpay.dispatcher import DispatchConfig
    from bulkpay.retry import RetryPolicy


class RetrySettings(BaseSettings):
    """Downstream retry configuration."""
    
    model_config = SettingsConfigDict(env_prefix="BULKPAY_RETRY_", extra="ignore")
    
    max_attempts: Annotated[int, Field(ge=1, le=10)] = 3
    wait_duration: NonNegativeFloat = Field(default=0.5, description="Wait before the second attempt, seconds")
    multiplier: float = Field(default=1.0, ge=1.0, description="Interval growth per attempt; 1 = fixed")
    max_wait: PositiveFloat | None = Field(default=5.0, description="Cap on a single wait, seconds")
    randomization_factor: Annotated[float, Field(ge=0.0, lt=1.0)] = 0.0
    
    def to_policy(self) -> RetryPolicy:
        from bulkpay.retry import IntervalBackoff, RetryPolicy
        backoff = IntervalBackoff(
            wait_duration=self.wait_duration,
            multiplier=self.multiplier,
            max_wait=self.max_wait,
            randomization_factor=self.randomization_factor,
        )
        return RetryPolicy(max_attempts=self.max_attempts, backoff=backoff)


class DownstreamSettings(BaseSettings):
    """Transaction processor endpoint."""
    
    model_config = SettingsConfigDict(env_prefix="BULKPAY_DOWNSTREAM_", extra="ignore")
    
    base_url: str = "http://localhost:8081"
    path: str = "/api/v1/transactions"
    timeout: PositiveFloat = Field(default=10.0, description="Per-attempt timeout, seconds")
    verify_ssl: bool = True
    api_key: SecretStr | None = None
    
    def to_channel_config(self) -> HttpChannelConfig:
        from bulkpay.channel import HttpChannelConfig
        return HttpChannelConfig(
            base_url=self.base_url, path=self.path, timeout=self.timeout,
            verify_ssl=self.verify_ssl, api_key=self.api_key,
        )


class DispatchSettings(BaseSettings):
    """Batch dispatch behaviour."""
    
    model_config = SettingsConfigDict(env_prefix="BULKPAY_DISPATCH_", extra="ignore")
    
    concurrency: Annotated[int, Field(ge=1, le=64)] = 1
    duplicate_wait_timeout: NonNegativeFloat = 30.0
    
    def to_config(self) -> DispatchConfig:
        from bulkpay.dispatcher import DispatchConfig
        return DispatchConfig(concurrency=self.concurrency, duplicate_wait_timeout=self.duplicate_wait_timeout)


class AuthSettings(BaseSettings):
    """Bearer-token role gate."""
    
    model_config = SettingsConfigDict(env_prefix="BULKPAY_AUTH_", extra="ignore")
    
    enabled: bool = True
    secret: SecretStr = Field(default=SecretStr("change-me-in-production"), description="HS256 signing secret")
    issuer: str = ""
    token_ttl_seconds: PositiveInt = 7200
    leeway_seconds: NonNegativeInt = 0
    token_endpoint_enabled: bool = False


class LoggingSettings(BaseSettings):
    """Logging configuration."""
    
    model_config = SettingsConfigDict(env_prefix="BULKPAY_LOG_", extra="ignore")
    
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: Literal["json", "text"] = "text"
    
    @field_validator("level", mode="before")
    @classmethod
    def _upper_level(cls, v: str) -> str:
        return v.upper() if isinstance(v, str) else v


class ServerSettings(BaseSettings):
    """HTTP server bind address."""
    
    model_config = SettingsConfigDict(env_prefix="BULKPAY_SERVER_", extra="ignore")
    
    host: str = "127.0.0.1"
    port: Annotated[int, Field(ge=1, le=65535)] = 8080


class BulkPaySettings(BaseSettings):
    """Root settings.
    
    Loads from environment variables with the BULKPAY_ prefix and from a
    `.env` file. Each group also reads its own prefix, e.g.
    BULKPAY_RETRY_MAX_ATTEMPTS or BULKPAY_DISPATCH_CONCURRENCY.
    """
    
    model_config = SettingsConfigDict(
        env_prefix="BULKPAY_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        validate_default=True,
    )
    
    environment: Literal["development", "staging", "production"] = "development"
    
    retry: RetrySettings = Field(default_factory=RetrySettings)
    downstream: DownstreamSettings = Field(default_factory=DownstreamSettings)
    dispatch: DispatchSettings = Field(default_factory=DispatchSettings)
    auth: AuthSettings = Field(default_factory=AuthSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    server: ServerSettings = Field(default_factory=ServerSettings)
    
    @field_validator("environment", mode="before")
    @classmethod
    def _normalize_env(cls, v: str) -> str:
        return v.lower() if isinstance(v, str) else v
    
    @computed_field
    @property
    def is_production(self) -> bool:
        return self.environment == "production"


@lru_cache(maxsize=1)
def get_settings() -> BulkPaySettings:
    """Process-wide settings instance (cached)."""
    return BulkPaySettings()


def clear_settings_cache() -> None:
    """Drop the cached settings so the next get_settings() re-reads the environment."""
    get_settings.cache_clear()
