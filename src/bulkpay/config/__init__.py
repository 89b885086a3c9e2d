"""Configuration management using pydantic-settings."""

from .settings import (
    AuthSettings,
    BulkPaySettings,
    DispatchSettings,
    DownstreamSettings,
    LoggingSettings,
    RetrySettings,
    ServerSettings,
    clear_settings_cache,
    get_settings,
)

__all__ = [
    "AuthSettings",
    "BulkPaySettings",
    "DispatchSettings",
    "DownstreamSettings",
    "LoggingSettings",
    "RetrySettings",
    "ServerSettings",
    "clear_settings_cache",
    "get_settings",
]
