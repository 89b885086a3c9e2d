"""Logging configuration and context binding."""

from .logging import (
    ContextFilter,
    JsonFormatter,
    TextFormatter,
    configure_from_settings,
    configure_logging,
    current_context,
    log_context,
)

__all__ = [
    "ContextFilter",
    "JsonFormatter",
    "TextFormatter",
    "configure_from_settings",
    "configure_logging",
    "current_context",
    "log_context",
]
