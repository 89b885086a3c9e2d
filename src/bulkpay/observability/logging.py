"""Logging setup for bulkpay.

Modules log through plain `logging.getLogger("bulkpay.<area>")`. This module
installs one handler on the `bulkpay` logger with either human-readable text
or JSON Lines (rendered with orjson), and lets callers bind context such as
the batch id to every record emitted inside a scope.

Quick Start:
    >>> from bulkpay.observability import configure_logging, log_context
    >>> configure_logging(format="json", level="INFO")
    >>> with log_context(batch_id="BATCH001"):
    ...     logging.getLogger("bulkpay.dispatcher").info("processing")
    # => {"timestamp": "...", "level": "INFO", "logger": "bulkpay.dispatcher", "event": "processing", "batch_id": "BATCH001"}
"""

from __future__ import annotations

import logging
import sys
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import TYPE_CHECKING, TextIO

import orjson

if TYPE_CHECKING:
    from bulkpay.config import LoggingSettings

ROOT_LOGGER = "bulkpay"

_log_context: ContextVar[dict[str, object]] = ContextVar("bulkpay_log_context", default={})

# Marks the handler installed by configure_logging so reconfiguring replaces it
_HANDLER_FLAG = "_bulkpay_handler"


class log_context:  # noqa: N801 - used like a function
    """Bind key/value context to every record logged inside the block."""
    
    __slots__ = ("_ctx", "_token")
    
    def __init__(self, **kw: object) -> None:
        self._ctx = kw
        self._token = None
    
    def __enter__(self) -> log_context:
        self._token = _log_context.set({**_log_context.get(), **self._ctx})
        return self
    
    def __exit__(self, *_: object) -> None:
        if self._token is not None:
            _log_context.reset(self._token)


def current_context() -> dict[str, object]:
    return dict(_log_context.get())


class ContextFilter(logging.Filter):
    """Copies the bound context onto each record as `ctx`."""
    
    def filter(self, record: logging.LogRecord) -> bool:
        record.ctx = _log_context.get()
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per line."""
    
    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, object] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "event": record.getMessage(),
            **getattr(record, "ctx", {}),
        }
        if record.exc_info:
            entry["exc_info"] = self.formatException(record.exc_info)
        return orjson.dumps(entry, option=orjson.OPT_NON_STR_KEYS, default=str).decode()


class TextFormatter(logging.Formatter):
    """`time [level] logger: message key=value ...`"""
    
    def __init__(self) -> None:
        super().__init__("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    
    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        ctx = getattr(record, "ctx", None)
        if not ctx:
            return line
        head, sep, tail = line.partition("\n")
        return f"{head} " + " ".join(f"{k}={v}" for k, v in sorted(ctx.items())) + sep + tail


def configure_logging(
    format: str = "text",  # noqa: A002 - mirrors LoggingSettings.format
    level: str = "INFO",
    *,
    output: TextIO | None = None,
) -> logging.Handler:
    """Install the bulkpay handler. Format: "text" (human) or "json" (machine).
    
    Safe to call repeatedly; the previous bulkpay handler is replaced.
    """
    match format:
        case "text": formatter: logging.Formatter = TextFormatter()
        case "json": formatter = JsonFormatter()
        case _: raise ValueError(f"Unknown format: {format}. Use 'text' or 'json'")
    
    root = logging.getLogger(ROOT_LOGGER)
    for existing in [h for h in root.handlers if getattr(h, _HANDLER_FLAG, False)]:
        root.removeHandler(existing)
    
    handler = logging.StreamHandler(output or sys.stderr)
    handler.setFormatter(formatter)
    handler.addFilter(ContextFilter())
    setattr(handler, _HANDLER_FLAG, True)
    
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.propagate = False
    return handler


def configure_from_settings(settings: LoggingSettings) -> logging.Handler:
    return configure_logging(settings.format, settings.level)
