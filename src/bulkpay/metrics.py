"""Metrics sinks for dispatch outcomes.

The dispatcher emits one increment per outcome on `transactions.success` or
`transactions.failure`. Sinks are fire-and-forget; the dispatcher never lets
a sink failure reach the batch.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

logger = logging.getLogger("bulkpay.metrics")

TRANSACTIONS_SUCCESS = "transactions.success"
TRANSACTIONS_FAILURE = "transactions.failure"


@runtime_checkable
class MetricsSink(Protocol):
    """Counter backend."""
    
    def increment(self, metric: str, value: int = 1, tags: dict[str, str] | None = None) -> None: ...


@dataclass(slots=True)
class LogMetricsSink:
    """Writes each increment to the logger at DEBUG."""
    
    log: logging.Logger = field(default_factory=lambda: logger)
    
    def increment(self, metric: str, value: int = 1, tags: dict[str, str] | None = None) -> None:
        tag_str = f" {tags}" if tags else ""
        self.log.debug(f"METRIC {metric}+={value}{tag_str}")


class InMemoryMetricsSink:
    """Monotonic counters kept in process, safe for concurrent increments.
    
    Tags are ignored for counting; counters are keyed by metric name only.
    """
    
    __slots__ = ("_counts", "_lock")
    
    def __init__(self) -> None:
        self._counts: dict[str, int] = {}
        self._lock = threading.Lock()
    
    def increment(self, metric: str, value: int = 1, tags: dict[str, str] | None = None) -> None:
        if value < 0:
            raise ValueError("Counters are monotonic")
        with self._lock:
            self._counts[metric] = self._counts.get(metric, 0) + value
    
    def get(self, metric: str) -> int:
        with self._lock:
            return self._counts.get(metric, 0)
    
    def snapshot(self) -> dict[str, int]:
        with self._lock:
            return dict(self._counts)
