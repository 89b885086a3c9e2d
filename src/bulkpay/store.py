"""Process-local batch store: claim registry plus result map.

Per batch id the store moves UNCLAIMED -> IN_FLIGHT (claim) -> COMPLETE
(save). Nothing leaves COMPLETE and no id is ever released, so a claimed
batch is never forwarded twice for the life of the process.
"""

from __future__ import annotations

import logging
import threading
from enum import StrEnum
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from bulkpay.models import BatchResult

logger = logging.getLogger("bulkpay.store")


class BatchState(StrEnum):
    UNCLAIMED = "UNCLAIMED"
    IN_FLIGHT = "IN_FLIGHT"
    COMPLETE = "COMPLETE"


@runtime_checkable
class BatchStore(Protocol):
    """Storage used by the dispatcher for admission and results."""
    
    def claim(self, batch_id: str) -> bool: ...
    def get(self, batch_id: str) -> BatchResult | None: ...
    def save(self, batch_id: str, result: BatchResult) -> None: ...
    def state(self, batch_id: str) -> BatchState: ...
    def wait(self, batch_id: str, timeout: float | None = None) -> BatchResult | None: ...
    def release(self, batch_id: str) -> None: ...


class MemoryBatchStore:
    """Thread-safe in-memory BatchStore.
    
    A single Condition guards both the claim set and the result map: `claim`
    is an insert-if-absent under the lock, and `save` wakes any duplicate
    submitters blocked in `wait`.
    
    Example:
        >>> store = MemoryBatchStore()
        >>> store.claim("B1")
        True
        >>> store.claim("B1")
        False
    """
    
    __slots__ = ("_claimed", "_results", "_cond")
    
    def __init__(self) -> None:
        self._claimed: set[str] = set()
        self._results: dict[str, BatchResult] = {}
        self._cond = threading.Condition(threading.Lock())
    
    def claim(self, batch_id: str) -> bool:
        """Mark `batch_id` claimed. True only for the call that inserted it."""
        with self._cond:
            if batch_id in self._claimed:
                return False
            self._claimed.add(batch_id)
            return True
    
    def get(self, batch_id: str) -> BatchResult | None:
        with self._cond:
            return self._results.get(batch_id)
    
    def save(self, batch_id: str, result: BatchResult) -> None:
        """Store the final result of a claimed batch. Write-once."""
        if result.batch_id != batch_id:
            raise ValueError(f"Result for {result.batch_id!r} cannot be saved under {batch_id!r}")
        with self._cond:
            if batch_id not in self._claimed:
                raise ValueError(f"Batch {batch_id!r} was never claimed")
            if batch_id in self._results:
                raise ValueError(f"Batch {batch_id!r} already has a stored result")
            self._results[batch_id] = result
            self._cond.notify_all()
    
    def state(self, batch_id: str) -> BatchState:
        with self._cond:
            if batch_id in self._results:
                return BatchState.COMPLETE
            return BatchState.IN_FLIGHT if batch_id in self._claimed else BatchState.UNCLAIMED
    
    def wait(self, batch_id: str, timeout: float | None = None) -> BatchResult | None:
        """Block until the batch has a stored result, its claim is released, or `timeout` elapses.
        
        Returns None immediately for ids that were never claimed.
        """
        with self._cond:
            if batch_id not in self._claimed:
                return None
            self._cond.wait_for(lambda: batch_id in self._results or batch_id not in self._claimed, timeout)
            return self._results.get(batch_id)
    
    def release(self, batch_id: str) -> None:
        """Drop an unfinished claim so the id can be submitted again.
        
        No-op once a result is stored. Wakes waiters, which then see no result.
        """
        with self._cond:
            if batch_id in self._results:
                return
            self._claimed.discard(batch_id)
            self._cond.notify_all()
    
    @property
    def size(self) -> int:
        with self._cond:
            return len(self._claimed)
    
    def stats(self) -> dict[str, int]:
        """Counts for monitoring."""
        with self._cond:
            complete = len(self._results)
            return {"claimed": len(self._claimed), "complete": complete, "in_flight": len(self._claimed) - complete}
