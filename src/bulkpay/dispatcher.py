"""Batch dispatcher: idempotent admission and per-instruction isolation.

    submit(batch)
      claim(batch_id) ── False ──> stored result (waits while in flight)
           │ True
           ▼
      for each instruction: forwarder.process -> Outcome (defects, non-Outcome returns -> FAILED)
           │
      save(batch_id, BatchResult) -> return   (save fails -> release(batch_id), re-raise)

A batch is forwarded at most once per process. Duplicate submitters never
touch the forwarder; if they arrive while the original is still running they
block until it saves, bounded by `duplicate_wait_timeout`, and then either get
the stored result or a `BatchInProgressError`.
"""

from __future__ import annotations

import contextvars
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING, Annotated

from pydantic import BaseModel, ConfigDict, Field

from bulkpay.errors import BatchInProgressError, BatchNotFoundError
from bulkpay.metrics import TRANSACTIONS_FAILURE, TRANSACTIONS_SUCCESS, LogMetricsSink, MetricsSink
from bulkpay.models import Batch, BatchResult, Instruction, Outcome
from bulkpay.observability import log_context
from bulkpay.store import BatchState, BatchStore, MemoryBatchStore

if TYPE_CHECKING:
    from bulkpay.forwarder import InstructionProcessor

logger = logging.getLogger("bulkpay.dispatcher")

UNEXPECTED_PREFIX = "Unexpected error: "


class DispatchConfig(BaseModel):
    """Dispatcher tuning.
    
    Attributes:
        concurrency: Workers forwarding instructions of one batch; 1 keeps the
            loop sequential. Outcome order is submission order either way.
        duplicate_wait_timeout: Seconds a duplicate submitter waits for the
            in-flight original; None waits indefinitely.
    """
    
    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)
    
    concurrency: Annotated[int, Field(ge=1, le=64)] = 1
    duplicate_wait_timeout: Annotated[float | None, Field(ge=0.0)] = 30.0


DEFAULT_DISPATCH_CONFIG = DispatchConfig()


class BatchDispatcher:
    """Runs batches through the forwarder exactly once per batch id.
    
    Args:
        forwarder: Turns an instruction into an Outcome (normally `Forwarder`)
        store: Claim registry and result map; owned by this dispatcher
        metrics: Counter sink for success/failure
        config: Concurrency and duplicate-wait settings
    
    Example:
        >>> dispatcher = BatchDispatcher(Forwarder(channel), MemoryBatchStore(), InMemoryMetricsSink())
        >>> result = dispatcher.submit(batch)
        >>> dispatcher.submit(batch) == result  # duplicate, nothing re-forwarded
        True
    """
    
    __slots__ = ("_forwarder", "_store", "_metrics", "_config")
    
    def __init__(
        self,
        forwarder: InstructionProcessor,
        store: BatchStore | None = None,
        metrics: MetricsSink | None = None,
        config: DispatchConfig | None = None,
    ) -> None:
        self._forwarder = forwarder
        self._store = store if store is not None else MemoryBatchStore()
        self._metrics = metrics if metrics is not None else LogMetricsSink()
        self._config = config or DEFAULT_DISPATCH_CONFIG
    
    @property
    def store(self) -> BatchStore:
        return self._store
    
    @property
    def metrics(self) -> MetricsSink:
        return self._metrics
    
    def submit(self, batch: Batch) -> BatchResult:
        batch_id = batch.batch_id
        with log_context(batch_id=batch_id):
            logger.info(f"STARTING batch {batch_id} ({len(batch)} instruction(s))")

            if not self._store.claim(batch_id):
                logger.warning(f"IDEMPOTENCY: batch {batch_id} already submitted, returning stored result")
                return self._existing(batch_id)

            try:
                result = BatchResult(batch_id=batch_id, outcomes=tuple(self._forward_all_guarded(batch)))
                self._store.save(batch_id, result)
            except BaseException:
                logger.exception(f"ABORTED batch {batch_id}, releasing claim")
                self._store.release(batch_id)
                raise

            logger.info(
                f"COMPLETED batch {batch_id}: {result.success_count} succeeded, {result.failure_count} failed"
            )
            return result
    
    def get_batch_results(self, batch_id: str) -> BatchResult:
        """Stored result of a batch.
        
        Raises:
            BatchInProgressError: claimed but not finished yet
            BatchNotFoundError: never submitted
        """
        logger.info(f"Retrieving results for batch {batch_id}")
        result = self._store.get(batch_id)
        if result is not None:
            return result
        if self._store.state(batch_id) is BatchState.IN_FLIGHT:
            raise BatchInProgressError(batch_id)
        raise BatchNotFoundError(batch_id)
    
    def _existing(self, batch_id: str) -> BatchResult:
        result = self._store.get(batch_id)
        if result is None:
            logger.info(f"Batch {batch_id} still in flight, waiting up to {self._config.duplicate_wait_timeout}s")
            result = self._store.wait(batch_id, self._config.duplicate_wait_timeout)
        if result is None:
            raise BatchInProgressError(batch_id)
        return result
    
    def _forward_all_guarded(self, batch: Batch) -> list[Outcome]:
        try:
            return self._forward_all(batch)
        except Exception as e:
            logger.exception(f"UNEXPECTED ERROR forwarding batch {batch.batch_id}: {e}")
            return [Outcome.failed(ins.id, f"{UNEXPECTED_PREFIX}{e}") for ins in batch.instructions]
    
    def _forward_all(self, batch: Batch) -> list[Outcome]:
        workers = min(self._config.concurrency, len(batch))
        if workers <= 1:
            return [self._forward_one(batch.batch_id, ins) for ins in batch.instructions]
        
        # One context copy per task: a Context cannot be entered by two threads at once
        contexts = [contextvars.copy_context() for _ in batch.instructions]

        def run(ctx: contextvars.Context, ins: Instruction) -> Outcome:
            return ctx.run(self._forward_one, batch.batch_id, ins)

        # map() yields in submission order regardless of completion order
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="bulkpay-forward-") as pool:
            return list(pool.map(run, contexts, batch.instructions))
    
    def _forward_one(self, batch_id: str, instruction: Instruction) -> Outcome:
        logger.info(f"PROCESSING transaction {instruction.id} for batch {batch_id}")
        try:
            outcome = self._checked(instruction, self._forwarder.process(instruction))
        except Exception as e:
            logger.exception(f"UNEXPECTED ERROR processing transaction {instruction.id} in batch {batch_id}: {e}")
            outcome = Outcome.failed(instruction.id, f"{UNEXPECTED_PREFIX}{e}")
        
        if outcome.is_success:
            self._emit(TRANSACTIONS_SUCCESS)
            logger.info(f"SUCCESS transaction {instruction.id}")
        else:
            self._emit(TRANSACTIONS_FAILURE)
            logger.info(f"FAILED transaction {instruction.id} - reason: {outcome.reason}")
        return outcome
    
    @staticmethod
    def _checked(instruction: Instruction, outcome: object) -> Outcome:
        if not isinstance(outcome, Outcome):
            raise TypeError(f"processor returned {type(outcome).__name__}, expected Outcome")
        if outcome.instruction_id != instruction.id:
            raise ValueError(f"processor returned outcome for {outcome.instruction_id!r}")
        return outcome
    
    def _emit(self, metric: str) -> None:
        try:
            self._metrics.increment(metric)
        except Exception as e:
            logger.warning(f"Metrics sink failed for {metric}: {e}")
