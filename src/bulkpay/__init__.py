"""Bulkpay - idempotent bulk transaction dispatch.

Accepts a batch of transfer instructions, forwards each one to a downstream
transaction processor under a retry policy, and records one outcome per
instruction. A batch id is processed at most once; resubmitting it returns
the stored result without contacting the processor again.

Quick Start:
    >>> from bulkpay import Batch, BatchDispatcher, Forwarder, HttpTransactionChannel, Instruction
    >>>
    >>> channel = HttpTransactionChannel()
    >>> dispatcher = BatchDispatcher(Forwarder(channel))
    >>> batch = Batch(batch_id="BATCH001", instructions=(
    ...     Instruction(id="TX001", source_account="ACC001", destination_account="ACC002", amount="100.00"),
    ... ))
    >>> dispatcher.submit(batch).success_count
    1

HTTP service:
    >>> from bulkpay.api import create_app
    >>> app = create_app()  # ASGI app, settings from BULKPAY_* env vars
"""

from bulkpay.channel import DownstreamChannel, HttpChannelConfig, HttpTransactionChannel
from bulkpay.dispatcher import BatchDispatcher, DispatchConfig
from bulkpay.errors import (
    BatchInProgressError,
    BatchNotFoundError,
    BulkPayError,
    ChannelError,
    Err,
    ErrorCode,
    ErrorTrace,
    Ok,
    Result,
)
from bulkpay.forwarder import EXHAUSTED_PREFIX, Forwarder, InstructionProcessor
from bulkpay.metrics import (
    TRANSACTIONS_FAILURE,
    TRANSACTIONS_SUCCESS,
    InMemoryMetricsSink,
    LogMetricsSink,
    MetricsSink,
)
from bulkpay.models import Batch, BatchResult, Instruction, Outcome, OutcomeStatus
from bulkpay.retry import IntervalBackoff, RetryPolicy
from bulkpay.store import BatchState, BatchStore, MemoryBatchStore

__version__ = "0.1.0"

__all__ = [
    "__version__",
    # Models
    "Batch",
    "BatchResult",
    "Instruction",
    "Outcome",
    "OutcomeStatus",
    # Core
    "BatchDispatcher",
    "DispatchConfig",
    "Forwarder",
    "InstructionProcessor",
    "EXHAUSTED_PREFIX",
    # Channel
    "DownstreamChannel",
    "HttpChannelConfig",
    "HttpTransactionChannel",
    # Store
    "BatchState",
    "BatchStore",
    "MemoryBatchStore",
    # Metrics
    "MetricsSink",
    "LogMetricsSink",
    "InMemoryMetricsSink",
    "TRANSACTIONS_SUCCESS",
    "TRANSACTIONS_FAILURE",
    # Retry
    "RetryPolicy",
    "IntervalBackoff",
    # Errors
    "ErrorCode",
    "ErrorTrace",
    "Result",
    "Ok",
    "Err",
    "BulkPayError",
    "BatchNotFoundError",
    "BatchInProgressError",
    "ChannelError",
]
