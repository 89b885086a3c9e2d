"""Per-instruction forwarding with bounded retry and fallback.

`Forwarder.process` is total: every downstream failure ends up as a FAILED
`Outcome`, never as a raised error. Instruction lifecycle:

    PENDING -> ATTEMPTING (x1..max_attempts) -> SUCCESS
    PENDING -> ATTEMPTING (x max_attempts)   -> FALLBACK_FAILED
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Callable, Protocol, runtime_checkable

from bulkpay.errors import trace_from_exc
from bulkpay.models import Instruction, Outcome, TransactionServiceRequest
from bulkpay.retry import RetryPolicy, execute_with_retry

if TYPE_CHECKING:
    from bulkpay.channel import DownstreamChannel
    from bulkpay.errors import ErrorTrace
    from bulkpay.models import TransactionServiceResponse

logger = logging.getLogger("bulkpay.forwarder")

EXHAUSTED_PREFIX = "All retry attempts failed: "
NON_RETRYABLE_PREFIX = "Non-retryable failure: "


@runtime_checkable
class InstructionProcessor(Protocol):
    """Anything that turns one instruction into an outcome."""
    
    def process(self, instruction: Instruction) -> Outcome: ...


class Forwarder:
    """Sends instructions to the downstream channel under a retry policy.
    
    Args:
        channel: Downstream transaction channel
        policy: Retry policy; defaults to 3 attempts 0.5 s apart
        sleep: Wait function between attempts, injectable for tests
    """
    
    __slots__ = ("_channel", "_policy", "_sleep")
    
    def __init__(
        self,
        channel: DownstreamChannel,
        policy: RetryPolicy | None = None,
        *,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._channel = channel
        self._policy = policy or RetryPolicy()
        self._sleep = sleep
    
    @property
    def policy(self) -> RetryPolicy:
        return self._policy
    
    def process(self, instruction: Instruction) -> Outcome:
        request = TransactionServiceRequest.from_instruction(instruction)
        logger.info(f"ATTEMPTING transaction {instruction.id}")
        
        def attempt() -> TransactionServiceResponse:
            return self._channel.send(request)
        
        try:
            result = execute_with_retry(attempt, self._policy, name=instruction.id, sleep=self._sleep)
        except Exception as e:
            # raised by the retry machinery itself (sleep, backoff), not by the channel
            logger.exception(f"Retry loop for transaction {instruction.id} aborted: {e}")
            return self._fallback(instruction, trace_from_exc(e))
        return result.match(ok=lambda _: self._succeeded(instruction), err=lambda t: self._fallback(instruction, t))
    
    @staticmethod
    def _succeeded(instruction: Instruction) -> Outcome:
        logger.info(f"SUCCESS transaction {instruction.id}")
        return Outcome.success(instruction.id)
    
    @staticmethod
    def _fallback(instruction: Instruction, trace: ErrorTrace) -> Outcome:
        prefix = EXHAUSTED_PREFIX if trace.recoverable else NON_RETRYABLE_PREFIX
        logger.warning(
            f"RETRY FALLBACK transaction {instruction.id} after {trace.attempts} attempt(s) "
            f"- final error: {trace.message} ({trace.code})"
        )
        return Outcome.failed(instruction.id, prefix + trace.message)
