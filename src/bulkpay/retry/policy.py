"""Retry policy for downstream forwarding.

The policy is a frozen value object; `execute_with_retry` runs it in a plain
loop and returns a `Result` instead of raising, so exhaustion is an ordinary
`Err(ErrorTrace)` the forwarder turns into a fallback outcome.
"""

from __future__ import annotations

import logging
import time
from typing import Annotated, Callable, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from bulkpay.errors import Err, ErrorCode, ErrorTrace, Ok, Result, trace_from_exc

from .backoff import Backoff, IntervalBackoff

logger = logging.getLogger("bulkpay.retry")

T = TypeVar("T")


class RetryPolicy(BaseModel):
    """How many times to attempt a downstream call and how long to wait between.
    
    Attributes:
        max_attempts: Total attempts including the first (1 = no retry)
        backoff: Wait schedule between attempts
        retryable_codes: None retries every failure; a set narrows retries to
            those codes and stops the loop on anything else
        on_retry: Optional hook called as (attempt, code, delay) before each
            wait; a hook that raises is logged and ignored
    
    Example:
        >>> policy = RetryPolicy(max_attempts=3, backoff=IntervalBackoff(0.5))
        >>> result = execute_with_retry(lambda: channel.send(req), policy, name="TX001")
    """
    
    model_config = ConfigDict(
        frozen=True,
        arbitrary_types_allowed=True,
        validate_default=True,
        extra="forbid",
        revalidate_instances="never",
    )
    
    max_attempts: Annotated[int, Field(ge=1, le=10)] = 3
    backoff: Backoff = Field(default_factory=IntervalBackoff, repr=False)
    retryable_codes: frozenset[ErrorCode] | None = None
    on_retry: Callable[[int, ErrorCode, float], None] | None = Field(default=None, exclude=True, repr=False)
    
    @field_validator("retryable_codes", mode="before")
    @classmethod
    def _normalize_codes(cls, v: object) -> frozenset[ErrorCode] | None:
        """Accept code names as strings."""
        if v is None:
            return None
        return frozenset(ErrorCode(c) if isinstance(c, str) else c for c in v)  # type: ignore[union-attr]
    
    @field_serializer("retryable_codes")
    def _serialize_codes(self, v: frozenset[ErrorCode] | None) -> list[str] | None:
        return None if v is None else sorted(c.value for c in v)
    
    def should_retry(self, code: ErrorCode, attempts_made: int) -> bool:
        """Whether another attempt is allowed after `attempts_made` failures."""
        if attempts_made >= self.max_attempts:
            return False
        return self.retryable_codes is None or code in self.retryable_codes
    
    def get_delay(self, attempt: int) -> float:
        return max(0.0, self.backoff.delay(attempt))
    
    def __hash__(self) -> int:
        codes = None if self.retryable_codes is None else tuple(sorted(c.value for c in self.retryable_codes))
        return hash((self.max_attempts, codes))


def _notify(policy: RetryPolicy, name: str, attempt: int, code: ErrorCode, delay: float) -> None:
    if policy.on_retry is None:
        return
    try:
        policy.on_retry(attempt, code, delay)
    except Exception as e:
        logger.warning(f"[{name}] on_retry hook failed: {e}")


def execute_with_retry(
    operation: Callable[[], T],
    policy: RetryPolicy,
    *,
    name: str,
    sleep: Callable[[float], None] = time.sleep,
) -> Result[T, ErrorTrace]:
    """Run `operation` until it returns or the policy gives up.
    
    Any exception raised by `operation` counts as a failed attempt. The
    returned Err carries the last failure, stamped with the attempt count;
    `recoverable` is False when the loop stopped on a non-retryable code
    rather than by exhausting `max_attempts`.
    
    Args:
        operation: Zero-argument callable performing one attempt
        policy: Retry policy in force
        name: Label for log lines (e.g. the instruction id)
        sleep: Wait function, injectable for tests
    """
    attempt = 0
    while True:
        attempt += 1
        logger.debug(f"[{name}] attempt {attempt}/{policy.max_attempts}")
        try:
            return Ok(operation())
        except Exception as e:
            last = trace_from_exc(e).with_attempts(attempt)
        
        logger.info(f"[{name}] attempt {attempt}/{policy.max_attempts} failed: {last.message} ({last.code})")
        
        if not policy.should_retry(last.code, attempt):
            exhausted = attempt >= policy.max_attempts
            return Err(last if exhausted else last.model_copy(update={"recoverable": False}))
        
        delay = policy.get_delay(attempt - 1)
        _notify(policy, name, attempt, last.code, delay)
        if delay > 0:
            sleep(delay)
