"""Retry policy and wait schedule for downstream calls.

Example:
    >>> from bulkpay.retry import RetryPolicy, IntervalBackoff, execute_with_retry
    >>> policy = RetryPolicy(max_attempts=3, backoff=IntervalBackoff(0.5))
    >>> result = execute_with_retry(lambda: channel.send(request), policy, name="TX001")
    >>> result.is_ok()
"""

from .backoff import Backoff, IntervalBackoff
from .policy import RetryPolicy, execute_with_retry

__all__ = [
    "Backoff",
    "IntervalBackoff",
    "RetryPolicy",
    "execute_with_retry",
]
