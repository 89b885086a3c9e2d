"""Tests for Forwarder: retry absorption and fallback outcomes."""

from __future__ import annotations

from bulkpay.errors import ErrorCode
from bulkpay.forwarder import EXHAUSTED_PREFIX, NON_RETRYABLE_PREFIX, Forwarder, InstructionProcessor
from bulkpay.models import OutcomeStatus
from bulkpay.retry import IntervalBackoff, RetryPolicy
from bulkpay.testing import MockChannel

from conftest import make_instruction


def test_forwarder_is_instruction_processor(fast_policy: RetryPolicy) -> None:
    assert isinstance(Forwarder(MockChannel(), fast_policy), InstructionProcessor)


def test_success_on_first_attempt(fast_policy: RetryPolicy) -> None:
    channel = MockChannel()
    outcome = Forwarder(channel, fast_policy).process(make_instruction("TX001", "100.50"))
    
    assert outcome.status is OutcomeStatus.SUCCESS
    assert outcome.instruction_id == "TX001"
    assert outcome.reason is None
    assert channel.call_count == 1
    channel.assert_called_with(transaction_id="TX001", source_account="ACC001", destination_account="ACC002")


def test_transient_failures_recover(fast_policy: RetryPolicy) -> None:
    channel = MockChannel(fail_times=2)
    outcome = Forwarder(channel, fast_policy).process(make_instruction("TX001"))
    
    assert outcome.is_success
    assert channel.call_count == 3


def test_exhaustion_yields_fallback_reason(fast_policy: RetryPolicy) -> None:
    channel = MockChannel(fail_for={"TX002": None})
    outcome = Forwarder(channel, fast_policy).process(make_instruction("TX002"))
    
    assert outcome.status is OutcomeStatus.FAILED
    assert outcome.reason == f"{EXHAUSTED_PREFIX}Mock failure for TX002"
    assert channel.calls_for("TX002") == 3


def test_non_retryable_failure_stops_early() -> None:
    policy = RetryPolicy(max_attempts=3, backoff=IntervalBackoff(0), retryable_codes=["NETWORK_ERROR"])
    channel = MockChannel(fail_for={"TX1": None}, error_code=ErrorCode.DOWNSTREAM_REJECTED)
    outcome = Forwarder(channel, policy).process(make_instruction("TX1"))
    
    assert not outcome.is_success
    assert outcome.reason is not None and outcome.reason.startswith(NON_RETRYABLE_PREFIX)
    assert channel.call_count == 1


def test_forwarder_never_raises_on_channel_defect(fast_policy: RetryPolicy) -> None:
    channel = MockChannel(raises=RuntimeError("socket exploded"))
    outcome = Forwarder(channel, fast_policy).process(make_instruction("TX1"))
    
    assert outcome.status is OutcomeStatus.FAILED
    assert outcome.reason == f"{EXHAUSTED_PREFIX}socket exploded"
    assert channel.call_count == 3


def test_default_policy_is_three_attempts() -> None:
    assert Forwarder(MockChannel()).policy.max_attempts == 3


# ═════════════════════════════════════════════════════════════════════════════
# Totality
# ═════════════════════════════════════════════════════════════════════════════


def test_default_policy_retries_validation_failures() -> None:
    channel = MockChannel(raises=ValueError("processor validation failed"))
    outcome = Forwarder(channel, RetryPolicy(backoff=IntervalBackoff(0))).process(make_instruction("TX1"))
    
    assert outcome.status is OutcomeStatus.FAILED
    assert outcome.reason == f"{EXHAUSTED_PREFIX}processor validation failed"
    assert channel.call_count == 3


def test_failing_on_retry_hook_still_yields_outcome() -> None:
    def hook(attempt: int, code: ErrorCode, delay: float) -> None:
        raise RuntimeError("hook broke")
    
    channel = MockChannel(fail_times=5)
    policy = RetryPolicy(max_attempts=3, backoff=IntervalBackoff(0), on_retry=hook)
    outcome = Forwarder(channel, policy).process(make_instruction("TX1"))
    
    assert outcome.status is OutcomeStatus.FAILED
    assert outcome.reason is not None and outcome.reason.startswith(EXHAUSTED_PREFIX)
    assert channel.call_count == 3


def test_failing_sleep_still_yields_outcome() -> None:
    def sleep(delay: float) -> None:
        raise RuntimeError("clock unavailable")
    
    channel = MockChannel(fail_times=5)
    forwarder = Forwarder(channel, RetryPolicy(backoff=IntervalBackoff(0.5)), sleep=sleep)
    outcome = forwarder.process(make_instruction("TX1"))
    
    assert outcome.status is OutcomeStatus.FAILED
    assert outcome.instruction_id == "TX1"
    assert outcome.reason is not None and "clock unavailable" in outcome.reason
    assert channel.call_count == 1
