"""Shared fixtures: zero-delay retry policy, batch builders, a wired dispatcher."""

from __future__ import annotations

from decimal import Decimal
from typing import Callable

import pytest

from bulkpay.config import clear_settings_cache
from bulkpay.dispatcher import BatchDispatcher, DispatchConfig
from bulkpay.forwarder import Forwarder
from bulkpay.metrics import InMemoryMetricsSink
from bulkpay.models import Batch, Instruction
from bulkpay.retry import IntervalBackoff, RetryPolicy
from bulkpay.store import MemoryBatchStore
from bulkpay.testing import MockChannel


def make_instruction(tx_id: str, amount: str = "100.00") -> Instruction:
    return Instruction(id=tx_id, source_account="ACC001", destination_account="ACC002", amount=Decimal(amount))


def make_batch(batch_id: str, *tx_ids: str) -> Batch:
    return Batch(batch_id=batch_id, instructions=tuple(make_instruction(t) for t in tx_ids))


@pytest.fixture
def fast_policy() -> RetryPolicy:
    return RetryPolicy(max_attempts=3, backoff=IntervalBackoff(0))


@pytest.fixture
def batch001() -> Batch:
    return Batch(
        batch_id="BATCH001",
        instructions=(make_instruction("TX001", "100.50"), make_instruction("TX002", "200.00")),
    )


@pytest.fixture
def channel() -> MockChannel:
    return MockChannel()


@pytest.fixture
def metrics() -> InMemoryMetricsSink:
    return InMemoryMetricsSink()


@pytest.fixture
def make_dispatcher(
    fast_policy: RetryPolicy, metrics: InMemoryMetricsSink,
) -> Callable[..., BatchDispatcher]:
    def build(channel: MockChannel, **config: object) -> BatchDispatcher:
        return BatchDispatcher(
            Forwarder(channel, fast_policy),
            MemoryBatchStore(),
            metrics,
            DispatchConfig(**config),
        )
    return build


@pytest.fixture(autouse=True)
def _fresh_settings():
    clear_settings_cache()
    yield
    clear_settings_cache()
