"""Domain models for batch dispatch.

All models are frozen pydantic models: instructions, outcomes and batch
results never change once built, which is what lets the store hand the same
`BatchResult` to every duplicate submitter.

Downstream DTOs use the processor's camelCase wire names through aliases;
Python code always uses the snake_case field names.
"""

from __future__ import annotations

from decimal import Decimal
from enum import StrEnum
from typing import Annotated, Self

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator

_FROZEN = ConfigDict(frozen=True, extra="forbid", revalidate_instances="never")


class OutcomeStatus(StrEnum):
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class Instruction(BaseModel):
    """One money movement: move `amount` from source to destination."""
    
    model_config = _FROZEN
    
    id: Annotated[str, Field(min_length=1)]
    source_account: Annotated[str, Field(min_length=1)]
    destination_account: Annotated[str, Field(min_length=1)]
    amount: Annotated[Decimal, Field(gt=0)]


class Outcome(BaseModel):
    """Per-instruction result. `reason` is set iff the status is FAILED."""
    
    model_config = _FROZEN
    
    instruction_id: Annotated[str, Field(min_length=1)]
    status: OutcomeStatus
    reason: str | None = None
    
    @model_validator(mode="after")
    def _reason_iff_failed(self) -> Self:
        if self.status is OutcomeStatus.FAILED and not self.reason:
            raise ValueError("FAILED outcome requires a reason")
        if self.status is OutcomeStatus.SUCCESS and self.reason is not None:
            raise ValueError("SUCCESS outcome must not carry a reason")
        return self
    
    @classmethod
    def success(cls, instruction_id: str) -> Self:
        return cls(instruction_id=instruction_id, status=OutcomeStatus.SUCCESS)
    
    @classmethod
    def failed(cls, instruction_id: str, reason: str) -> Self:
        return cls(instruction_id=instruction_id, status=OutcomeStatus.FAILED, reason=reason)
    
    @property
    def is_success(self) -> bool:
        return self.status is OutcomeStatus.SUCCESS


class Batch(BaseModel):
    """Named, ordered group of instructions. `batch_id` is the idempotency key."""
    
    model_config = _FROZEN
    
    batch_id: Annotated[str, Field(min_length=1)]
    instructions: Annotated[tuple[Instruction, ...], Field(min_length=1)]
    
    def __len__(self) -> int:
        return len(self.instructions)


class BatchResult(BaseModel):
    """Outcomes of a batch, one per instruction, in submission order."""
    
    model_config = _FROZEN
    
    batch_id: Annotated[str, Field(min_length=1)]
    outcomes: tuple[Outcome, ...]
    
    @computed_field
    @property
    def success_count(self) -> int:
        return sum(1 for o in self.outcomes if o.is_success)
    
    @computed_field
    @property
    def failure_count(self) -> int:
        return len(self.outcomes) - self.success_count
    
    @property
    def all_ok(self) -> bool:
        return all(o.is_success for o in self.outcomes)
    
    def __len__(self) -> int:
        return len(self.outcomes)


# ─────────────────────────────────────────────────────────────────────────────
# Downstream wire DTOs
# ─────────────────────────────────────────────────────────────────────────────

_WIRE = ConfigDict(frozen=True, populate_by_name=True, extra="ignore", revalidate_instances="never")


class TransactionServiceRequest(BaseModel):
    """Body sent to the transaction processor for one instruction."""
    
    model_config = _WIRE
    
    transaction_id: str = Field(alias="transactionId")
    source_account: str = Field(alias="fromAccount")
    destination_account: str = Field(alias="toAccount")
    amount: Decimal
    
    @classmethod
    def from_instruction(cls, instruction: Instruction) -> Self:
        """Structural copy, values are passed through untouched."""
        return cls(
            transaction_id=instruction.id,
            source_account=instruction.source_account,
            destination_account=instruction.destination_account,
            amount=instruction.amount,
        )
    
    def to_wire(self) -> dict[str, object]:
        return self.model_dump(mode="json", by_alias=True)


class TransactionServiceResponse(BaseModel):
    """Processor reply. Only the success signal matters to the forwarder."""
    
    model_config = _WIRE
    
    transaction_id: str | None = Field(default=None, alias="transactionId")
    status: str | None = None
    message: str | None = None
