"""Request/response bodies of the HTTP surface.

Wire names are camelCase (`batchId`, `fromAccount`, ...). Validation here is
the boundary check the core relies on: non-blank ids, at least one
instruction, amounts of at least 0.01.
"""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal
from typing import Annotated, Self

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from bulkpay.models import Batch, BatchResult, Instruction

_REQUEST = ConfigDict(frozen=True, populate_by_name=True, str_strip_whitespace=True, extra="ignore")
_RESPONSE = ConfigDict(frozen=True, populate_by_name=True)

NonBlank = Annotated[str, Field(min_length=1)]


class TransactionRequest(BaseModel):
    model_config = _REQUEST
    
    transaction_id: NonBlank = Field(alias="transactionId")
    source_account: NonBlank = Field(alias="fromAccount")
    destination_account: NonBlank = Field(alias="toAccount")
    amount: Annotated[Decimal, Field(ge=Decimal("0.01"))]
    
    def to_instruction(self) -> Instruction:
        return Instruction(
            id=self.transaction_id,
            source_account=self.source_account,
            destination_account=self.destination_account,
            amount=self.amount,
        )


class BulkTransactionRequest(BaseModel):
    """Body of `POST /api/v1/bulk-transactions`."""
    
    model_config = _REQUEST
    
    batch_id: NonBlank = Field(alias="batchId")
    transactions: Annotated[list[TransactionRequest], Field(min_length=1)]
    
    def to_batch(self) -> Batch:
        return Batch(batch_id=self.batch_id, instructions=tuple(t.to_instruction() for t in self.transactions))


class TransactionResultBody(BaseModel):
    model_config = _RESPONSE
    
    transaction_id: str = Field(serialization_alias="transactionId")
    status: str
    reason: str | None = None


class BulkTransactionResponse(BaseModel):
    """Body returned by submit and lookup."""
    
    model_config = _RESPONSE
    
    batch_id: str = Field(serialization_alias="batchId")
    results: list[TransactionResultBody]
    
    @classmethod
    def from_result(cls, result: BatchResult) -> Self:
        return cls(
            batch_id=result.batch_id,
            results=[
                TransactionResultBody(transaction_id=o.instruction_id, status=o.status.value, reason=o.reason)
                for o in result.outcomes
            ],
        )
    
    def to_json(self) -> dict[str, object]:
        return self.model_dump(mode="json", by_alias=True)


class TokenRequest(BaseModel):
    model_config = _REQUEST
    
    username: NonBlank
    roles: Annotated[list[NonBlank], Field(min_length=1)]


class ErrorBody(BaseModel):
    """Uniform error payload: `{timestamp, status, error, message}`."""
    
    model_config = _RESPONSE
    
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    status: int
    error: str
    message: str
    
    def to_json(self) -> dict[str, object]:
        return self.model_dump(mode="json")


def validation_messages(exc: ValidationError) -> dict[str, str]:
    """Flatten pydantic errors to `{field.path: message}`."""
    return {".".join(str(p) for p in err["loc"]) or "body": err["msg"] for err in exc.errors()}
