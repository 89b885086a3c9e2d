"""Error trace carried on the Err side of forwarding results."""

from __future__ import annotations

from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field

from .codes import ErrorCode, classify_exception


class ErrorTrace(BaseModel):
    """Description of a failed downstream attempt.
    
    `message` is what ends up in the fallback outcome's reason, so it is kept
    short and human-readable.
    """
    
    model_config = ConfigDict(frozen=True, extra="forbid", revalidate_instances="never")
    
    message: Annotated[str, Field(min_length=1)]
    code: ErrorCode = ErrorCode.UNKNOWN
    attempts: Annotated[int, Field(ge=0)] = 0
    recoverable: bool = True
    
    def with_attempts(self, attempts: int) -> ErrorTrace:
        """Return a copy stamped with the number of attempts made."""
        return self.model_copy(update={"attempts": attempts})


def trace_from_exc(exc: BaseException) -> ErrorTrace:
    """Create an ErrorTrace from an exception, classifying it on the way."""
    return ErrorTrace.model_construct(
        message=str(exc) or type(exc).__name__,
        code=classify_exception(exc),
        attempts=0,
        recoverable=True,
    )
