"""Exception hierarchy for conditions that do leave the core.

Downstream failures never appear here as raised errors past the forwarder;
`ChannelError` is raised by channels and absorbed by the retry loop.
"""

from __future__ import annotations

from typing import Self

from .codes import ErrorCode


class BulkPayError(Exception):
    """Base error carrying a machine-readable code."""
    
    code: ErrorCode = ErrorCode.UNKNOWN
    
    def __init__(self, message: str, *, code: ErrorCode | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class BatchNotFoundError(BulkPayError):
    """No stored result exists for the batch id."""
    
    code = ErrorCode.NOT_FOUND
    
    def __init__(self, batch_id: str, message: str | None = None) -> None:
        super().__init__(message or f"Batch not found: {batch_id}")
        self.batch_id = batch_id


class BatchInProgressError(BatchNotFoundError):
    """The batch is claimed but its result is not saved yet."""
    
    code = ErrorCode.IN_PROGRESS
    
    def __init__(self, batch_id: str) -> None:
        super().__init__(batch_id, f"Batch still processing: {batch_id}")


class ChannelError(BulkPayError):
    """A single downstream attempt failed."""
    
    def __init__(self, message: str, code: ErrorCode = ErrorCode.UNKNOWN, *, status_code: int | None = None) -> None:
        super().__init__(message, code=code)
        self.status_code = status_code
    
    @classmethod
    def from_status(cls, status_code: int, body: str = "") -> Self:
        """Classify a non-2xx downstream reply."""
        if status_code == 429:
            code = ErrorCode.RATE_LIMITED
        elif status_code in (408, 504):
            code = ErrorCode.TIMEOUT
        elif status_code >= 500:
            code = ErrorCode.EXTERNAL_SERVICE_ERROR
        else:
            code = ErrorCode.DOWNSTREAM_REJECTED
        detail = f": {body[:200]}" if body else ""
        return cls(f"Downstream returned HTTP {status_code}{detail}", code, status_code=status_code)


class AuthError(BulkPayError):
    """Missing, invalid or insufficient credentials."""
    
    code = ErrorCode.UNAUTHENTICATED
