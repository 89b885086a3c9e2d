"""Error handling for bulkpay.

- ErrorCode: failure classification used by retry and the HTTP boundary
- Result/Ok/Err: typed success/failure values
- ErrorTrace: Err payload describing a failed downstream attempt
- BulkPayError and subclasses: conditions surfaced to callers
"""

from .codes import ErrorCode, classify_exception
from .exceptions import AuthError, BatchInProgressError, BatchNotFoundError, BulkPayError, ChannelError
from .result import Err, Ok, Result
from .types import ErrorTrace, trace_from_exc

__all__ = [
    "ErrorCode", "classify_exception",
    "Result", "Ok", "Err",
    "ErrorTrace", "trace_from_exc",
    "BulkPayError", "BatchNotFoundError", "BatchInProgressError", "ChannelError", "AuthError",
]
