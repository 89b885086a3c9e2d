"""HTTP surface: Starlette app, request schemas and the token role gate."""

from .app import BulkTransactionServer, create_app, serve
from .auth import Claims, HmacJwtCodec, Role, bearer_token, require_roles
from .schemas import BulkTransactionRequest, BulkTransactionResponse, TransactionRequest

__all__ = [
    "BulkTransactionServer",
    "create_app",
    "serve",
    "Claims",
    "HmacJwtCodec",
    "Role",
    "bearer_token",
    "require_roles",
    "BulkTransactionRequest",
    "BulkTransactionResponse",
    "TransactionRequest",
]
