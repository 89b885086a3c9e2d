"""HTTP surface for batch submission and lookup.

Endpoints:
    POST /api/v1/bulk-transactions            → submit a batch (USER, ADMIN)
    GET  /api/v1/bulk-transactions/{batchId}  → stored result (ADMIN)
    GET  /health                              → liveness and counters
    POST /api/auth/token[/user|/admin]        → issue tokens (only when enabled)

Handlers run the synchronous dispatcher in a worker thread.

Example:
    >>> server = BulkTransactionServer(dispatcher, codec=HmacJwtCodec("secret"))
    >>> server.run(host="0.0.0.0", port=8080)
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Callable

import orjson
from pydantic import ValidationError
from starlette.applications import Starlette
from starlette.responses import JSONResponse
from starlette.routing import Route

from bulkpay.channel import HttpTransactionChannel
from bulkpay.errors import AuthError, BatchInProgressError, BatchNotFoundError, BulkPayError, ErrorCode

from .auth import ANONYMOUS_ADMIN, LOOKUP_ROLES, SUBMIT_ROLES, Claims, HmacJwtCodec, Role, bearer_token, require_roles
from .schemas import BulkTransactionRequest, BulkTransactionResponse, ErrorBody, TokenRequest, validation_messages

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from starlette.requests import Request

    from bulkpay.config import BulkPaySettings
    from bulkpay.dispatcher import BatchDispatcher

logger = logging.getLogger("bulkpay.api")


def _error(status: int, error: str, message: str) -> JSONResponse:
    return JSONResponse(ErrorBody(status=status, error=error, message=message).to_json(), status_code=status)


def _auth_error(exc: AuthError) -> JSONResponse:
    if exc.code is ErrorCode.PERMISSION_DENIED:
        logger.warning(f"Access denied: {exc.message}")
        return _error(403, "Access Denied", "You do not have permission to access this resource")
    return _error(401, "Unauthorized", exc.message)


async def _read_json(request: Request) -> object:
    body = await request.body()
    try:
        return orjson.loads(body)
    except orjson.JSONDecodeError as e:
        raise ValueError("Malformed JSON request body") from e


class BulkTransactionServer:
    """Starlette app wrapping a BatchDispatcher.
    
    Args:
        dispatcher: Core dispatch engine
        codec: Token codec; required unless `auth_enabled` is False
        auth_enabled: When False every caller is treated as ADMIN
        token_endpoint_enabled: Mount the token issuing routes
        on_shutdown: Called once when the app shuts down (e.g. close the channel)
    """
    
    __slots__ = ("_dispatcher", "_codec", "_auth_enabled", "_token_endpoint_enabled", "_on_shutdown", "_app")
    
    def __init__(
        self,
        dispatcher: BatchDispatcher,
        *,
        codec: HmacJwtCodec | None = None,
        auth_enabled: bool = True,
        token_endpoint_enabled: bool = False,
        on_shutdown: Callable[[], None] | None = None,
    ) -> None:
        if (auth_enabled or token_endpoint_enabled) and codec is None:
            raise ValueError("A token codec is required when auth or the token endpoint is enabled")
        self._dispatcher = dispatcher
        self._codec = codec
        self._auth_enabled = auth_enabled
        self._token_endpoint_enabled = token_endpoint_enabled
        self._on_shutdown = on_shutdown
        self._app = self._create_app()
    
    @property
    def app(self) -> Starlette:
        """ASGI app for embedding or testing."""
        return self._app
    
    def _authorize(self, request: Request, allowed: frozenset[Role]) -> Claims:
        if not self._auth_enabled:
            return ANONYMOUS_ADMIN
        assert self._codec is not None
        claims = self._codec.verify(bearer_token(request.headers.get("authorization")))
        return require_roles(claims, allowed)
    
    async def submit(self, request: Request) -> JSONResponse:
        try:
            claims = self._authorize(request, SUBMIT_ROLES)
        except AuthError as e:
            return _auth_error(e)
        
        try:
            body = BulkTransactionRequest.model_validate(await _read_json(request))
        except ValidationError as e:
            errors = validation_messages(e)
            logger.warning(f"Validation failed: {errors}")
            return _error(400, "Validation Failed", str(errors))
        except ValueError as e:
            return _error(400, "Validation Failed", str(e))
        
        logger.info(f"Received bulk transaction request for batch {body.batch_id} from {claims.sub}")
        try:
            result = await asyncio.to_thread(self._dispatcher.submit, body.to_batch())
        except BatchInProgressError as e:
            return _error(409, "Batch In Progress", e.message)
        
        logger.info(f"Completed processing for batch {body.batch_id}")
        return JSONResponse(BulkTransactionResponse.from_result(result).to_json())
    
    async def lookup(self, request: Request) -> JSONResponse:
        try:
            claims = self._authorize(request, LOOKUP_ROLES)
        except AuthError as e:
            return _auth_error(e)
        
        batch_id = request.path_params["batch_id"]
        logger.info(f"{claims.sub} retrieving results for batch {batch_id}")
        try:
            result = self._dispatcher.get_batch_results(batch_id)
        except BatchInProgressError as e:
            return _error(409, "Batch In Progress", e.message)
        except BatchNotFoundError as e:
            return _error(404, "Not Found", e.message)
        return JSONResponse(BulkTransactionResponse.from_result(result).to_json())
    
    async def health(self, request: Request) -> JSONResponse:
        payload: dict[str, object] = {"status": "UP"}
        store_stats = getattr(self._dispatcher.store, "stats", None)
        if callable(store_stats):
            payload["batches"] = store_stats()
        snapshot = getattr(self._dispatcher.metrics, "snapshot", None)
        if callable(snapshot):
            payload["metrics"] = snapshot()
        return JSONResponse(payload)
    
    async def issue_token(self, request: Request) -> JSONResponse:
        try:
            body = TokenRequest.model_validate(await _read_json(request))
        except ValidationError as e:
            return _error(400, "Validation Failed", str(validation_messages(e)))
        except ValueError as e:
            return _error(400, "Validation Failed", str(e))
        return self._token_response(body.username, body.roles)
    
    async def issue_user_token(self, request: Request) -> JSONResponse:
        return self._token_response("test-user", [Role.USER.value])
    
    async def issue_admin_token(self, request: Request) -> JSONResponse:
        return self._token_response("test-admin", [Role.ADMIN.value])
    
    def _token_response(self, username: str, roles: list[str]) -> JSONResponse:
        assert self._codec is not None
        return JSONResponse({"token": self._codec.issue(username, roles), "role": ",".join(roles)})
    
    def _create_app(self) -> Starlette:
        routes = [
            Route("/api/v1/bulk-transactions", self.submit, methods=["POST"]),
            Route("/api/v1/bulk-transactions/{batch_id}", self.lookup, methods=["GET"]),
            Route("/health", self.health, methods=["GET"]),
        ]
        if self._token_endpoint_enabled:
            routes += [
                Route("/api/auth/token", self.issue_token, methods=["POST"]),
                Route("/api/auth/token/user", self.issue_user_token, methods=["POST"]),
                Route("/api/auth/token/admin", self.issue_admin_token, methods=["POST"]),
            ]
        
        @asynccontextmanager
        async def lifespan(app: Starlette) -> AsyncIterator[None]:
            yield
            if self._on_shutdown is not None:
                self._on_shutdown()
        
        async def unhandled(request: Request, exc: Exception) -> JSONResponse:
            logger.error(f"Unexpected error on {request.url.path}: {exc}", exc_info=exc)
            return _error(500, "Unexpected Error", "An unexpected error occurred. Please try again later.")
        
        async def core_error(request: Request, exc: Exception) -> JSONResponse:
            logger.error(f"Runtime error on {request.url.path}: {exc}")
            return _error(500, "Internal Server Error", str(exc))
        
        return Starlette(
            routes=routes,
            lifespan=lifespan,
            exception_handlers={BulkPayError: core_error, Exception: unhandled},
        )
    
    def run(self, host: str = "127.0.0.1", port: int = 8080) -> None:
        """Start serving with uvicorn."""
        import uvicorn
        
        uvicorn.run(self._app, host=host, port=port)


def create_app(settings: BulkPaySettings | None = None, *, dispatcher: BatchDispatcher | None = None) -> Starlette:
    """Build the ASGI app from settings.
    
    Without an explicit dispatcher, one is wired to an HTTP channel that is
    closed on shutdown.
    """
    return _build_server(settings, dispatcher).app


def build_dispatcher(settings: BulkPaySettings) -> tuple[BatchDispatcher, HttpTransactionChannel]:
    """Dispatcher wired to the HTTP channel, retry policy and in-memory store from settings.
    
    The caller owns the returned channel and closes it on shutdown.
    """
    from bulkpay.dispatcher import BatchDispatcher
    from bulkpay.forwarder import Forwarder
    from bulkpay.metrics import InMemoryMetricsSink
    from bulkpay.store import MemoryBatchStore
    
    channel = HttpTransactionChannel(settings.downstream.to_channel_config())
    dispatcher = BatchDispatcher(
        Forwarder(channel, settings.retry.to_policy()),
        MemoryBatchStore(),
        InMemoryMetricsSink(),
        settings.dispatch.to_config(),
    )
    return dispatcher, channel


def _build_server(settings: BulkPaySettings | None, dispatcher: BatchDispatcher | None) -> BulkTransactionServer:
    from bulkpay.config import get_settings
    
    settings = settings or get_settings()
    on_shutdown: Callable[[], None] | None = None
    if dispatcher is None:
        dispatcher, channel = build_dispatcher(settings)
        on_shutdown = channel.close
    
    auth = settings.auth
    codec = HmacJwtCodec(
        auth.secret.get_secret_value(),
        issuer=auth.issuer,
        ttl_seconds=auth.token_ttl_seconds,
        leeway_seconds=auth.leeway_seconds,
    )
    return BulkTransactionServer(
        dispatcher,
        codec=codec,
        auth_enabled=auth.enabled,
        token_endpoint_enabled=auth.token_endpoint_enabled,
        on_shutdown=on_shutdown,
    )


def serve(settings: BulkPaySettings | None = None) -> None:
    """Configure logging from settings and serve until interrupted."""
    from bulkpay.config import get_settings
    from bulkpay.observability import configure_from_settings
    
    settings = settings or get_settings()
    configure_from_settings(settings.logging)
    if settings.auth.enabled and settings.is_production and settings.auth.secret.get_secret_value() == "change-me-in-production":
        raise BulkPayError("BULKPAY_AUTH_SECRET must be set in production", code=ErrorCode.INVALID_PARAMS)
    server = _build_server(settings, None)
    logger.info(f"Serving bulk transactions on {settings.server.host}:{settings.server.port}")
    server.run(host=settings.server.host, port=settings.server.port)
