"""HTTP channel to the transaction processor.

POSTs one JSON body per instruction to `<base_url><path>`. Any 2xx reply is a
success; the body is parsed when present but its content beyond the status
code is not interpreted.

Example:
    >>> channel = HttpTransactionChannel(HttpChannelConfig(base_url="http://processor:8081"))
    >>> channel.send(TransactionServiceRequest.from_instruction(instruction))
    >>> channel.close()
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Annotated

import httpx
import orjson
from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationError, field_validator

from bulkpay.errors import ChannelError, ErrorCode
from bulkpay.models import TransactionServiceRequest, TransactionServiceResponse

if TYPE_CHECKING:
    from types import TracebackType

logger = logging.getLogger("bulkpay.channel")


class HttpChannelConfig(BaseModel):
    """Connection settings for the processor.
    
    Attributes:
        base_url: Scheme and host of the processor
        path: Endpoint accepting single transactions
        timeout: Per-attempt timeout in seconds
        verify_ssl: Verify TLS certificates
        api_key: Optional key sent as `X-API-Key`
        default_headers: Headers added to every request
    """
    
    model_config = ConfigDict(frozen=True, extra="forbid", str_strip_whitespace=True, revalidate_instances="never")
    
    base_url: Annotated[str, Field(min_length=1)] = "http://localhost:8081"
    path: str = "/api/v1/transactions"
    timeout: Annotated[float, Field(ge=0.1, le=300.0)] = 10.0
    verify_ssl: bool = True
    api_key: SecretStr | None = Field(default=None, repr=False)
    default_headers: dict[str, str] = Field(default_factory=lambda: {"User-Agent": "bulkpay/1.0"})
    
    @field_validator("base_url")
    @classmethod
    def _check_scheme(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"base_url must start with http:// or https://, got {v!r}")
        return v.rstrip("/")
    
    @property
    def url(self) -> str:
        return f"{self.base_url}/{self.path.lstrip('/')}"


class HttpTransactionChannel:
    """`DownstreamChannel` over httpx.
    
    Pass `client` to share a connection pool or to plug in an
    `httpx.MockTransport` in tests; otherwise one is created lazily and owned
    by the channel.
    """
    
    __slots__ = ("_config", "_client", "_owns_client")
    
    def __init__(self, config: HttpChannelConfig | None = None, *, client: httpx.Client | None = None) -> None:
        self._config = config or HttpChannelConfig()
        self._client = client
        self._owns_client = client is None
    
    @property
    def config(self) -> HttpChannelConfig:
        return self._config
    
    def _get_client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(verify=self._config.verify_ssl, timeout=self._config.timeout)
        return self._client
    
    def _headers(self) -> dict[str, str]:
        headers = {**self._config.default_headers, "Content-Type": "application/json", "Accept": "application/json"}
        if self._config.api_key is not None:
            headers["X-API-Key"] = self._config.api_key.get_secret_value()
        return headers
    
    def send(self, request: TransactionServiceRequest) -> TransactionServiceResponse:
        try:
            response = self._get_client().post(
                self._config.url,
                content=orjson.dumps(request.to_wire()),
                headers=self._headers(),
                timeout=self._config.timeout,
            )
        except httpx.TimeoutException as e:
            raise ChannelError(f"Request timed out after {self._config.timeout}s", ErrorCode.TIMEOUT) from e
        except httpx.TransportError as e:
            raise ChannelError(f"Network error: {e}", ErrorCode.NETWORK_ERROR) from e
        
        if not response.is_success:
            raise ChannelError.from_status(response.status_code, response.text)
        return self._parse(request, response)
    
    @staticmethod
    def _parse(request: TransactionServiceRequest, response: httpx.Response) -> TransactionServiceResponse:
        if not response.content:
            return TransactionServiceResponse(transaction_id=request.transaction_id)
        try:
            data = orjson.loads(response.content)
        except orjson.JSONDecodeError:
            logger.debug(f"[{request.transaction_id}] non-JSON success body ignored")
            return TransactionServiceResponse(transaction_id=request.transaction_id)
        if isinstance(data, dict):
            try:
                return TransactionServiceResponse.model_validate(data)
            except ValidationError:
                logger.debug(f"[{request.transaction_id}] unexpected success body shape ignored")
        return TransactionServiceResponse(transaction_id=request.transaction_id)
    
    def close(self) -> None:
        if self._client is not None and self._owns_client:
            self._client.close()
            self._client = None
    
    def __enter__(self) -> HttpTransactionChannel:
        return self
    
    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()
