"""Tests for HttpTransactionChannel against httpx.MockTransport."""

from __future__ import annotations

from decimal import Decimal

import httpx
import orjson
import pytest
from pydantic import SecretStr, ValidationError

from bulkpay.channel import DownstreamChannel, HttpChannelConfig, HttpTransactionChannel
from bulkpay.errors import ChannelError, ErrorCode
from bulkpay.forwarder import EXHAUSTED_PREFIX, Forwarder
from bulkpay.models import TransactionServiceRequest
from bulkpay.retry import IntervalBackoff, RetryPolicy

from conftest import make_instruction

BASE = "http://processor.test"


def _request() -> TransactionServiceRequest:
    return TransactionServiceRequest.from_instruction(make_instruction("TX001", "100.50"))


def _channel(handler, **config: object) -> HttpTransactionChannel:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return HttpTransactionChannel(HttpChannelConfig(base_url=BASE, **config), client=client)


# ═════════════════════════════════════════════════════════════════════════════
# Config
# ═════════════════════════════════════════════════════════════════════════════


def test_config_url_joins_path() -> None:
    assert HttpChannelConfig(base_url=f"{BASE}/").url == f"{BASE}/api/v1/transactions"
    assert HttpChannelConfig(base_url=BASE, path="tx").url == f"{BASE}/tx"


def test_config_rejects_non_http_scheme() -> None:
    with pytest.raises(ValidationError):
        HttpChannelConfig(base_url="ftp://processor")


def test_channel_satisfies_protocol() -> None:
    assert isinstance(HttpTransactionChannel(), DownstreamChannel)


# ═════════════════════════════════════════════════════════════════════════════
# Send
# ═════════════════════════════════════════════════════════════════════════════


def test_posts_camel_case_json() -> None:
    seen: list[httpx.Request] = []
    
    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"transactionId": "TX001", "status": "SUCCESS"})
    
    response = _channel(handler, api_key=SecretStr("k-123")).send(_request())
    
    assert response.transaction_id == "TX001"
    assert response.status == "SUCCESS"
    req = seen[0]
    assert req.method == "POST"
    assert str(req.url) == f"{BASE}/api/v1/transactions"
    assert req.headers["content-type"] == "application/json"
    assert req.headers["x-api-key"] == "k-123"
    body = orjson.loads(req.content)
    assert body == {"transactionId": "TX001", "fromAccount": "ACC001", "toAccount": "ACC002", "amount": "100.50"}
    assert Decimal(body["amount"]) == Decimal("100.50")


@pytest.mark.parametrize("content", [b"", b"accepted", b"[1, 2]", b'{"transactionId": 5}'])
def test_any_2xx_body_is_success(content: bytes) -> None:
    response = _channel(lambda _: httpx.Response(202, content=content)).send(_request())
    assert response.transaction_id is not None


@pytest.mark.parametrize(
    ("status", "code"),
    [
        (400, ErrorCode.DOWNSTREAM_REJECTED),
        (408, ErrorCode.TIMEOUT),
        (429, ErrorCode.RATE_LIMITED),
        (500, ErrorCode.EXTERNAL_SERVICE_ERROR),
        (503, ErrorCode.EXTERNAL_SERVICE_ERROR),
    ],
)
def test_non_2xx_raises_classified(status: int, code: ErrorCode) -> None:
    channel = _channel(lambda _: httpx.Response(status, text="nope"))
    with pytest.raises(ChannelError) as exc_info:
        channel.send(_request())
    assert exc_info.value.code is code
    assert exc_info.value.status_code == status


def test_timeout_maps_to_timeout_code() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)
    
    with pytest.raises(ChannelError) as exc_info:
        _channel(handler).send(_request())
    assert exc_info.value.code is ErrorCode.TIMEOUT


def test_connect_error_maps_to_network_code() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)
    
    with pytest.raises(ChannelError) as exc_info:
        _channel(handler).send(_request())
    assert exc_info.value.code is ErrorCode.NETWORK_ERROR
    assert exc_info.value.message.startswith("Network error")


# ═════════════════════════════════════════════════════════════════════════════
# With Forwarder
# ═════════════════════════════════════════════════════════════════════════════


def test_forwarder_retries_5xx_then_succeeds() -> None:
    replies = iter([httpx.Response(503), httpx.Response(503), httpx.Response(200)])
    channel = _channel(lambda _: next(replies))
    outcome = Forwarder(channel, RetryPolicy(backoff=IntervalBackoff(0))).process(make_instruction("TX001"))
    assert outcome.is_success


def test_forwarder_fallback_carries_http_detail() -> None:
    channel = _channel(lambda _: httpx.Response(500, text="processor down"))
    outcome = Forwarder(channel, RetryPolicy(backoff=IntervalBackoff(0))).process(make_instruction("TX001"))
    assert outcome.reason == f"{EXHAUSTED_PREFIX}Downstream returned HTTP 500: processor down"


def test_close_leaves_shared_client_open() -> None:
    client = httpx.Client(transport=httpx.MockTransport(lambda _: httpx.Response(200)))
    with HttpTransactionChannel(HttpChannelConfig(base_url=BASE), client=client) as channel:
        channel.send(_request())
    assert not client.is_closed
    client.close()
