"""Tests for the HS256 token codec and role gate."""

from __future__ import annotations

import pytest

from bulkpay.api.auth import (
    LOOKUP_ROLES,
    SUBMIT_ROLES,
    Claims,
    HmacJwtCodec,
    _b64url_encode,
    bearer_token,
    require_roles,
)
from bulkpay.errors import AuthError, ErrorCode

NOW = 1_700_000_000


@pytest.fixture
def codec() -> HmacJwtCodec:
    return HmacJwtCodec("test-secret", ttl_seconds=60)


def test_issue_and_verify(codec: HmacJwtCodec) -> None:
    token = codec.issue("alice", ["user"], now=NOW)
    claims = codec.verify(token, now=NOW + 10)
    assert claims.sub == "alice"
    assert claims.roles == frozenset({"USER"})
    assert claims.expires_at == NOW + 60


def test_role_prefix_is_normalized(codec: HmacJwtCodec) -> None:
    claims = codec.verify(codec.issue("bob", ["ROLE_ADMIN"], now=NOW), now=NOW)
    assert claims.roles == frozenset({"ADMIN"})


def test_expired_token_rejected(codec: HmacJwtCodec) -> None:
    token = codec.issue("alice", ["USER"], now=NOW)
    with pytest.raises(AuthError, match="expired"):
        codec.verify(token, now=NOW + 61)


def test_leeway_tolerates_skew() -> None:
    codec = HmacJwtCodec("s", ttl_seconds=60, leeway_seconds=30)
    assert codec.verify(codec.issue("a", ["USER"], now=NOW), now=NOW + 80).sub == "a"


def test_wrong_secret_rejected(codec: HmacJwtCodec) -> None:
    token = HmacJwtCodec("other-secret").issue("alice", ["ADMIN"], now=NOW)
    with pytest.raises(AuthError, match="signature"):
        codec.verify(token, now=NOW)


def test_tampered_payload_rejected(codec: HmacJwtCodec) -> None:
    header, _, signature = codec.issue("alice", ["USER"], now=NOW).split(".")
    forged = _b64url_encode(b'{"sub":"alice","roles":["ADMIN"],"exp":9999999999}')
    with pytest.raises(AuthError):
        codec.verify(f"{header}.{forged}.{signature}", now=NOW)


@pytest.mark.parametrize("token", ["", "abc", "a.b", "!!.@@.##"])
def test_malformed_tokens_rejected(codec: HmacJwtCodec, token: str) -> None:
    with pytest.raises(AuthError):
        codec.verify(token, now=NOW)


def _signed(codec: HmacJwtCodec, payload: bytes) -> str:
    header = _b64url_encode(b'{"alg":"HS256","typ":"JWT"}')
    body = _b64url_encode(payload)
    signature = codec._sign(f"{header}.{body}".encode("ascii"))
    return f"{header}.{body}.{_b64url_encode(signature)}"


@pytest.mark.parametrize(
    "payload",
    [
        b'{"sub":"alice","roles":["USER"],"exp":"soon"}',
        b'{"sub":"alice","roles":["USER"],"nbf":[1]}',
        b'{"sub":"alice","roles":["USER"],"exp":true}',
        b'{"sub":"alice","roles":5}',
        b'{"sub":"alice","roles":{"USER":1}}',
    ],
)
def test_signed_token_with_malformed_claims_rejected(codec: HmacJwtCodec, payload: bytes) -> None:
    with pytest.raises(AuthError, match="Malformed token"):
        codec.verify(_signed(codec, payload), now=NOW)


def test_single_role_string_accepted(codec: HmacJwtCodec) -> None:
    claims = codec.verify(_signed(codec, b'{"sub":"alice","roles":"admin"}'), now=NOW)
    assert claims.roles == frozenset({"ADMIN"})
    assert claims.expires_at is None


def test_unsupported_alg_rejected(codec: HmacJwtCodec) -> None:
    _, payload, signature = codec.issue("alice", ["USER"], now=NOW).split(".")
    header = _b64url_encode(b'{"alg":"none","typ":"JWT"}')
    with pytest.raises(AuthError, match="algorithm"):
        codec.verify(f"{header}.{payload}.{signature}", now=NOW)


def test_issuer_checked_when_configured() -> None:
    issuing = HmacJwtCodec("s", issuer="bulkpay")
    other = HmacJwtCodec("s", issuer="someone-else")
    token = issuing.issue("a", ["USER"], now=NOW)
    assert issuing.verify(token, now=NOW).sub == "a"
    with pytest.raises(AuthError, match="issuer"):
        other.verify(token, now=NOW)


def test_empty_secret_rejected() -> None:
    with pytest.raises(ValueError):
        HmacJwtCodec("")


def test_bearer_token_parsing() -> None:
    assert bearer_token("Bearer abc.def.ghi") == "abc.def.ghi"
    assert bearer_token("bearer  xyz ") == "xyz"
    for bad in (None, "", "Basic dXNlcjpwYXNz", "Bearer "):
        with pytest.raises(AuthError):
            bearer_token(bad)


def test_role_gate() -> None:
    user = Claims(sub="u", roles=frozenset({"USER"}))
    admin = Claims(sub="a", roles=frozenset({"ADMIN"}))
    
    assert require_roles(user, SUBMIT_ROLES) is user
    assert require_roles(admin, LOOKUP_ROLES) is admin
    with pytest.raises(AuthError) as exc_info:
        require_roles(user, LOOKUP_ROLES)
    assert exc_info.value.code is ErrorCode.PERMISSION_DENIED
