"""Bearer-token role gate for the HTTP surface.

HS256 JWTs carrying `sub` and `roles` claims. USER or ADMIN may submit
batches; only ADMIN may look results up.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import time
from dataclasses import dataclass
from enum import StrEnum
from typing import Iterable

import orjson

from bulkpay.errors import AuthError, ErrorCode


class Role(StrEnum):
    USER = "USER"
    ADMIN = "ADMIN"


SUBMIT_ROLES: frozenset[Role] = frozenset({Role.USER, Role.ADMIN})
LOOKUP_ROLES: frozenset[Role] = frozenset({Role.ADMIN})


def _b64url_encode(value: bytes) -> str:
    return base64.urlsafe_b64encode(value).decode("ascii").rstrip("=")


def _b64url_decode(value: str) -> bytes:
    padding = "=" * (-len(value) % 4)
    return base64.urlsafe_b64decode((value + padding).encode("ascii"))


def _normalize_role(role: str) -> str:
    role = role.strip().upper()
    return role.removeprefix("ROLE_")


def _numeric_claim(payload: dict, name: str) -> int | None:
    value = payload.get(name)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"{name} must be a number")
    return int(value)


def _roles_claim(payload: dict) -> frozenset[str]:
    roles = payload.get("roles") or []
    if isinstance(roles, str):
        roles = [roles]
    if not isinstance(roles, (list, tuple)):
        raise TypeError("roles must be a list")
    return frozenset(_normalize_role(str(r)) for r in roles)


@dataclass(frozen=True, slots=True)
class Claims:
    """Verified token contents."""
    sub: str
    roles: frozenset[str]
    expires_at: int | None = None
    
    def has_any(self, allowed: Iterable[str]) -> bool:
        return not self.roles.isdisjoint(allowed)


ANONYMOUS_ADMIN = Claims(sub="anonymous", roles=frozenset(r.value for r in Role))


class HmacJwtCodec:
    """Issues and verifies HS256 tokens.
    
    Args:
        secret: Shared signing secret
        issuer: Expected `iss`; empty skips the check
        ttl_seconds: Lifetime of issued tokens
        leeway_seconds: Clock skew tolerated on `exp`/`nbf`
    """
    
    __slots__ = ("_secret", "_issuer", "_ttl", "_leeway")
    
    def __init__(self, secret: str, *, issuer: str = "", ttl_seconds: int = 7200, leeway_seconds: int = 0) -> None:
        if not secret:
            raise ValueError("JWT secret must not be empty")
        self._secret = secret.encode("utf-8")
        self._issuer = issuer
        self._ttl = ttl_seconds
        self._leeway = leeway_seconds
    
    def _sign(self, signing_input: bytes) -> bytes:
        return hmac.new(self._secret, signing_input, hashlib.sha256).digest()
    
    def issue(self, subject: str, roles: Iterable[str], *, now: int | None = None) -> str:
        issued = int(time.time()) if now is None else now
        payload: dict[str, object] = {
            "sub": subject,
            "roles": [_normalize_role(r) for r in roles],
            "iat": issued,
            "exp": issued + self._ttl,
        }
        if self._issuer:
            payload["iss"] = self._issuer
        header_b64 = _b64url_encode(orjson.dumps({"alg": "HS256", "typ": "JWT"}))
        payload_b64 = _b64url_encode(orjson.dumps(payload))
        signature = self._sign(f"{header_b64}.{payload_b64}".encode("ascii"))
        return f"{header_b64}.{payload_b64}.{_b64url_encode(signature)}"
    
    def verify(self, token: str, *, now: int | None = None) -> Claims:
        parts = token.split(".")
        if len(parts) != 3:
            raise AuthError("Malformed token")
        header_b64, payload_b64, signature_b64 = parts
        
        try:
            header = orjson.loads(_b64url_decode(header_b64))
            provided = _b64url_decode(signature_b64)
            payload = orjson.loads(_b64url_decode(payload_b64))
        except (ValueError, orjson.JSONDecodeError) as e:
            raise AuthError("Malformed token") from e
        if not isinstance(header, dict) or not isinstance(payload, dict):
            raise AuthError("Malformed token")
        if header.get("alg") != "HS256":
            raise AuthError("Unsupported token algorithm")
        if not hmac.compare_digest(self._sign(f"{header_b64}.{payload_b64}".encode("ascii")), provided):
            raise AuthError("Invalid token signature")
        
        current = int(time.time()) if now is None else now
        try:
            exp = _numeric_claim(payload, "exp")
            nbf = _numeric_claim(payload, "nbf")
            roles = _roles_claim(payload)
        except (ValueError, TypeError, OverflowError) as e:
            raise AuthError("Malformed token") from e
        if exp is not None and current > exp + self._leeway:
            raise AuthError("Token expired")
        if nbf is not None and current + self._leeway < nbf:
            raise AuthError("Token not active yet")
        if self._issuer and payload.get("iss") != self._issuer:
            raise AuthError("Invalid token issuer")
        
        return Claims(sub=str(payload.get("sub", "unknown")), roles=roles, expires_at=exp)


def bearer_token(authorization: str | None) -> str:
    """Extract the token from an `Authorization: Bearer <token>` header."""
    if not authorization:
        raise AuthError("Missing Authorization header")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthError("Authorization header must use the Bearer scheme")
    return token.strip()


def require_roles(claims: Claims, allowed: Iterable[Role]) -> Claims:
    if not claims.has_any(r.value for r in allowed):
        raise AuthError(
            f"User {claims.sub!r} lacks required role ({', '.join(sorted(r.value for r in allowed))})",
            code=ErrorCode.PERMISSION_DENIED,
        )
    return claims
