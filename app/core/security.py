"""
Security helpers for password hashing and JWT access tokens.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
import logging
import os
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from .constants import Role, TokenType, parse_role


class TokenError(ValueError):
    """Base class for session token failures."""


class InvalidTokenError(TokenError):
    pass


class TokenExpiredError(TokenError):
    pass


@dataclass(frozen=True)
class TokenClaims:
    subject_id: str
    email: str
    role: Role
    token_type: TokenType
    issued_at: int
    expires_at: int


def _b64url_encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64url_decode(value: str) -> bytes:
    padding = "=" * (-len(value) % 4)
    return base64.urlsafe_b64decode(value + padding)


def _hash_rounds() -> int:
    try:
        return max(1000, int(os.getenv("KM_PASSWORD_HASH_ROUNDS", "120000")))
    except Exception:
        return 120000


def hash_password(password: str) -> str:
    if not password:
        raise ValueError("Password cannot be empty")
    salt = secrets.token_hex(16)
    rounds = _hash_rounds()
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt.encode("ascii"), rounds)
    return f"pbkdf2_sha256${rounds}${salt}${digest.hex()}"


def verify_password(password: str, encoded: str) -> bool:
    """Constant-time password check. Raises ValueError only for a malformed hash."""
    try:
        algo, rounds_raw, salt, expected_hex = encoded.split("$", 3)
        rounds = int(rounds_raw)
    except (AttributeError, ValueError):
        raise ValueError("Malformed password hash") from None
    if algo != "pbkdf2_sha256" or rounds < 1:
        raise ValueError("Unsupported password hash")
    digest = hashlib.pbkdf2_hmac("sha256", (password or "").encode("utf-8"), salt.encode("ascii"), rounds)
    return secrets.compare_digest(digest.hex(), expected_hex)


def _jwt_secret() -> str:
    secret = (os.getenv("KM_JWT_SECRET") or "").strip()
    if secret:
        return secret
    env = (os.getenv("KM_ENV") or os.getenv("APP_ENV") or "dev").strip().lower()
    if env == "prod":
        return ""
    return "dev-jwt-secret-change-me"


def _now_ts(now: Optional[datetime]) -> int:
    return int((now or datetime.now(timezone.utc)).timestamp())


def create_access_token(
    *,
    subject_id: str,
    email: str,
    role: Role | str,
    token_type: TokenType | str,
    ttl: timedelta,
    now: Optional[datetime] = None,
) -> str:
    secret = _jwt_secret()
    if not secret:
        raise RuntimeError("KM_JWT_SECRET is required in prod")
    issued = _now_ts(now)
    payload = {
        "sub": subject_id,
        "email": email,
        "role": parse_role(role).value,
        "type": TokenType(token_type).value,
        "iat": issued,
        "exp": issued + int(ttl.total_seconds()),
    }
    header = {"alg": "HS256", "typ": "JWT"}
    signing_input = (
        f"{_b64url_encode(json.dumps(header, separators=(',', ':')).encode('utf-8'))}."
        f"{_b64url_encode(json.dumps(payload, separators=(',', ':')).encode('utf-8'))}"
    )
    signature = hmac.new(secret.encode("utf-8"), signing_input.encode("ascii"), hashlib.sha256).digest()
    return f"{signing_input}.{_b64url_encode(signature)}"


def decode_access_token(token: str, *, now: Optional[datetime] = None) -> TokenClaims:
    """Verify signature first, expiry second."""
    secret = _jwt_secret()
    if not secret:
        raise InvalidTokenError("JWT secret not configured")
    parts = (token or "").split(".")
    if len(parts) != 3:
        raise InvalidTokenError("Malformed token")
    header_b64, payload_b64, signature_b64 = parts
    signing_input = f"{header_b64}.{payload_b64}"
    expected_sig = hmac.new(secret.encode("utf-8"), signing_input.encode("ascii", "replace"), hashlib.sha256).digest()
    try:
        provided_sig = _b64url_decode(signature_b64)
    except (binascii.Error, ValueError):
        raise InvalidTokenError("Malformed signature") from None
    if not secrets.compare_digest(expected_sig, provided_sig):
        raise InvalidTokenError("Invalid signature")
    try:
        payload: Any = json.loads(_b64url_decode(payload_b64).decode("utf-8"))
    except (binascii.Error, ValueError):
        raise InvalidTokenError("Invalid payload") from None
    if not isinstance(payload, dict):
        raise InvalidTokenError("Invalid payload")
    try:
        exp = int(payload.get("exp") or 0)
        claims = TokenClaims(
            subject_id=str(payload["sub"]),
            email=str(payload.get("email") or ""),
            role=parse_role(payload.get("role")),
            token_type=TokenType(payload.get("type")),
            issued_at=int(payload.get("iat") or 0),
            expires_at=exp,
        )
    except (KeyError, TypeError, ValueError):
        raise InvalidTokenError("Invalid token claims") from None
    if exp <= 0:
        raise InvalidTokenError("Missing exp")
    if _now_ts(now) >= exp:
        logging.getLogger("security").debug("Rejected expired token sub=%s", claims.subject_id)
        raise TokenExpiredError("Token expired")
    return claims
