from datetime import datetime, timedelta, timezone

import pytest

from app.core.constants import Role, TokenType
from app.core.security import (
    InvalidTokenError,
    TokenExpiredError,
    create_access_token,
    decode_access_token,
    hash_password,
    verify_password,
)


def _token(now=None, ttl=timedelta(hours=1)) -> str:
    return create_access_token(
        subject_id="farmer-1",
        email="ravi@example.com",
        role=Role.FARMER,
        token_type=TokenType.FARMER,
        ttl=ttl,
        now=now,
    )


def test_password_hash_roundtrip():
    encoded = hash_password("s3cret-pass")
    assert encoded.startswith("pbkdf2_sha256$")
    assert "s3cret-pass" not in encoded
    assert verify_password("s3cret-pass", encoded) is True
    assert verify_password("wrong-pass", encoded) is False


def test_password_hashes_are_salted():
    assert hash_password("same-password") != hash_password("same-password")


def test_malformed_hash_raises():
    with pytest.raises(ValueError):
        verify_password("anything", "not-a-hash")
    with pytest.raises(ValueError):
        verify_password("anything", "md5$1$salt$abc")


def test_token_claims_roundtrip():
    claims = decode_access_token(_token())
    assert claims.subject_id == "farmer-1"
    assert claims.email == "ravi@example.com"
    assert claims.role is Role.FARMER
    assert claims.token_type is TokenType.FARMER
    assert claims.expires_at - claims.issued_at == 3600


def test_tampered_token_rejected():
    header, payload, signature = _token().split(".")
    flipped = ("A" if signature[0] != "A" else "B") + signature[1:]
    with pytest.raises(InvalidTokenError):
        decode_access_token(f"{header}.{payload}.{flipped}")
    with pytest.raises(InvalidTokenError):
        decode_access_token("garbage")


def test_expired_token_rejected():
    issued = datetime.now(timezone.utc) - timedelta(days=8)
    with pytest.raises(TokenExpiredError):
        decode_access_token(_token(now=issued, ttl=timedelta(days=7)))


def test_token_valid_until_expiry_boundary():
    issued = datetime(2026, 1, 1, tzinfo=timezone.utc)
    token = _token(now=issued, ttl=timedelta(minutes=10))
    decode_access_token(token, now=issued + timedelta(minutes=9, seconds=59))
    with pytest.raises(TokenExpiredError):
        decode_access_token(token, now=issued + timedelta(minutes=10))


def test_token_signed_with_other_secret_rejected(monkeypatch):
    token = _token()
    monkeypatch.setenv("KM_JWT_SECRET", "another-secret-value-that-is-long")
    with pytest.raises(InvalidTokenError):
        decode_access_token(token)


def test_prod_requires_jwt_secret(monkeypatch):
    monkeypatch.setenv("KM_ENV", "prod")
    monkeypatch.delenv("KM_JWT_SECRET", raising=False)
    with pytest.raises(RuntimeError):
        _token()
