from conftest import farmer_payload

from app.core.errors import TooManyRequestsError
from app.core.pagination import build_pagination, clamp_limit, page_offset
from app.core.rate_limit import TokenBucketLimiter, is_auth_path


def test_token_bucket_refills():
    limiter = TokenBucketLimiter()
    assert limiter.allow("k", rps=1.0, burst=2, now=0.0)[0] is True
    assert limiter.allow("k", rps=1.0, burst=2, now=0.0)[0] is True
    allowed, retry_after = limiter.allow("k", rps=1.0, burst=2, now=0.0)
    assert allowed is False
    assert retry_after > 0
    assert limiter.allow("k", rps=1.0, burst=2, now=1.0)[0] is True


def test_auth_paths_detected():
    assert is_auth_path("/api/v1/farmers/login")
    assert is_auth_path("/api/v1/admin/login/")
    assert is_auth_path("/api/v1/farmers/register/verify-otp")
    assert not is_auth_path("/api/v1/farmers/profile")


def test_retry_after_header_value():
    exc = TooManyRequestsError(retry_after=4.7)
    assert exc.headers == {"Retry-After": "4"}
    assert TooManyRequestsError(retry_after=0.2).headers == {"Retry-After": "1"}


def test_login_rate_limited(client, monkeypatch):
    monkeypatch.setenv("RATE_LIMIT_ENABLED", "true")
    monkeypatch.setenv("RATE_LIMIT_AUTH_RPS", "0.01")
    monkeypatch.setenv("RATE_LIMIT_AUTH_BURST", "2")
    body = {"email": "ghost@example.com", "password": "whatever-pass"}
    assert client.post("/api/v1/farmers/login", json=body).status_code == 401
    assert client.post("/api/v1/farmers/login", json=body).status_code == 401
    blocked = client.post("/api/v1/farmers/login", json=body)
    assert blocked.status_code == 429
    assert int(blocked.headers["Retry-After"]) >= 1


def test_oversized_body_rejected(client, monkeypatch):
    monkeypatch.setenv("MAX_JSON_BODY_BYTES", "1024")
    resp = client.post("/api/v1/farmers/register", json=farmer_payload(location="x" * 4096))
    assert resp.status_code == 413


def test_pagination_helpers(monkeypatch):
    monkeypatch.setenv("API_MAX_PAGE_SIZE", "25")
    assert clamp_limit(500) == 25
    assert clamp_limit(0) == 1
    assert page_offset(3, 20) == 40
    assert build_pagination(total=41, page=2, limit=20) == {"total": 41, "page": 2, "limit": 20, "pages": 3}
