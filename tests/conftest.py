import os
import tempfile
import uuid
from pathlib import Path

# Lightweight local DB, no background threads and no upstream API keys during tests.
_TMP = Path(tempfile.mkdtemp(prefix="krushi_mithra_tests_"))
os.environ.setdefault("DATABASE_URL", f"sqlite+pysqlite:///{_TMP / 'test.db'}")
os.environ.setdefault("KM_ENV", "dev")
os.environ.setdefault("KM_STORAGE_MODE", "sql")
os.environ.setdefault("KM_JWT_SECRET", "test-jwt-secret-strong-value-123456")
os.environ.setdefault("KM_PASSWORD_HASH_ROUNDS", "1000")
os.environ.setdefault("KM_ADMIN_EMAIL", "admin@krushimithra.test")
os.environ.setdefault("KM_ADMIN_PASSWORD", "admin-pass-123")
os.environ.setdefault("KM_ADMIN_USERNAME", "admin")
os.environ.setdefault("KM_MARKET_PRICE_CACHE_PATH", str(_TMP / "market_prices_cache.json"))
os.environ.setdefault("AUTO_CREATE_DB", "true")
os.environ.setdefault("AUTO_RUN_MIGRATIONS", "false")
os.environ.setdefault("AUTO_SEED_ADMIN_USER", "true")
os.environ.setdefault("ENABLE_OTP_SWEEPER", "false")
os.environ.setdefault("ENABLE_MARKET_PRICE_REFRESH", "false")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.pop("SMTP_HOST", None)
os.environ.pop("OPENWEATHER_API_KEY", None)
os.environ.pop("DATA_GOV_IN_API_KEY", None)

import pytest
from fastapi.testclient import TestClient

from app.core import rate_limit
from app.main import create_app

ADMIN_EMAIL = os.environ["KM_ADMIN_EMAIL"]
ADMIN_PASSWORD = os.environ["KM_ADMIN_PASSWORD"]


def unique_mobile() -> str:
    return "9" + str(uuid.uuid4().int)[:9]


def farmer_payload(**overrides) -> dict:
    tag = uuid.uuid4().hex[:8]
    payload = {
        "fullName": "Ramesh Gowda",
        "email": f"ramesh_{tag}@example.com",
        "mobile": unique_mobile(),
        "password": "farmer-pass-123",
        "location": "Mysuru",
        "cropType": "rice",
        "language": "kannada",
    }
    payload.update(overrides)
    return payload


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(autouse=True)
def _reset_rate_limiter():
    rate_limit._limiter.reset()
    yield
    rate_limit._limiter.reset()


@pytest.fixture
def client():
    app = create_app()
    with TestClient(app) as c:
        yield c


@pytest.fixture
def admin_token(client) -> str:
    resp = client.post("/api/v1/admin/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
    assert resp.status_code == 200, resp.text
    return resp.json()["token"]


@pytest.fixture
def register_farmer(client):
    """Single-step registration (admin approval policy); returns (payload, farmer json)."""

    def _register(**overrides):
        payload = farmer_payload(**overrides)
        resp = client.post("/api/v1/farmers/register", json=payload)
        assert resp.status_code == 201, resp.text
        return payload, resp.json()["farmer"]

    return _register


@pytest.fixture
def approved_farmer(client, admin_token, register_farmer):
    """Registered and approved farmer; returns (payload, farmer json, token)."""

    def _make(**overrides):
        payload, farmer = register_farmer(**overrides)
        resp = client.put(f"/api/v1/admin/farmers/{farmer['id']}/approve", headers=bearer(admin_token))
        assert resp.status_code == 200, resp.text
        login = client.post("/api/v1/farmers/login", json={"email": payload["email"], "password": payload["password"]})
        assert login.status_code == 200, login.text
        return payload, login.json()["farmer"], login.json()["token"]

    return _make
