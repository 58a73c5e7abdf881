import logging

import pytest

from app.core.constants import Role
from app.services.admin_seed import seed_main_admin
from app.services.credential_store import JsonCredentialStore


@pytest.fixture
def store(tmp_path):
    return JsonCredentialStore(tmp_path / "farmers.json")


def test_seed_creates_single_main_admin(store, monkeypatch):
    monkeypatch.setenv("KM_ADMIN_EMAIL", "Chief@Example.com")
    monkeypatch.setenv("KM_ADMIN_PASSWORD", "chief-pass-123")
    seed_main_admin(store)
    seed_main_admin(store)
    [admin] = store.list_admins_by_role(Role.MAIN_ADMIN)
    assert admin.email == "chief@example.com"
    assert store.verify_password("chief-pass-123", admin.password_hash)


def test_seed_keeps_existing_main_admin(store, monkeypatch, caplog):
    store.create_admin(username="first", email="first@example.com", password="first-pass-123", role=Role.MAIN_ADMIN)
    monkeypatch.setenv("KM_ADMIN_EMAIL", "second@example.com")
    monkeypatch.setenv("KM_ADMIN_PASSWORD", "second-pass-123")
    caplog.set_level(logging.WARNING)
    seed_main_admin(store)
    assert [a.email for a in store.list_admins_by_role(Role.MAIN_ADMIN)] == ["first@example.com"]
    assert any("different email" in rec.message for rec in caplog.records)


def test_seed_does_not_promote_existing_admin(store, monkeypatch):
    store.create_admin(username="ops", email="ops@example.com", password="ops-pass-1234", role=Role.ADMIN)
    monkeypatch.setenv("KM_ADMIN_EMAIL", "ops@example.com")
    monkeypatch.setenv("KM_ADMIN_PASSWORD", "ops-pass-1234")
    seed_main_admin(store)
    assert store.list_admins_by_role(Role.MAIN_ADMIN) == []


def test_seed_skipped_without_credentials_in_dev(store, monkeypatch):
    monkeypatch.delenv("KM_ADMIN_EMAIL", raising=False)
    monkeypatch.setenv("KM_ENV", "dev")
    seed_main_admin(store)
    assert store.list_admins_by_role(Role.MAIN_ADMIN) == []


def test_seed_requires_credentials_in_prod(store, monkeypatch):
    monkeypatch.delenv("KM_ADMIN_PASSWORD", raising=False)
    monkeypatch.setenv("KM_ENV", "prod")
    with pytest.raises(RuntimeError):
        seed_main_admin(store)
