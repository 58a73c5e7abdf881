from conftest import ADMIN_EMAIL, bearer

from app.core.db import SessionLocal
from app.core.security import decode_access_token
from app.services.credential_store import SqlCredentialStore


def _create_admin(role: str, password: str = "helper-pass-123") -> str:
    with SessionLocal() as db:
        store = SqlCredentialStore(db)
        email = f"{role.lower()}-helper@krushimithra.test"
        if store.find_admin_by_email(email) is None:
            store.create_admin(username=f"{role.lower()}-helper", email=email, password=password, role=role)
    return email


def test_admin_login_issues_admin_token(client):
    resp = client.post("/api/v1/admin/login", json={"email": ADMIN_EMAIL.upper(), "password": "admin-pass-123"})
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["admin"]["role"] == "MAIN_ADMIN"
    claims = decode_access_token(body["token"])
    assert claims.token_type.value == "admin"
    assert claims.role.value == "MAIN_ADMIN"


def test_admin_login_wrong_password(client):
    resp = client.post("/api/v1/admin/login", json={"email": ADMIN_EMAIL, "password": "nope-nope-nope"})
    assert resp.status_code == 401
    assert resp.json()["message"] == "Invalid credentials"


def test_non_main_admin_lacks_privileges(client):
    email = _create_admin("admin")
    login = client.post("/api/v1/admin/login", json={"email": email, "password": "helper-pass-123"})
    assert login.status_code == 200
    resp = client.get("/api/v1/admin/farmers", headers=bearer(login.json()["token"]))
    assert resp.status_code == 403
    assert resp.json()["message"] == "Insufficient privileges"


def test_list_farmers_with_filters_and_stats(client, admin_token, register_farmer):
    _, first = register_farmer(fullName="Basavaraj Patil", location="Dharwad")
    register_farmer()
    resp = client.get("/api/v1/admin/farmers?search=basavaraj", headers=bearer(admin_token))
    assert resp.status_code == 200
    body = resp.json()
    assert [f["id"] for f in body["farmers"]] == [first["id"]]
    assert body["pagination"]["total"] == 1
    assert body["stats"]["pending"] >= 2
    assert body["stats"]["total"] >= body["stats"]["pending"]

    bad = client.get("/api/v1/admin/farmers?status=archived", headers=bearer(admin_token))
    assert bad.status_code == 400

    pending = client.get("/api/v1/admin/farmers/pending", headers=bearer(admin_token))
    assert first["id"] in {f["id"] for f in pending.json()}


def test_pagination_capped(client, admin_token, register_farmer, monkeypatch):
    monkeypatch.setenv("API_MAX_PAGE_SIZE", "2")
    for _ in range(3):
        register_farmer()
    resp = client.get("/api/v1/admin/farmers?limit=50", headers=bearer(admin_token))
    assert resp.status_code == 200
    assert len(resp.json()["farmers"]) == 2
    assert resp.json()["pagination"]["limit"] == 2
    assert client.get("/api/v1/admin/farmers?page=0", headers=bearer(admin_token)).status_code == 400


def test_farmer_detail_and_history(client, admin_token, register_farmer):
    _, farmer = register_farmer()
    client.put(f"/api/v1/admin/farmers/{farmer['id']}/approve", headers=bearer(admin_token))
    client.put(
        f"/api/v1/admin/farmers/{farmer['id']}/suspend",
        json={"reason": "duplicate land records"},
        headers=bearer(admin_token),
    )
    detail = client.get(f"/api/v1/admin/farmers/{farmer['id']}", headers=bearer(admin_token))
    assert detail.status_code == 200
    assert detail.json()["status"] == "suspended"
    assert detail.json()["suspensionReason"] == "duplicate land records"

    history = client.get(f"/api/v1/admin/farmers/{farmer['id']}/history", headers=bearer(admin_token))
    assert [e["toStatus"] for e in history.json()] == ["pending", "approved", "suspended"]

    missing = client.get("/api/v1/admin/farmers/does-not-exist", headers=bearer(admin_token))
    assert missing.status_code == 404


def test_invalid_transitions_conflict(client, admin_token, register_farmer):
    _, farmer = register_farmer()
    suspend = client.put(f"/api/v1/admin/farmers/{farmer['id']}/suspend", headers=bearer(admin_token))
    assert suspend.status_code == 409
    client.put(f"/api/v1/admin/farmers/{farmer['id']}/approve", headers=bearer(admin_token))
    again = client.put(f"/api/v1/admin/farmers/{farmer['id']}/approve", headers=bearer(admin_token))
    assert again.status_code == 409
    unknown = client.put("/api/v1/admin/farmers/does-not-exist/approve", headers=bearer(admin_token))
    assert unknown.status_code == 404


def test_status_override(client, admin_token, register_farmer):
    payload, farmer = register_farmer()
    client.put(f"/api/v1/admin/farmers/{farmer['id']}/reject", headers=bearer(admin_token))
    resp = client.put(
        f"/api/v1/admin/farmers/{farmer['id']}/status",
        json={"status": "approved", "reason": "documents resubmitted"},
        headers=bearer(admin_token),
    )
    assert resp.status_code == 200
    assert resp.json()["farmer"]["status"] == "approved"
    history = client.get(f"/api/v1/admin/farmers/{farmer['id']}/history", headers=bearer(admin_token)).json()
    assert history[-1]["isOverride"] is True
    login = client.post("/api/v1/farmers/login", json={"email": payload["email"], "password": payload["password"]})
    assert login.status_code == 200


def test_dashboard_stats(client, admin_token, register_farmer):
    register_farmer()
    resp = client.get("/api/v1/admin/stats", headers=bearer(admin_token))
    assert resp.status_code == 200
    body = resp.json()
    assert body["totalFarmers"] >= 1
    assert body["pendingApprovals"] >= 1
    assert "activeSubsidies" in body and "activeNotifications" in body
    assert 1 <= len(body["recentRegistrations"]) <= 5
