from conftest import bearer, farmer_payload

from app.core.security import decode_access_token


def _otp_register(client, payload: dict):
    otp_resp = client.post(
        "/api/v1/farmers/register/request-otp",
        json={"email": payload["email"], "fullName": payload["fullName"]},
    )
    assert otp_resp.status_code == 200, otp_resp.text
    code = otp_resp.json()["otp"]
    return client.post("/api/v1/farmers/register/verify-otp", json={**payload, "otp": code})


def test_register_then_approve_then_login(client, admin_token):
    payload = farmer_payload()
    reg = client.post("/api/v1/farmers/register", json=payload)
    assert reg.status_code == 201, reg.text
    body = reg.json()
    assert "token" not in body
    farmer = body["farmer"]
    assert farmer["status"] == "pending"
    assert farmer["cropType"] == "rice"
    assert "passwordHash" not in farmer and "password" not in farmer

    login = client.post("/api/v1/farmers/login", json={"email": payload["email"], "password": payload["password"]})
    assert login.status_code == 403
    assert login.json()["status"] == "PENDING"

    approve = client.put(f"/api/v1/admin/farmers/{farmer['id']}/approve", headers=bearer(admin_token))
    assert approve.status_code == 200
    assert approve.json()["farmer"]["status"] == "approved"

    login = client.post("/api/v1/farmers/login", json={"email": payload["email"], "password": payload["password"]})
    assert login.status_code == 200, login.text
    claims = decode_access_token(login.json()["token"])
    assert claims.subject_id == farmer["id"]
    assert claims.role.value == "farmer"
    assert claims.token_type.value == "farmer"


def test_rejected_login_returns_status_and_reason(client, admin_token, register_farmer):
    payload, farmer = register_farmer()
    resp = client.put(
        f"/api/v1/admin/farmers/{farmer['id']}/reject",
        json={"reason": "invalid documents"},
        headers=bearer(admin_token),
    )
    assert resp.status_code == 200
    login = client.post("/api/v1/farmers/login", json={"email": payload["email"], "password": payload["password"]})
    assert login.status_code == 403
    body = login.json()
    assert body["status"] == "REJECTED"
    assert body["reason"] == "invalid documents"


def test_wrong_password_and_unknown_email_look_the_same(client, register_farmer):
    payload, _ = register_farmer()
    wrong = client.post("/api/v1/farmers/login", json={"email": payload["email"], "password": "not-it-at-all"})
    unknown = client.post("/api/v1/farmers/login", json={"email": "ghost@example.com", "password": "not-it-at-all"})
    assert wrong.status_code == unknown.status_code == 401
    assert wrong.json() == unknown.json() == {"message": "Invalid email or password"}


def test_register_validation_errors(client):
    resp = client.post("/api/v1/farmers/register", json=farmer_payload(mobile="12345", cropType="tobacco"))
    assert resp.status_code == 400
    fields = {e["field"] for e in resp.json()["errors"]}
    assert {"mobile", "cropType"} <= fields

    missing = client.post("/api/v1/farmers/register", json={"email": "x@example.com"})
    assert missing.status_code == 400
    assert missing.json()["message"] == "Validation failed"


def test_duplicate_registration_conflicts(client, register_farmer):
    payload, _ = register_farmer()
    resp = client.post("/api/v1/farmers/register", json=farmer_payload(email=payload["email"]))
    assert resp.status_code == 409
    resp = client.post("/api/v1/farmers/register", json=farmer_payload(mobile=payload["mobile"]))
    assert resp.status_code == 409


def test_otp_registration_pending_under_approval_policy(client):
    payload = farmer_payload()
    resp = _otp_register(client, payload)
    assert resp.status_code == 201, resp.text
    body = resp.json()
    assert body["farmer"]["status"] == "pending"
    assert body["farmer"]["isVerified"] is True
    assert "token" not in body


def test_otp_registration_activates_without_approval_policy(client, monkeypatch):
    monkeypatch.setenv("KM_REQUIRE_ADMIN_APPROVAL", "false")
    payload = farmer_payload()
    resp = _otp_register(client, payload)
    assert resp.status_code == 201, resp.text
    body = resp.json()
    assert body["farmer"]["status"] == "approved"
    assert decode_access_token(body["token"]).subject_id == body["farmer"]["id"]

    login = client.post("/api/v1/farmers/login", json={"email": payload["email"], "password": payload["password"]})
    assert login.status_code == 200


def test_single_step_register_refused_without_approval_policy(client, monkeypatch):
    monkeypatch.setenv("KM_REQUIRE_ADMIN_APPROVAL", "false")
    resp = client.post("/api/v1/farmers/register", json=farmer_payload())
    assert resp.status_code == 400


def test_wrong_otp_rejected_and_nothing_created(client, admin_token):
    payload = farmer_payload()
    client.post("/api/v1/farmers/register/request-otp", json={"email": payload["email"]})
    resp = client.post("/api/v1/farmers/register/verify-otp", json={**payload, "otp": "abcdef"})
    assert resp.status_code == 401
    assert resp.json()["reason"] == "INVALID_CODE"
    search = client.get(f"/api/v1/admin/farmers?search={payload['email']}", headers=bearer(admin_token))
    assert search.json()["pagination"]["total"] == 0


def test_verify_without_request_is_not_found(client):
    resp = client.post("/api/v1/farmers/register/verify-otp", json={**farmer_payload(), "otp": "123456"})
    assert resp.status_code == 401
    assert resp.json()["reason"] == "NOT_FOUND"


def test_request_otp_for_registered_email_conflicts(client, register_farmer):
    payload, _ = register_farmer()
    resp = client.post("/api/v1/farmers/register/request-otp", json={"email": payload["email"]})
    assert resp.status_code == 409
    bad = client.post("/api/v1/farmers/register/request-otp", json={"email": "not-an-email"})
    assert bad.status_code == 400


def test_profile_and_self_service(client, approved_farmer):
    payload, farmer, token = approved_farmer()
    profile = client.get("/api/v1/farmers/profile", headers=bearer(token))
    assert profile.status_code == 200
    assert profile.json()["farmer"]["email"] == payload["email"]
    assert len(profile.json()["farmer"]["loginHistory"]) == 1

    updated = client.put("/api/v1/farmers/profile", json={"location": "Mandya"}, headers=bearer(token))
    assert updated.status_code == 200
    assert updated.json()["farmer"]["location"] == "Mandya"

    escalate = client.put("/api/v1/farmers/profile", json={"status": "approved"}, headers=bearer(token))
    assert escalate.status_code == 400

    lang = client.put("/api/v1/farmers/profile/language", json={"language": "hindi"}, headers=bearer(token))
    assert lang.json()["farmer"]["language"] == "hindi"
    bad_lang = client.put("/api/v1/farmers/profile/language", json={"language": "klingon"}, headers=bearer(token))
    assert bad_lang.status_code == 400


def test_change_password(client, approved_farmer):
    payload, _, token = approved_farmer()
    wrong = client.put(
        "/api/v1/farmers/password",
        json={"currentPassword": "nope-nope-nope", "newPassword": "fresh-pass-456"},
        headers=bearer(token),
    )
    assert wrong.status_code == 400
    ok = client.put(
        "/api/v1/farmers/password",
        json={"currentPassword": payload["password"], "newPassword": "fresh-pass-456"},
        headers=bearer(token),
    )
    assert ok.status_code == 200
    login = client.post("/api/v1/farmers/login", json={"email": payload["email"], "password": "fresh-pass-456"})
    assert login.status_code == 200
