import uuid

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.errors import ConflictError, InternalError, ValidationError
from app.models import Base
from app.services.accounts import (
    AccountService,
    AccountStatusError,
    AlreadyApprovedError,
    InvalidCredentialsError,
    InvalidTransitionError,
    LoginOutcome,
)
from app.services.credential_store import CredentialStore, JsonCredentialStore, SqlCredentialStore


@pytest.fixture(params=["sql", "json"])
def store(request, tmp_path):
    if request.param == "json":
        yield JsonCredentialStore(tmp_path / "farmers.json")
        return
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    Session = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    db = Session()
    try:
        yield SqlCredentialStore(db)
    finally:
        db.close()
        engine.dispose()


def _fields(**overrides) -> dict:
    tag = uuid.uuid4().hex[:8]
    fields = {
        "full_name": "Lakshmi Devi",
        "email": f"lakshmi_{tag}@example.com",
        "mobile": "8" + str(uuid.uuid4().int)[:9],
        "password": "farmer-pass-123",
        "location": "Hassan",
        "crop_type": "vegetables",
        "language": "english",
    }
    fields.update(overrides)
    return fields


def _service(store, approval: bool = True) -> AccountService:
    return AccountService(store, approval_required=lambda: approval)


def test_register_creates_pending_account_with_audit(store):
    service = _service(store)
    account = service.register(_fields(email="Lakshmi@Example.COM "), email_verified=False)
    assert account.status == "pending"
    assert account.email == "lakshmi@example.com"
    assert account.is_verified is False
    assert account.password_hash != "farmer-pass-123"
    [entry] = store.list_status_audits(account.id)
    assert entry.from_status is None
    assert entry.to_status == "pending"


def test_register_without_approval_policy_activates_verified_account(store):
    service = _service(store, approval=False)
    fields = _fields()
    account = service.register(fields, email_verified=True)
    assert account.status == "approved"
    assert account.approved_at is not None
    assert service.authenticate(fields["email"], fields["password"]).id == account.id


def test_register_validation_reports_each_field(store):
    with pytest.raises(ValidationError) as exc_info:
        _service(store).register(
            _fields(email="not-an-email", mobile="12345", crop_type="tobacco", password="short"),
            email_verified=False,
        )
    fields = {e["field"] for e in exc_info.value.errors}
    assert {"email", "mobile", "cropType", "password"} <= fields


def test_duplicate_email_or_mobile_conflicts(store):
    service = _service(store)
    first = _fields()
    service.register(first, email_verified=False)
    with pytest.raises(ConflictError):
        service.register(_fields(email=first["email"].upper()), email_verified=False)
    with pytest.raises(ConflictError):
        service.register(_fields(mobile=first["mobile"]), email_verified=False)


def test_login_pending_account_refused(store):
    service = _service(store)
    fields = _fields()
    service.register(fields, email_verified=False)
    with pytest.raises(AccountStatusError) as exc_info:
        service.authenticate(fields["email"], fields["password"])
    assert exc_info.value.status_code == 403
    assert exc_info.value.extra["status"] == "PENDING"


def test_wrong_password_hides_account_status(store):
    service = _service(store)
    fields = _fields()
    account = service.register(fields, email_verified=False)
    service.reject(account.id, "invalid documents", "admin-1")
    result = service.login_eligibility(store.find_farmer_by_email(fields["email"]), "wrong-password")
    assert result.outcome is LoginOutcome.INVALID_CREDENTIALS
    with pytest.raises(InvalidCredentialsError):
        service.authenticate(fields["email"], "wrong-password")


def test_unknown_email_matches_wrong_password_error(store):
    service = _service(store)
    fields = _fields()
    service.register(fields, email_verified=False)
    with pytest.raises(InvalidCredentialsError) as unknown:
        service.authenticate("nobody@example.com", "whatever-pass")
    with pytest.raises(InvalidCredentialsError) as wrong:
        service.authenticate(fields["email"], "whatever-pass")
    assert unknown.value.to_payload() == wrong.value.to_payload()


def test_rejected_login_carries_reason(store):
    service = _service(store)
    fields = _fields()
    account = service.register(fields, email_verified=False)
    service.reject(account.id, "invalid documents", "admin-1")
    with pytest.raises(AccountStatusError) as exc_info:
        service.authenticate(fields["email"], fields["password"])
    assert exc_info.value.extra == {"status": "REJECTED", "reason": "invalid documents"}


def test_suspended_and_inactive_accounts_refused(store):
    service = _service(store)
    fields = _fields()
    account = service.register(fields, email_verified=False)
    service.approve(account.id, "admin-1")
    store.update_farmer(account.id, {"is_active": False})
    with pytest.raises(AccountStatusError) as inactive:
        service.authenticate(fields["email"], fields["password"])
    assert inactive.value.extra["status"] == "INACTIVE"

    store.update_farmer(account.id, {"is_active": True})
    service.suspend(account.id, None, "admin-1")
    with pytest.raises(AccountStatusError) as suspended:
        service.authenticate(fields["email"], fields["password"])
    assert suspended.value.extra == {"status": "SUSPENDED", "reason": "Not specified"}


def test_unverified_account_refused_without_approval_policy(store):
    service = _service(store, approval=False)
    fields = _fields()
    account = service.register(fields, email_verified=False)
    store.update_farmer(account.id, {"status": "approved"})
    with pytest.raises(AccountStatusError) as exc_info:
        service.authenticate(fields["email"], fields["password"])
    assert exc_info.value.extra["status"] == "UNVERIFIED"


def test_approved_login_records_history(store):
    service = _service(store)
    fields = _fields()
    account = service.register(fields, email_verified=False)
    service.approve(account.id, "admin-1")
    for i in range(12):
        logged_in = service.authenticate(fields["email"], fields["password"], ip_address=f"10.0.0.{i}")
    assert logged_in.last_login_at is not None
    assert len(logged_in.login_history) == 10
    assert logged_in.login_history[-1]["ip_address"] == "10.0.0.11"


def test_transition_rules(store):
    service = _service(store)
    account = service.register(_fields(), email_verified=False)
    with pytest.raises(InvalidTransitionError):
        service.suspend(account.id, "too early", "admin-1")
    approved = service.approve(account.id, "admin-1")
    assert approved.approved_by_admin_id == "admin-1"
    with pytest.raises(AlreadyApprovedError):
        service.approve(account.id, "admin-1")
    with pytest.raises(InvalidTransitionError):
        service.reject(account.id, "changed mind", "admin-1")
    rejected = service.reject(service.register(_fields(), email_verified=False).id, "  ", "admin-1")
    assert rejected.rejection_reason == "Not specified"


def test_override_status_is_audited(store):
    service = _service(store)
    account = service.register(_fields(), email_verified=False)
    service.reject(account.id, "blurry photo", "admin-1")
    restored = service.override_status(account.id, "approved", "resubmitted documents", "admin-2")
    assert restored.status == "approved"
    assert restored.rejection_reason is None
    history = store.list_status_audits(account.id)
    assert [e.to_status for e in history] == ["pending", "rejected", "approved"]
    assert history[-1].is_override is True
    assert history[-1].actor_admin_id == "admin-2"
    with pytest.raises(ValidationError):
        service.override_status(account.id, "deleted", None, "admin-2")


def test_store_refuses_password_through_update(store):
    account = _service(store).register(_fields(), email_verified=False)
    with pytest.raises(ValidationError):
        store.update_farmer(account.id, {"password": "new-password-1"})
    with pytest.raises(ValidationError):
        store.update_farmer(account.id, {"password_hash": "x"})


def test_profile_update_limited_to_profile_fields(store):
    service = _service(store)
    account = service.register(_fields(), email_verified=False)
    with pytest.raises(ValidationError):
        service.update_profile(account.id, {"status": "approved"})
    updated = service.update_profile(account.id, {"location": "Mandya", "crop_type": "SUGARCANE"})
    assert updated.location == "Mandya"
    assert updated.crop_type == "sugarcane"
    assert updated.status == "pending"


def test_profile_update_mobile_conflict(store):
    service = _service(store)
    first = service.register(_fields(), email_verified=False)
    second = service.register(_fields(), email_verified=False)
    with pytest.raises(ConflictError):
        service.update_profile(second.id, {"mobile": first.mobile})


def test_change_password(store):
    service = _service(store)
    fields = _fields()
    account = service.register(fields, email_verified=False)
    service.approve(account.id, "admin-1")
    with pytest.raises(ValidationError):
        service.change_password(account.id, "not-the-password", "brand-new-pass")
    with pytest.raises(ValidationError):
        service.change_password(account.id, fields["password"], "short")
    service.change_password(account.id, fields["password"], "brand-new-pass")
    with pytest.raises(InvalidCredentialsError):
        service.authenticate(fields["email"], fields["password"])
    assert service.authenticate(fields["email"], "brand-new-pass").id == account.id


def test_dashboard_stats_and_listing(store):
    service = _service(store)
    ids = [service.register(_fields(full_name=f"Farmer Number {i}"), email_verified=False).id for i in range(4)]
    service.approve(ids[0], "admin-1")
    service.reject(ids[1], "duplicate", "admin-1")
    service.approve(ids[2], "admin-1")
    service.suspend(ids[2], "fraud check", "admin-1")
    stats = service.dashboard_stats(recent=3)
    assert stats["total_farmers"] == 4
    assert stats["pending_approvals"] == 1
    assert stats["approved_farmers"] == 1
    assert stats["rejected_farmers"] == 1
    assert stats["suspended_farmers"] == 1
    assert len(stats["recent_registrations"]) == 3

    pending, total = store.list_farmers(status="pending")
    assert total == 1 and pending[0].id == ids[3]
    found, total = store.list_farmers(search="number 1")
    assert total == 1 and found[0].id == ids[1]


def test_admin_authentication(store):
    service = _service(store)
    admin = store.create_admin(username="ops", email="Ops@Example.com", password="admin-pass-123", role="MAIN_ADMIN")
    assert service.authenticate_admin("ops@example.com", "admin-pass-123").id == admin.id
    with pytest.raises(InvalidCredentialsError):
        service.authenticate_admin("ops@example.com", "wrong-pass")
    with pytest.raises(InvalidCredentialsError):
        service.authenticate_admin("ghost@example.com", "admin-pass-123")
    with pytest.raises(ConflictError):
        store.create_admin(username="ops", email="other@example.com", password="admin-pass-123", role="admin")


def test_damaged_json_store_fails_loudly_and_keeps_file(tmp_path):
    path = tmp_path / "farmers.json"
    store = JsonCredentialStore(path)
    service = _service(store)
    first = _fields()
    service.register(first, email_verified=False)
    damaged = path.read_text(encoding="utf-8")[:40]
    path.write_text(damaged, encoding="utf-8")

    with pytest.raises(InternalError):
        store.find_farmer_by_email(first["email"])
    with pytest.raises(InternalError):
        service.register(_fields(), email_verified=False)
    with pytest.raises(InternalError):
        store.list_admins_by_role("MAIN_ADMIN")
    assert path.read_text(encoding="utf-8") == damaged


def test_incomplete_backend_rejected_at_construction():
    class ReadOnlyStore(CredentialStore):
        def find_farmer_by_email(self, email):
            return None

    with pytest.raises(TypeError):
        ReadOnlyStore()
