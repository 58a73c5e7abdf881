"""
Farmer account lifecycle.

Status transitions allowed without an override::

    pending  -> approved | rejected
    approved -> suspended

Login eligibility is evaluated in a fixed order and always checks the
password before revealing anything about account status.
"""

from __future__ import annotations

import datetime
import enum
import logging
import re
from dataclasses import dataclass
from typing import Callable, Optional

from ..core.audit import audit_log
from ..core.clock import utcnow
from ..core.config import require_admin_approval
from ..core.constants import (
    ADMIN_TOKEN_TTL,
    EMAIL_PATTERN,
    FARMER_TOKEN_TTL,
    MIN_PASSWORD_LENGTH,
    MOBILE_PATTERN,
    CropType,
    FarmerStatus,
    Language,
    Role,
    TokenType,
)
from ..core.errors import ConflictError, ForbiddenError, NotFoundError, UnauthorizedError, ValidationError, log_exception
from ..core.security import create_access_token, hash_password
from .credential_store import AdminAccount, CredentialStore, FarmerAccount, normalize_email

logger = logging.getLogger("accounts")

ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    FarmerStatus.PENDING.value: frozenset({FarmerStatus.APPROVED.value, FarmerStatus.REJECTED.value}),
    FarmerStatus.APPROVED.value: frozenset({FarmerStatus.SUSPENDED.value}),
}
PROFILE_FIELDS = frozenset({"full_name", "mobile", "location", "crop_type", "language"})
DEFAULT_REASON = "Not specified"

_EMAIL_RE = re.compile(EMAIL_PATTERN)
_MOBILE_RE = re.compile(MOBILE_PATTERN)


class InvalidCredentialsError(UnauthorizedError):
    default_message = "Invalid email or password"


class AccountStatusError(ForbiddenError):
    """403 carrying a machine-readable ``status`` (PENDING, REJECTED...)."""


class AlreadyApprovedError(ConflictError):
    default_message = "Farmer is already approved"


class InvalidTransitionError(ConflictError):
    default_message = "Status transition not allowed"


class LoginOutcome(str, enum.Enum):
    APPROVED = "APPROVED"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    PENDING_APPROVAL = "PENDING"
    REJECTED = "REJECTED"
    SUSPENDED = "SUSPENDED"
    INACTIVE = "INACTIVE"
    UNVERIFIED = "UNVERIFIED"


_OUTCOME_MESSAGES = {
    LoginOutcome.PENDING_APPROVAL: "Your account is pending admin approval. Please wait for approval.",
    LoginOutcome.REJECTED: "Your registration has been rejected.",
    LoginOutcome.SUSPENDED: "Your account has been suspended. Please contact support.",
    LoginOutcome.INACTIVE: "Your account is inactive. Please contact support.",
    LoginOutcome.UNVERIFIED: "Please verify your email address before logging in.",
}


@dataclass(frozen=True)
class LoginResult:
    outcome: LoginOutcome
    account: Optional[FarmerAccount] = None
    reason: Optional[str] = None

    @property
    def allowed(self) -> bool:
        return self.outcome is LoginOutcome.APPROVED

    def raise_for_outcome(self) -> FarmerAccount:
        if self.outcome is LoginOutcome.APPROVED and self.account is not None:
            return self.account
        if self.outcome is LoginOutcome.INVALID_CREDENTIALS:
            raise InvalidCredentialsError()
        raise AccountStatusError(_OUTCOME_MESSAGES[self.outcome], status=self.outcome.value, reason=self.reason)


def status_outcome(account: FarmerAccount, *, approval_required: bool) -> LoginResult:
    """Steps 3-8 of login eligibility; also re-applied by the request guard."""
    if account.status == FarmerStatus.PENDING.value:
        return LoginResult(LoginOutcome.PENDING_APPROVAL, account)
    if account.status == FarmerStatus.REJECTED.value:
        return LoginResult(LoginOutcome.REJECTED, account, account.rejection_reason)
    if account.status == FarmerStatus.SUSPENDED.value:
        return LoginResult(LoginOutcome.SUSPENDED, account, account.suspension_reason)
    if not account.is_active:
        return LoginResult(LoginOutcome.INACTIVE, account)
    if not approval_required and not account.is_verified:
        return LoginResult(LoginOutcome.UNVERIFIED, account)
    return LoginResult(LoginOutcome.APPROVED, account)


_dummy_hash: Optional[str] = None


def _burn_password_check(store: CredentialStore, password: str) -> None:
    # Unknown emails cost the same PBKDF2 work as a wrong password.
    global _dummy_hash
    if _dummy_hash is None:
        _dummy_hash = hash_password("not-a-real-password")
    store.verify_password(password or "", _dummy_hash)


def _check_password(store: CredentialStore, password: str, password_hash: str, subject_id: str) -> bool:
    try:
        return store.verify_password(password or "", password_hash)
    except ValueError as exc:
        log_exception(logger, "Stored password hash unreadable", extra={"subject_id": subject_id}, exc=exc)
        return False


def _field_error(errors: list[dict], field_name: str, message: str) -> None:
    errors.append({"field": field_name, "message": message})


def _validate_profile_values(values: dict, errors: list[dict]) -> None:
    if "full_name" in values:
        name = (values.get("full_name") or "").strip()
        if not 3 <= len(name) <= 100:
            _field_error(errors, "fullName", "Full name must be between 3 and 100 characters")
        values["full_name"] = name
    if "mobile" in values:
        mobile = (values.get("mobile") or "").strip()
        if not _MOBILE_RE.match(mobile):
            _field_error(errors, "mobile", "Please enter a valid 10-digit mobile number")
        values["mobile"] = mobile
    if "location" in values:
        location = (values.get("location") or "").strip()
        if not location:
            _field_error(errors, "location", "Location is required")
        values["location"] = location
    if "crop_type" in values:
        crop = (values.get("crop_type") or "").strip().lower()
        if crop not in {c.value for c in CropType}:
            _field_error(errors, "cropType", "Invalid crop type")
        values["crop_type"] = crop
    if "language" in values:
        language = (values.get("language") or Language.ENGLISH.value).strip().lower()
        if language not in {lang.value for lang in Language}:
            _field_error(errors, "language", "Invalid language")
        values["language"] = language


def validate_registration(fields: dict) -> dict:
    """Normalise and validate a registration payload; raises ValidationError with field errors."""
    errors: list[dict] = []
    values = {
        "full_name": fields.get("full_name"),
        "email": normalize_email(fields.get("email") or ""),
        "mobile": fields.get("mobile"),
        "location": fields.get("location"),
        "crop_type": fields.get("crop_type"),
        "language": fields.get("language") or Language.ENGLISH.value,
    }
    if not _EMAIL_RE.match(values["email"]):
        _field_error(errors, "email", "Please enter a valid email address")
    _validate_profile_values(values, errors)
    password = fields.get("password") or ""
    if len(password) < MIN_PASSWORD_LENGTH:
        _field_error(errors, "password", f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    if errors:
        raise ValidationError(errors=errors)
    return values


def farmer_token(account: FarmerAccount) -> str:
    return create_access_token(
        subject_id=account.id,
        email=account.email,
        role=Role.FARMER,
        token_type=TokenType.FARMER,
        ttl=FARMER_TOKEN_TTL,
    )


def admin_token(account: AdminAccount) -> str:
    return create_access_token(
        subject_id=account.id,
        email=account.email,
        role=account.role,
        token_type=TokenType.ADMIN,
        ttl=ADMIN_TOKEN_TTL,
    )


class AccountService:
    def __init__(
        self,
        store: CredentialStore,
        *,
        clock: Callable[[], datetime.datetime] = utcnow,
        approval_required: Callable[[], bool] = require_admin_approval,
    ) -> None:
        self.store = store
        self.clock = clock
        self.approval_required = approval_required

    # -- registration --------------------------------------------------------
    def register(self, fields: dict, *, email_verified: bool) -> FarmerAccount:
        values = validate_registration(fields)
        now = self.clock()
        values["is_verified"] = bool(email_verified)
        if not self.approval_required() and email_verified:
            values["status"] = FarmerStatus.APPROVED.value
            values["approved_at"] = now
        else:
            values["status"] = FarmerStatus.PENDING.value
        account = self.store.create_farmer(values, fields.get("password") or "")
        self.store.add_status_audit(account.id, from_status=None, to_status=account.status, reason="registered")
        audit_log(
            "FARMER_REGISTERED",
            email=account.email,
            subject_id=account.id,
            details={"status": account.status, "verified": account.is_verified},
        )
        logger.info("Farmer registered id=%s status=%s", account.id, account.status)
        return account

    def is_login_ready(self, account: FarmerAccount) -> bool:
        return status_outcome(account, approval_required=self.approval_required()).allowed

    # -- login ---------------------------------------------------------------
    def login_eligibility(self, account: Optional[FarmerAccount], password: str) -> LoginResult:
        if account is None:
            _burn_password_check(self.store, password)
            return LoginResult(LoginOutcome.INVALID_CREDENTIALS)
        if not _check_password(self.store, password, account.password_hash, account.id):
            return LoginResult(LoginOutcome.INVALID_CREDENTIALS)
        return status_outcome(account, approval_required=self.approval_required())

    def authenticate(
        self,
        email: str,
        password: str,
        *,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> FarmerAccount:
        account = self.store.find_farmer_by_email(email)
        result = self.login_eligibility(account, password)
        if not result.allowed:
            audit_log(
                "FARMER_LOGIN",
                email=email,
                subject_id=account.id if account else None,
                ip_address=ip_address,
                success=False,
                details={"outcome": result.outcome.value},
            )
            result.raise_for_outcome()
        account = self.store.record_farmer_login(account.id, ip_address=ip_address, user_agent=user_agent)
        audit_log("FARMER_LOGIN", email=account.email, subject_id=account.id, ip_address=ip_address)
        return account

    def authenticate_admin(self, email: str, password: str, *, ip_address: Optional[str] = None) -> AdminAccount:
        admin = self.store.find_admin_by_email(email)
        if admin is None:
            _burn_password_check(self.store, password)
            ok = False
        else:
            ok = _check_password(self.store, password, admin.password_hash, admin.id)
        if not ok:
            audit_log("ADMIN_LOGIN", email=email, ip_address=ip_address, success=False)
            raise InvalidCredentialsError("Invalid credentials")
        if not admin.is_active:
            audit_log("ADMIN_LOGIN", email=email, subject_id=admin.id, ip_address=ip_address, success=False)
            raise AccountStatusError("Admin account is inactive", status=LoginOutcome.INACTIVE.value)
        admin = self.store.record_admin_login(admin.id)
        audit_log("ADMIN_LOGIN", email=admin.email, subject_id=admin.id, ip_address=ip_address)
        return admin

    # -- admin transitions ---------------------------------------------------
    def _require_farmer(self, farmer_id: str) -> FarmerAccount:
        account = self.store.find_farmer_by_id(farmer_id)
        if account is None:
            raise NotFoundError("Farmer not found")
        return account

    def _transition(
        self,
        account: FarmerAccount,
        to_status: str,
        changes: dict,
        *,
        admin_id: Optional[str],
        reason: Optional[str],
        is_override: bool = False,
    ) -> FarmerAccount:
        from_status = account.status
        updated = self.store.update_farmer(account.id, {"status": to_status, **changes})
        self.store.add_status_audit(
            account.id,
            from_status=from_status,
            to_status=to_status,
            actor_admin_id=admin_id,
            reason=reason,
            is_override=is_override,
        )
        audit_log(
            "FARMER_STATUS_OVERRIDE" if is_override else "FARMER_STATUS_CHANGED",
            email=account.email,
            subject_id=account.id,
            actor_id=admin_id,
            details={"from": from_status, "to": to_status, "reason": reason},
        )
        return updated

    def _check_transition(self, account: FarmerAccount, to_status: str) -> None:
        if to_status not in ALLOWED_TRANSITIONS.get(account.status, frozenset()):
            raise InvalidTransitionError(
                f"Cannot change status from {account.status} to {to_status}",
                current_status=account.status,
            )

    def approve(self, farmer_id: str, admin_id: str) -> FarmerAccount:
        account = self._require_farmer(farmer_id)
        if account.status == FarmerStatus.APPROVED.value:
            raise AlreadyApprovedError()
        self._check_transition(account, FarmerStatus.APPROVED.value)
        changes = {
            "approved_at": self.clock(),
            "approved_by_admin_id": admin_id,
            "rejection_reason": None,
        }
        updated = self._transition(account, FarmerStatus.APPROVED.value, changes, admin_id=admin_id, reason=None)
        logger.info("Farmer approved id=%s admin=%s", farmer_id, admin_id)
        return updated

    def reject(self, farmer_id: str, reason: Optional[str], admin_id: str) -> FarmerAccount:
        account = self._require_farmer(farmer_id)
        self._check_transition(account, FarmerStatus.REJECTED.value)
        reason = (reason or "").strip() or DEFAULT_REASON
        changes = {"rejection_reason": reason, "approved_at": None, "approved_by_admin_id": None}
        updated = self._transition(account, FarmerStatus.REJECTED.value, changes, admin_id=admin_id, reason=reason)
        logger.info("Farmer rejected id=%s admin=%s", farmer_id, admin_id)
        return updated

    def suspend(self, farmer_id: str, reason: Optional[str], admin_id: str) -> FarmerAccount:
        account = self._require_farmer(farmer_id)
        self._check_transition(account, FarmerStatus.SUSPENDED.value)
        reason = (reason or "").strip() or DEFAULT_REASON
        updated = self._transition(
            account,
            FarmerStatus.SUSPENDED.value,
            {"suspension_reason": reason},
            admin_id=admin_id,
            reason=reason,
        )
        logger.info("Farmer suspended id=%s admin=%s", farmer_id, admin_id)
        return updated

    def override_status(self, farmer_id: str, status: str, reason: Optional[str], admin_id: str) -> FarmerAccount:
        """Administrative override: any status to any status, always audited."""
        try:
            target = FarmerStatus((status or "").strip().lower()).value
        except ValueError:
            raise ValidationError(errors=[{"field": "status", "message": "Invalid status"}]) from None
        account = self._require_farmer(farmer_id)
        reason = (reason or "").strip() or None
        changes: dict = {}
        if target == FarmerStatus.APPROVED.value:
            changes = {
                "approved_at": self.clock(),
                "approved_by_admin_id": admin_id,
                "rejection_reason": None,
                "suspension_reason": None,
            }
        elif target == FarmerStatus.REJECTED.value:
            changes = {"rejection_reason": reason or DEFAULT_REASON, "approved_at": None, "approved_by_admin_id": None}
        elif target == FarmerStatus.SUSPENDED.value:
            changes = {"suspension_reason": reason or DEFAULT_REASON}
        else:
            changes = {"approved_at": None, "approved_by_admin_id": None}
        logger.warning(
            "Administrative status override farmer=%s %s -> %s admin=%s",
            farmer_id,
            account.status,
            target,
            admin_id,
        )
        return self._transition(account, target, changes, admin_id=admin_id, reason=reason, is_override=True)

    # -- self service --------------------------------------------------------
    def update_profile(self, farmer_id: str, changes: dict) -> FarmerAccount:
        values = {k: v for k, v in changes.items() if v is not None}
        forbidden = set(values) - PROFILE_FIELDS
        if forbidden:
            raise ValidationError(
                "Only profile fields can be updated",
                errors=[{"field": name, "message": "Field cannot be updated"} for name in sorted(forbidden)],
            )
        errors: list[dict] = []
        _validate_profile_values(values, errors)
        if errors:
            raise ValidationError(errors=errors)
        if not values:
            return self._require_farmer(farmer_id)
        return self.store.update_farmer(farmer_id, values)

    def change_password(self, farmer_id: str, current_password: str, new_password: str) -> FarmerAccount:
        account = self._require_farmer(farmer_id)
        if not _check_password(self.store, current_password, account.password_hash, account.id):
            audit_log("FARMER_PASSWORD_CHANGE", email=account.email, subject_id=account.id, success=False)
            raise ValidationError("Current password is incorrect")
        updated = self.store.set_farmer_password(farmer_id, new_password)
        audit_log("FARMER_PASSWORD_CHANGE", email=account.email, subject_id=account.id)
        return updated

    # -- dashboard -----------------------------------------------------------
    def dashboard_stats(self, *, recent: int = 5) -> dict:
        counts = self.store.farmer_status_counts()
        recent_items, _ = self.store.list_farmers(offset=0, limit=recent)
        return {
            "total_farmers": counts.get("total", 0),
            "pending_approvals": counts.get(FarmerStatus.PENDING.value, 0),
            "approved_farmers": counts.get(FarmerStatus.APPROVED.value, 0),
            "rejected_farmers": counts.get(FarmerStatus.REJECTED.value, 0),
            "suspended_farmers": counts.get(FarmerStatus.SUSPENDED.value, 0),
            "recent_registrations": recent_items,
        }
