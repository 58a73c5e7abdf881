"""
Credential store for farmer and admin accounts.

One interface, two backends chosen once at startup (``KM_STORAGE_MODE``):

* ``SqlCredentialStore`` keeps rows in the SQLAlchemy database and relies on
  per-request transactions for atomic read-modify-write.
* ``JsonCredentialStore`` keeps a single JSON document on disk and serialises
  every mutation through `JsonDocument.update`.

Password hashes are produced here and nowhere else, always from a plaintext
that passed the minimum-length check.
"""

from __future__ import annotations

import abc
import dataclasses
import logging
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Iterator, Optional

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.clock import ensure_utc, parse_iso, utcnow
from ..core.constants import LOGIN_HISTORY_LIMIT, MIN_PASSWORD_LENGTH, FarmerStatus, Role, parse_role
from ..core.errors import ConflictError, InternalError, NotFoundError, ValidationError, log_exception
from ..core.fileio import DocumentReadError, JsonDocument
from ..core.security import hash_password, verify_password as _verify_password_hash
from ..models.admin import Admin
from ..models.farmer import Farmer
from ..models.farmer_status_audit import FarmerStatusAudit

logger = logging.getLogger("credential-store")

FARMER_CONFLICT_MESSAGE = "Farmer with this email or mobile number already exists"
ADMIN_CONFLICT_MESSAGE = "Admin with this email or username already exists"

# Columns a caller may change through update_farmer; password goes through set_farmer_password.
FARMER_UPDATABLE_FIELDS = frozenset(
    {
        "full_name",
        "mobile",
        "location",
        "crop_type",
        "language",
        "status",
        "is_active",
        "is_verified",
        "approved_at",
        "approved_by_admin_id",
        "rejection_reason",
        "suspension_reason",
    }
)
PASSWORD_FIELDS = frozenset({"password", "password_hash"})


@dataclass
class FarmerAccount:
    id: str
    full_name: str
    email: str
    mobile: str
    password_hash: str = field(repr=False)
    location: str
    crop_type: str
    language: str
    status: str
    is_active: bool
    is_verified: bool
    registered_at: datetime
    updated_at: datetime
    approved_at: Optional[datetime] = None
    approved_by_admin_id: Optional[str] = None
    rejection_reason: Optional[str] = None
    suspension_reason: Optional[str] = None
    last_login_at: Optional[datetime] = None
    login_history: list = field(default_factory=list)


@dataclass
class AdminAccount:
    id: str
    username: str
    email: str
    password_hash: str = field(repr=False)
    role: Role
    is_active: bool
    created_at: datetime
    updated_at: datetime
    last_login_at: Optional[datetime] = None


@dataclass
class StatusAuditEntry:
    id: str
    farmer_id: str
    actor_admin_id: Optional[str]
    from_status: Optional[str]
    to_status: str
    reason: Optional[str]
    is_override: bool
    created_at: datetime


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def _login_entry(ip_address: Optional[str], user_agent: Optional[str], when: datetime) -> dict:
    return {"timestamp": when.isoformat(), "ip_address": ip_address, "user_agent": user_agent}


def _check_update_keys(changes: dict) -> None:
    if PASSWORD_FIELDS & set(changes):
        raise ValidationError("Password changes must go through the password reset path")
    unknown = set(changes) - FARMER_UPDATABLE_FIELDS
    if unknown:
        raise ValidationError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")


class CredentialStore(abc.ABC):
    """Persistence contract for farmer/admin records."""

    # -- passwords -----------------------------------------------------------
    @staticmethod
    def hash_new_password(password: str) -> str:
        if not password or len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters long",
                errors=[{"field": "password", "message": "too short"}],
            )
        return hash_password(password)

    @staticmethod
    def verify_password(plaintext: str, password_hash: str) -> bool:
        return _verify_password_hash(plaintext, password_hash)

    # -- farmers -------------------------------------------------------------
    @abc.abstractmethod
    def create_farmer(self, fields: dict, password: str) -> FarmerAccount:
        ...

    @abc.abstractmethod
    def find_farmer_by_email(self, email: str) -> Optional[FarmerAccount]:
        ...

    @abc.abstractmethod
    def find_farmer_by_email_or_mobile(self, email: str, mobile: str) -> Optional[FarmerAccount]:
        ...

    @abc.abstractmethod
    def find_farmer_by_id(self, farmer_id: str) -> Optional[FarmerAccount]:
        ...

    @abc.abstractmethod
    def update_farmer(self, farmer_id: str, changes: dict) -> FarmerAccount:
        ...

    @abc.abstractmethod
    def set_farmer_password(self, farmer_id: str, password: str) -> FarmerAccount:
        ...

    @abc.abstractmethod
    def record_farmer_login(
        self, farmer_id: str, *, ip_address: Optional[str] = None, user_agent: Optional[str] = None
    ) -> FarmerAccount:
        ...

    @abc.abstractmethod
    def list_farmers(
        self,
        *,
        status: Optional[str] = None,
        search: Optional[str] = None,
        offset: int = 0,
        limit: int = 50,
    ) -> tuple[list[FarmerAccount], int]:
        ...

    @abc.abstractmethod
    def farmer_status_counts(self) -> dict[str, int]:
        ...

    @abc.abstractmethod
    def add_status_audit(
        self,
        farmer_id: str,
        *,
        from_status: Optional[str],
        to_status: str,
        actor_admin_id: Optional[str] = None,
        reason: Optional[str] = None,
        is_override: bool = False,
    ) -> StatusAuditEntry:
        ...

    @abc.abstractmethod
    def list_status_audits(self, farmer_id: str) -> list[StatusAuditEntry]:
        ...

    # -- admins --------------------------------------------------------------
    @abc.abstractmethod
    def create_admin(self, *, username: str, email: str, password: str, role: Role | str) -> AdminAccount:
        ...

    @abc.abstractmethod
    def find_admin_by_email(self, email: str) -> Optional[AdminAccount]:
        ...

    @abc.abstractmethod
    def find_admin_by_id(self, admin_id: str) -> Optional[AdminAccount]:
        ...

    @abc.abstractmethod
    def list_admins_by_role(self, role: Role | str) -> list[AdminAccount]:
        ...

    @abc.abstractmethod
    def record_admin_login(self, admin_id: str) -> AdminAccount:
        ...


def _status_counts(statuses: list[str]) -> dict[str, int]:
    counts = {s.value: 0 for s in FarmerStatus}
    for status in statuses:
        counts[status] = counts.get(status, 0) + 1
    counts["total"] = len(statuses)
    return counts


class SqlCredentialStore(CredentialStore):
    def __init__(self, db: Session) -> None:
        self.db = db

    @contextmanager
    def _db_errors(self, action: str, conflict_message: str = FARMER_CONFLICT_MESSAGE) -> Iterator[None]:
        try:
            yield
        except IntegrityError as exc:
            self.db.rollback()
            raise ConflictError(conflict_message) from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            log_exception(logger, "Credential store failure", extra={"action": action}, exc=exc)
            raise InternalError() from exc

    @staticmethod
    def _to_farmer(row: Farmer) -> FarmerAccount:
        return FarmerAccount(
            id=row.id,
            full_name=row.full_name,
            email=row.email,
            mobile=row.mobile,
            password_hash=row.password_hash,
            location=row.location,
            crop_type=row.crop_type,
            language=row.language,
            status=row.status,
            is_active=bool(row.is_active),
            is_verified=bool(row.is_verified),
            registered_at=ensure_utc(row.registered_at),
            updated_at=ensure_utc(row.updated_at),
            approved_at=ensure_utc(row.approved_at),
            approved_by_admin_id=row.approved_by_admin_id,
            rejection_reason=row.rejection_reason,
            suspension_reason=row.suspension_reason,
            last_login_at=ensure_utc(row.last_login_at),
            login_history=list(row.login_history or []),
        )

    @staticmethod
    def _to_admin(row: Admin) -> AdminAccount:
        return AdminAccount(
            id=row.id,
            username=row.username,
            email=row.email,
            password_hash=row.password_hash,
            role=parse_role(row.role),
            is_active=bool(row.is_active),
            created_at=ensure_utc(row.created_at),
            updated_at=ensure_utc(row.updated_at),
            last_login_at=ensure_utc(row.last_login_at),
        )

    def _farmer_row(self, farmer_id: str, *, for_update: bool = False) -> Farmer:
        q = self.db.query(Farmer).filter(Farmer.id == farmer_id)
        if for_update:
            q = q.with_for_update()
        row = q.first()
        if row is None:
            raise NotFoundError("Farmer not found")
        return row

    def create_farmer(self, fields: dict, password: str) -> FarmerAccount:
        password_hash = self.hash_new_password(password)
        email = normalize_email(fields["email"])
        mobile = fields["mobile"].strip()
        if self.find_farmer_by_email_or_mobile(email, mobile):
            raise ConflictError(FARMER_CONFLICT_MESSAGE)
        now = utcnow()
        row = Farmer(
            id=str(uuid.uuid4()),
            full_name=fields["full_name"],
            email=email,
            mobile=mobile,
            password_hash=password_hash,
            location=fields["location"],
            crop_type=fields["crop_type"],
            language=fields.get("language") or "english",
            status=fields.get("status") or FarmerStatus.PENDING.value,
            is_active=fields.get("is_active", True),
            is_verified=bool(fields.get("is_verified", False)),
            registered_at=now,
            updated_at=now,
            approved_at=fields.get("approved_at"),
            approved_by_admin_id=fields.get("approved_by_admin_id"),
            login_history=[],
        )
        with self._db_errors("create_farmer"):
            self.db.add(row)
            self.db.commit()
            self.db.refresh(row)
        return self._to_farmer(row)

    def find_farmer_by_email(self, email: str) -> Optional[FarmerAccount]:
        with self._db_errors("find_farmer_by_email"):
            row = self.db.query(Farmer).filter(func.lower(Farmer.email) == normalize_email(email)).first()
        return self._to_farmer(row) if row else None

    def find_farmer_by_email_or_mobile(self, email: str, mobile: str) -> Optional[FarmerAccount]:
        with self._db_errors("find_farmer_by_email_or_mobile"):
            row = (
                self.db.query(Farmer)
                .filter(or_(func.lower(Farmer.email) == normalize_email(email), Farmer.mobile == (mobile or "").strip()))
                .first()
            )
        return self._to_farmer(row) if row else None

    def find_farmer_by_id(self, farmer_id: str) -> Optional[FarmerAccount]:
        with self._db_errors("find_farmer_by_id"):
            row = self.db.get(Farmer, farmer_id)
        return self._to_farmer(row) if row else None

    def update_farmer(self, farmer_id: str, changes: dict) -> FarmerAccount:
        _check_update_keys(changes)
        with self._db_errors("update_farmer"):
            row = self._farmer_row(farmer_id, for_update=True)
            new_mobile = changes.get("mobile")
            if new_mobile and new_mobile != row.mobile:
                taken = self.db.query(Farmer.id).filter(Farmer.mobile == new_mobile, Farmer.id != farmer_id).first()
                if taken:
                    raise ConflictError("Mobile number already registered")
            for key, value in changes.items():
                setattr(row, key, value)
            row.updated_at = utcnow()
            self.db.add(row)
            self.db.commit()
            self.db.refresh(row)
        return self._to_farmer(row)

    def set_farmer_password(self, farmer_id: str, password: str) -> FarmerAccount:
        password_hash = self.hash_new_password(password)
        with self._db_errors("set_farmer_password"):
            row = self._farmer_row(farmer_id, for_update=True)
            row.password_hash = password_hash
            row.updated_at = utcnow()
            self.db.add(row)
            self.db.commit()
            self.db.refresh(row)
        return self._to_farmer(row)

    def record_farmer_login(
        self, farmer_id: str, *, ip_address: Optional[str] = None, user_agent: Optional[str] = None
    ) -> FarmerAccount:
        now = utcnow()
        with self._db_errors("record_farmer_login"):
            row = self._farmer_row(farmer_id, for_update=True)
            history = list(row.login_history or [])
            history.append(_login_entry(ip_address, user_agent, now))
            row.login_history = history[-LOGIN_HISTORY_LIMIT:]
            row.last_login_at = now
            self.db.add(row)
            self.db.commit()
            self.db.refresh(row)
        return self._to_farmer(row)

    def list_farmers(
        self,
        *,
        status: Optional[str] = None,
        search: Optional[str] = None,
        offset: int = 0,
        limit: int = 50,
    ) -> tuple[list[FarmerAccount], int]:
        with self._db_errors("list_farmers"):
            q = self.db.query(Farmer)
            if status:
                q = q.filter(Farmer.status == status)
            if search:
                pattern = f"%{search.strip().lower()}%"
                q = q.filter(
                    or_(
                        func.lower(Farmer.full_name).like(pattern),
                        func.lower(Farmer.email).like(pattern),
                        Farmer.mobile.like(pattern),
                        func.lower(Farmer.location).like(pattern),
                    )
                )
            total = q.count()
            rows = q.order_by(Farmer.registered_at.desc()).offset(offset).limit(limit).all()
        return [self._to_farmer(r) for r in rows], total

    def farmer_status_counts(self) -> dict[str, int]:
        with self._db_errors("farmer_status_counts"):
            rows = self.db.query(Farmer.status, func.count(Farmer.id)).group_by(Farmer.status).all()
        counts = {s.value: 0 for s in FarmerStatus}
        total = 0
        for status, count in rows:
            counts[status] = int(count)
            total += int(count)
        counts["total"] = total
        return counts

    def add_status_audit(
        self,
        farmer_id: str,
        *,
        from_status: Optional[str],
        to_status: str,
        actor_admin_id: Optional[str] = None,
        reason: Optional[str] = None,
        is_override: bool = False,
    ) -> StatusAuditEntry:
        row = FarmerStatusAudit(
            id=str(uuid.uuid4()),
            farmer_id=farmer_id,
            actor_admin_id=actor_admin_id,
            from_status=from_status,
            to_status=to_status,
            reason=reason,
            is_override=is_override,
            created_at=utcnow(),
        )
        with self._db_errors("add_status_audit"):
            self.db.add(row)
            self.db.commit()
        return StatusAuditEntry(
            id=row.id,
            farmer_id=row.farmer_id,
            actor_admin_id=row.actor_admin_id,
            from_status=row.from_status,
            to_status=row.to_status,
            reason=row.reason,
            is_override=row.is_override,
            created_at=ensure_utc(row.created_at),
        )

    def list_status_audits(self, farmer_id: str) -> list[StatusAuditEntry]:
        with self._db_errors("list_status_audits"):
            rows = (
                self.db.query(FarmerStatusAudit)
                .filter(FarmerStatusAudit.farmer_id == farmer_id)
                .order_by(FarmerStatusAudit.created_at.asc())
                .all()
            )
        return [
            StatusAuditEntry(
                id=r.id,
                farmer_id=r.farmer_id,
                actor_admin_id=r.actor_admin_id,
                from_status=r.from_status,
                to_status=r.to_status,
                reason=r.reason,
                is_override=bool(r.is_override),
                created_at=ensure_utc(r.created_at),
            )
            for r in rows
        ]

    def create_admin(self, *, username: str, email: str, password: str, role: Role | str) -> AdminAccount:
        password_hash = self.hash_new_password(password)
        now = utcnow()
        row = Admin(
            id=str(uuid.uuid4()),
            username=username.strip(),
            email=normalize_email(email),
            password_hash=password_hash,
            role=parse_role(role).value,
            is_active=True,
            created_at=now,
            updated_at=now,
        )
        with self._db_errors("create_admin", ADMIN_CONFLICT_MESSAGE):
            self.db.add(row)
            self.db.commit()
            self.db.refresh(row)
        return self._to_admin(row)

    def find_admin_by_email(self, email: str) -> Optional[AdminAccount]:
        with self._db_errors("find_admin_by_email"):
            row = self.db.query(Admin).filter(func.lower(Admin.email) == normalize_email(email)).first()
        return self._to_admin(row) if row else None

    def find_admin_by_id(self, admin_id: str) -> Optional[AdminAccount]:
        with self._db_errors("find_admin_by_id"):
            row = self.db.get(Admin, admin_id)
        return self._to_admin(row) if row else None

    def list_admins_by_role(self, role: Role | str) -> list[AdminAccount]:
        role = parse_role(role)
        with self._db_errors("list_admins_by_role"):
            rows = self.db.query(Admin).order_by(Admin.created_at.asc()).all()
        # Legacy rows may carry alias spellings such as "super_admin".
        return [self._to_admin(r) for r in rows if parse_role(r.role) == role]

    def record_admin_login(self, admin_id: str) -> AdminAccount:
        with self._db_errors("record_admin_login"):
            row = self.db.get(Admin, admin_id)
            if row is None:
                raise NotFoundError("Admin not found")
            row.last_login_at = utcnow()
            self.db.add(row)
            self.db.commit()
            self.db.refresh(row)
        return self._to_admin(row)


_FARMER_DATETIME_FIELDS = ("registered_at", "updated_at", "approved_at", "last_login_at")
_ADMIN_DATETIME_FIELDS = ("created_at", "updated_at", "last_login_at")


def _to_record(obj: Any, datetime_fields: tuple[str, ...]) -> dict:
    record = dataclasses.asdict(obj)
    for name in datetime_fields:
        value = record.get(name)
        record[name] = value.isoformat() if value else None
    if isinstance(record.get("role"), Role):
        record["role"] = record["role"].value
    return record


def _farmer_from_record(record: dict) -> FarmerAccount:
    data = dict(record)
    for name in _FARMER_DATETIME_FIELDS:
        data[name] = parse_iso(data.get(name))
    data["login_history"] = list(data.get("login_history") or [])
    return FarmerAccount(**data)


def _admin_from_record(record: dict) -> AdminAccount:
    data = dict(record)
    for name in _ADMIN_DATETIME_FIELDS:
        data[name] = parse_iso(data.get(name))
    data["role"] = parse_role(data.get("role"))
    return AdminAccount(**data)


def _empty_document() -> dict:
    return {"farmers": [], "admins": [], "status_audits": []}


class JsonCredentialStore(CredentialStore):
    def __init__(self, path: Path | str) -> None:
        self.document = JsonDocument(path, _empty_document, strict=True)

    def _update(self, action: str, fn: Callable[[dict], Any]) -> Any:
        try:
            return self.document.update(fn)
        except (OSError, DocumentReadError) as exc:
            log_exception(logger, "Credential store failure", extra={"action": action, "path": self.document.path}, exc=exc)
            raise InternalError() from exc

    def _read(self, action: str) -> dict:
        try:
            return self.document.read()
        except (OSError, DocumentReadError) as exc:
            log_exception(logger, "Credential store failure", extra={"action": action, "path": self.document.path}, exc=exc)
            raise InternalError() from exc

    def _farmers(self) -> list[dict]:
        return self._read("read_farmers").get("farmers", [])

    @staticmethod
    def _index_of(records: list[dict], record_id: str, missing: str) -> int:
        for idx, record in enumerate(records):
            if record.get("id") == record_id:
                return idx
        raise NotFoundError(missing)

    def create_farmer(self, fields: dict, password: str) -> FarmerAccount:
        password_hash = self.hash_new_password(password)
        email = normalize_email(fields["email"])
        mobile = fields["mobile"].strip()
        now = utcnow()
        account = FarmerAccount(
            id=str(uuid.uuid4()),
            full_name=fields["full_name"],
            email=email,
            mobile=mobile,
            password_hash=password_hash,
            location=fields["location"],
            crop_type=fields["crop_type"],
            language=fields.get("language") or "english",
            status=fields.get("status") or FarmerStatus.PENDING.value,
            is_active=fields.get("is_active", True),
            is_verified=bool(fields.get("is_verified", False)),
            registered_at=now,
            updated_at=now,
            approved_at=fields.get("approved_at"),
            approved_by_admin_id=fields.get("approved_by_admin_id"),
        )

        def _insert(doc: dict) -> FarmerAccount:
            farmers = doc.setdefault("farmers", [])
            for record in farmers:
                if record.get("email") == email or record.get("mobile") == mobile:
                    raise ConflictError(FARMER_CONFLICT_MESSAGE)
            farmers.append(_to_record(account, _FARMER_DATETIME_FIELDS))
            return account

        return self._update("create_farmer", _insert)

    def find_farmer_by_email(self, email: str) -> Optional[FarmerAccount]:
        email = normalize_email(email)
        for record in self._farmers():
            if normalize_email(record.get("email", "")) == email:
                return _farmer_from_record(record)
        return None

    def find_farmer_by_email_or_mobile(self, email: str, mobile: str) -> Optional[FarmerAccount]:
        email = normalize_email(email)
        mobile = (mobile or "").strip()
        for record in self._farmers():
            if normalize_email(record.get("email", "")) == email or record.get("mobile") == mobile:
                return _farmer_from_record(record)
        return None

    def find_farmer_by_id(self, farmer_id: str) -> Optional[FarmerAccount]:
        for record in self._farmers():
            if record.get("id") == farmer_id:
                return _farmer_from_record(record)
        return None

    def _mutate_farmer(self, action: str, farmer_id: str, mutate: Callable[[FarmerAccount, list[dict]], None]) -> FarmerAccount:
        def _apply(doc: dict) -> FarmerAccount:
            farmers = doc.setdefault("farmers", [])
            idx = self._index_of(farmers, farmer_id, "Farmer not found")
            account = _farmer_from_record(farmers[idx])
            mutate(account, farmers)
            farmers[idx] = _to_record(account, _FARMER_DATETIME_FIELDS)
            return account

        return self._update(action, _apply)

    def update_farmer(self, farmer_id: str, changes: dict) -> FarmerAccount:
        _check_update_keys(changes)

        def _mutate(account: FarmerAccount, farmers: list[dict]) -> None:
            new_mobile = changes.get("mobile")
            if new_mobile and new_mobile != account.mobile:
                if any(r.get("mobile") == new_mobile and r.get("id") != farmer_id for r in farmers):
                    raise ConflictError("Mobile number already registered")
            for key, value in changes.items():
                setattr(account, key, value)
            account.updated_at = utcnow()

        return self._mutate_farmer("update_farmer", farmer_id, _mutate)

    def set_farmer_password(self, farmer_id: str, password: str) -> FarmerAccount:
        password_hash = self.hash_new_password(password)

        def _mutate(account: FarmerAccount, _farmers: list[dict]) -> None:
            account.password_hash = password_hash
            account.updated_at = utcnow()

        return self._mutate_farmer("set_farmer_password", farmer_id, _mutate)

    def record_farmer_login(
        self, farmer_id: str, *, ip_address: Optional[str] = None, user_agent: Optional[str] = None
    ) -> FarmerAccount:
        now = utcnow()

        def _mutate(account: FarmerAccount, _farmers: list[dict]) -> None:
            history = list(account.login_history)
            history.append(_login_entry(ip_address, user_agent, now))
            account.login_history = history[-LOGIN_HISTORY_LIMIT:]
            account.last_login_at = now

        return self._mutate_farmer("record_farmer_login", farmer_id, _mutate)

    def list_farmers(
        self,
        *,
        status: Optional[str] = None,
        search: Optional[str] = None,
        offset: int = 0,
        limit: int = 50,
    ) -> tuple[list[FarmerAccount], int]:
        farmers = [_farmer_from_record(r) for r in self._farmers()]
        if status:
            farmers = [f for f in farmers if f.status == status]
        if search:
            needle = search.strip().lower()
            farmers = [
                f
                for f in farmers
                if needle in f.full_name.lower()
                or needle in f.email.lower()
                or needle in f.mobile
                or needle in f.location.lower()
            ]
        farmers.sort(key=lambda f: f.registered_at, reverse=True)
        return farmers[offset : offset + limit], len(farmers)

    def farmer_status_counts(self) -> dict[str, int]:
        return _status_counts([r.get("status", FarmerStatus.PENDING.value) for r in self._farmers()])

    def add_status_audit(
        self,
        farmer_id: str,
        *,
        from_status: Optional[str],
        to_status: str,
        actor_admin_id: Optional[str] = None,
        reason: Optional[str] = None,
        is_override: bool = False,
    ) -> StatusAuditEntry:
        entry = StatusAuditEntry(
            id=str(uuid.uuid4()),
            farmer_id=farmer_id,
            actor_admin_id=actor_admin_id,
            from_status=from_status,
            to_status=to_status,
            reason=reason,
            is_override=is_override,
            created_at=utcnow(),
        )

        def _append(doc: dict) -> StatusAuditEntry:
            doc.setdefault("status_audits", []).append(_to_record(entry, ("created_at",)))
            return entry

        return self._update("add_status_audit", _append)

    def list_status_audits(self, farmer_id: str) -> list[StatusAuditEntry]:
        entries = []
        for record in self._read("list_status_audits").get("status_audits", []):
            if record.get("farmer_id") != farmer_id:
                continue
            data = dict(record)
            data["created_at"] = parse_iso(data.get("created_at"))
            entries.append(StatusAuditEntry(**data))
        entries.sort(key=lambda e: e.created_at)
        return entries

    def create_admin(self, *, username: str, email: str, password: str, role: Role | str) -> AdminAccount:
        password_hash = self.hash_new_password(password)
        now = utcnow()
        account = AdminAccount(
            id=str(uuid.uuid4()),
            username=username.strip(),
            email=normalize_email(email),
            password_hash=password_hash,
            role=parse_role(role),
            is_active=True,
            created_at=now,
            updated_at=now,
        )

        def _insert(doc: dict) -> AdminAccount:
            admins = doc.setdefault("admins", [])
            for record in admins:
                if record.get("email") == account.email or record.get("username") == account.username:
                    raise ConflictError(ADMIN_CONFLICT_MESSAGE)
            admins.append(_to_record(account, _ADMIN_DATETIME_FIELDS))
            return account

        return self._update("create_admin", _insert)

    def _admins(self) -> list[dict]:
        return self._read("read_admins").get("admins", [])

    def find_admin_by_email(self, email: str) -> Optional[AdminAccount]:
        email = normalize_email(email)
        for record in self._admins():
            if normalize_email(record.get("email", "")) == email:
                return _admin_from_record(record)
        return None

    def find_admin_by_id(self, admin_id: str) -> Optional[AdminAccount]:
        for record in self._admins():
            if record.get("id") == admin_id:
                return _admin_from_record(record)
        return None

    def list_admins_by_role(self, role: Role | str) -> list[AdminAccount]:
        role = parse_role(role)
        admins = [_admin_from_record(r) for r in self._admins()]
        return [a for a in admins if a.role == role]

    def record_admin_login(self, admin_id: str) -> AdminAccount:
        def _apply(doc: dict) -> AdminAccount:
            admins = doc.setdefault("admins", [])
            idx = self._index_of(admins, admin_id, "Admin not found")
            account = _admin_from_record(admins[idx])
            account.last_login_at = utcnow()
            admins[idx] = _to_record(account, _ADMIN_DATETIME_FIELDS)
            return account

        return self._update("record_admin_login", _apply)


StoreFactory = Callable[[Session], CredentialStore]


def build_store_factory(mode: str, *, json_path: Path | str | None = None) -> StoreFactory:
    """Pick the credential store backend once; the returned factory is called per request."""
    if mode == "json":
        store = JsonCredentialStore(json_path or "data/farmers.json")
        logger.info("Credential store: json path=%s", store.document.path)
        return lambda _db: store
    logger.info("Credential store: sql")
    return SqlCredentialStore
