"""
Subsidy scheme listings: admin CRUD and the farmer-facing active list.
"""

from __future__ import annotations

import datetime
import logging
import uuid
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.clock import ensure_utc, utcnow
from ..core.constants import SubsidyCategory
from ..core.errors import InternalError, NotFoundError, log_exception
from ..models.subsidy import Subsidy

logger = logging.getLogger("subsidies")


def _commit(db: Session, action: str, subsidy_id: Optional[str] = None) -> None:
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        log_exception(logger, "Subsidy write failed", extra={"action": action, "subsidy_id": subsidy_id}, exc=exc)
        raise InternalError() from exc


def _normalize(data: dict) -> dict:
    data = dict(data)
    if data.get("category") is not None:
        data["category"] = SubsidyCategory(data["category"]).value
    return data


def get_subsidy(db: Session, subsidy_id: str) -> Subsidy:
    row = db.get(Subsidy, subsidy_id)
    if row is None:
        raise NotFoundError("Subsidy not found")
    return row


def list_active_subsidies(
    db: Session,
    *,
    category: Optional[str] = None,
    now: Optional[datetime.datetime] = None,
) -> list[Subsidy]:
    now = now or utcnow()
    q = db.query(Subsidy).filter(Subsidy.is_active.is_(True))
    if category:
        q = q.filter(Subsidy.category == category)
    rows = q.order_by(Subsidy.deadline.asc()).all()
    # SQLite loses tzinfo, so the deadline cut-off is applied here.
    return [r for r in rows if ensure_utc(r.deadline) >= now]


def list_subsidies(
    db: Session,
    *,
    category: Optional[str] = None,
    is_active: Optional[bool] = None,
    offset: int = 0,
    limit: int = 50,
) -> tuple[list[Subsidy], int]:
    q = db.query(Subsidy)
    if category:
        q = q.filter(Subsidy.category == category)
    if is_active is not None:
        q = q.filter(Subsidy.is_active.is_(is_active))
    total = q.count()
    rows = q.order_by(Subsidy.created_at.desc()).offset(offset).limit(limit).all()
    return rows, total


def count_active_subsidies(db: Session) -> int:
    return db.query(Subsidy).filter(Subsidy.is_active.is_(True)).count()


def create_subsidy(db: Session, data: dict, *, admin_id: Optional[str]) -> Subsidy:
    data = _normalize(data)
    now = utcnow()
    row = Subsidy(
        id=str(uuid.uuid4()),
        created_by_admin_id=admin_id,
        created_at=now,
        updated_at=now,
        **data,
    )
    db.add(row)
    _commit(db, "create", row.id)
    db.refresh(row)
    logger.info("Subsidy created id=%s admin=%s", row.id, admin_id)
    return row


def update_subsidy(db: Session, subsidy_id: str, changes: dict) -> Subsidy:
    row = get_subsidy(db, subsidy_id)
    for key, value in _normalize(changes).items():
        setattr(row, key, value)
    row.updated_at = utcnow()
    db.add(row)
    _commit(db, "update", subsidy_id)
    db.refresh(row)
    return row


def deactivate_subsidy(db: Session, subsidy_id: str) -> Subsidy:
    """Listings are retired, not deleted, so past applications keep their reference."""
    row = get_subsidy(db, subsidy_id)
    row.is_active = False
    row.updated_at = utcnow()
    db.add(row)
    _commit(db, "deactivate", subsidy_id)
    logger.info("Subsidy deactivated id=%s", subsidy_id)
    return row
