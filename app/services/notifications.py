"""
Admin broadcast notifications with audience targeting and read markers.

Audiences: ``all``, ``approved``, ``pending``, ``location`` (matches the
farmer's location against ``target_locations``) and ``crop`` (matches the
crop type against ``target_crops``). Expired or inactive notifications are
never shown.
"""

from __future__ import annotations

import datetime
import logging
import uuid
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.clock import ensure_utc, utcnow
from ..core.constants import NotificationAudience
from ..core.errors import InternalError, NotFoundError, ValidationError, log_exception
from ..models.notification import Notification, NotificationRead
from .credential_store import FarmerAccount

logger = logging.getLogger("notifications")

FEED_LIMIT = 50


def _clean_targets(values: list[str]) -> list[str]:
    return sorted({v.strip().lower() for v in values or [] if v and v.strip()})


def broadcast(db: Session, data: dict, *, admin_id: Optional[str]) -> Notification:
    audience = NotificationAudience(data.get("target_audience") or NotificationAudience.ALL)
    locations = _clean_targets(data.get("target_locations") or [])
    crops = _clean_targets(data.get("target_crops") or [])
    if audience is NotificationAudience.LOCATION and not locations:
        raise ValidationError(errors=[{"field": "targetLocations", "message": "At least one location is required"}])
    if audience is NotificationAudience.CROP and not crops:
        raise ValidationError(errors=[{"field": "targetCrops", "message": "At least one crop is required"}])
    row = Notification(
        id=str(uuid.uuid4()),
        title=data["title"].strip(),
        message=data["message"].strip(),
        type=data.get("type") or "info",
        priority=data.get("priority") or "medium",
        target_audience=audience.value,
        target_locations=locations,
        target_crops=crops,
        expires_at=data.get("expires_at"),
        is_active=True,
        created_by_admin_id=admin_id,
        created_at=utcnow(),
    )
    db.add(row)
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        log_exception(logger, "Notification broadcast failed", extra={"admin_id": admin_id}, exc=exc)
        raise InternalError() from exc
    db.refresh(row)
    logger.info("Notification broadcast id=%s audience=%s admin=%s", row.id, row.target_audience, admin_id)
    return row


def is_visible(notification: Notification, now: datetime.datetime) -> bool:
    if not notification.is_active:
        return False
    expires_at = ensure_utc(notification.expires_at)
    return expires_at is None or expires_at > now


def is_relevant(notification: Notification, farmer: FarmerAccount) -> bool:
    audience = notification.target_audience
    if audience == NotificationAudience.ALL.value:
        return True
    if audience in {NotificationAudience.APPROVED.value, NotificationAudience.PENDING.value}:
        return farmer.status == audience
    if audience == NotificationAudience.LOCATION.value:
        return (farmer.location or "").strip().lower() in (notification.target_locations or [])
    if audience == NotificationAudience.CROP.value:
        return (farmer.crop_type or "").strip().lower() in (notification.target_crops or [])
    return False


def list_for_farmer(
    db: Session,
    farmer: FarmerAccount,
    *,
    now: Optional[datetime.datetime] = None,
    limit: int = FEED_LIMIT,
) -> list[dict]:
    now = now or utcnow()
    rows = (
        db.query(Notification)
        .filter(Notification.is_active.is_(True))
        .order_by(Notification.created_at.desc())
        .all()
    )
    visible = [n for n in rows if is_visible(n, now) and is_relevant(n, farmer)][:limit]
    if not visible:
        return []
    read_ids = {
        r.notification_id
        for r in db.query(NotificationRead.notification_id)
        .filter(
            NotificationRead.farmer_id == farmer.id,
            NotificationRead.notification_id.in_([n.id for n in visible]),
        )
        .all()
    }
    return [
        {
            "id": n.id,
            "title": n.title,
            "message": n.message,
            "type": n.type,
            "priority": n.priority,
            "created_at": n.created_at,
            "expires_at": n.expires_at,
            "is_read": n.id in read_ids,
        }
        for n in visible
    ]


def mark_read(db: Session, notification_id: str, farmer: FarmerAccount) -> None:
    row = db.get(Notification, notification_id)
    if row is None or not is_visible(row, utcnow()) or not is_relevant(row, farmer):
        raise NotFoundError("Notification not found")
    existing = (
        db.query(NotificationRead)
        .filter(NotificationRead.notification_id == notification_id, NotificationRead.farmer_id == farmer.id)
        .first()
    )
    if existing:
        return
    db.add(NotificationRead(id=str(uuid.uuid4()), notification_id=notification_id, farmer_id=farmer.id, read_at=utcnow()))
    try:
        db.commit()
    except IntegrityError:
        # Marker inserted by a concurrent request.
        db.rollback()
    except SQLAlchemyError as exc:
        db.rollback()
        log_exception(logger, "Notification read marker failed", extra={"notification_id": notification_id}, exc=exc)
        raise InternalError() from exc


def list_all(db: Session, *, offset: int = 0, limit: int = 50) -> tuple[list[dict], int]:
    total = db.query(Notification).count()
    rows = db.query(Notification).order_by(Notification.created_at.desc()).offset(offset).limit(limit).all()
    counts = dict(
        db.query(NotificationRead.notification_id, func.count(NotificationRead.id))
        .filter(NotificationRead.notification_id.in_([r.id for r in rows]))
        .group_by(NotificationRead.notification_id)
        .all()
    ) if rows else {}
    items = []
    for row in rows:
        items.append(
            {
                "id": row.id,
                "title": row.title,
                "message": row.message,
                "type": row.type,
                "priority": row.priority,
                "target_audience": row.target_audience,
                "target_locations": row.target_locations or [],
                "target_crops": row.target_crops or [],
                "expires_at": row.expires_at,
                "is_active": row.is_active,
                "created_at": row.created_at,
                "read_count": int(counts.get(row.id, 0)),
            }
        )
    return items, total


def count_active(db: Session, *, now: Optional[datetime.datetime] = None) -> int:
    now = now or utcnow()
    rows = db.query(Notification).filter(Notification.is_active.is_(True)).all()
    return sum(1 for n in rows if is_visible(n, now))
