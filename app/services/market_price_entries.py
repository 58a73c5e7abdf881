"""
Market prices entered by administrators.

Active entries are merged into the farmer-facing price set by
`MarketPriceProvider.get_latest`, replacing any upstream row for the same
commodity and market.
"""

from __future__ import annotations

import datetime
import logging
import uuid
from typing import Optional

from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.clock import ensure_utc, utcnow
from ..core.constants import PriceCategory, PriceUnit
from ..core.errors import InternalError, NotFoundError, log_exception
from ..models.market_price import MarketPriceEntry

logger = logging.getLogger("market-prices")

RECENT_WINDOW = datetime.timedelta(hours=24)
STATS_SAMPLE_SIZE = 50


def _commit(db: Session, action: str, entry_id: Optional[str] = None) -> None:
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        log_exception(logger, "Market price write failed", extra={"action": action, "entry_id": entry_id}, exc=exc)
        raise InternalError() from exc


def _normalize(data: dict) -> dict:
    data = dict(data)
    if data.get("category") is not None:
        data["category"] = PriceCategory(data["category"]).value
    if data.get("unit") is not None:
        data["unit"] = PriceUnit(data["unit"]).value
    for key in ("commodity", "market", "state", "district"):
        if isinstance(data.get(key), str):
            data[key] = data[key].strip()
    return data


def get_entry(db: Session, entry_id: str) -> MarketPriceEntry:
    row = db.get(MarketPriceEntry, entry_id)
    if row is None:
        raise NotFoundError("Market price not found")
    return row


def list_entries(
    db: Session,
    *,
    category: Optional[str] = None,
    market: Optional[str] = None,
    search: Optional[str] = None,
    is_active: Optional[bool] = True,
    offset: int = 0,
    limit: int = 50,
) -> tuple[list[MarketPriceEntry], int]:
    q = db.query(MarketPriceEntry)
    if is_active is not None:
        q = q.filter(MarketPriceEntry.is_active.is_(is_active))
    if category:
        q = q.filter(MarketPriceEntry.category == category)
    if market:
        q = q.filter(func.lower(MarketPriceEntry.market).contains(market.strip().lower()))
    if search:
        needle = search.strip().lower()
        q = q.filter(
            or_(
                func.lower(MarketPriceEntry.commodity).contains(needle),
                func.lower(MarketPriceEntry.market).contains(needle),
            )
        )
    total = q.count()
    rows = q.order_by(MarketPriceEntry.updated_at.desc()).offset(offset).limit(limit).all()
    return rows, total


def create_entry(db: Session, data: dict, *, admin_id: Optional[str]) -> MarketPriceEntry:
    data = _normalize(data)
    now = utcnow()
    row = MarketPriceEntry(
        id=str(uuid.uuid4()),
        created_by_admin_id=admin_id,
        updated_by_admin_id=admin_id,
        created_at=now,
        updated_at=now,
        **data,
    )
    db.add(row)
    _commit(db, "create", row.id)
    db.refresh(row)
    logger.info("Market price added id=%s commodity=%s market=%s admin=%s", row.id, row.commodity, row.market, admin_id)
    return row


def update_entry(db: Session, entry_id: str, changes: dict, *, admin_id: Optional[str]) -> MarketPriceEntry:
    row = get_entry(db, entry_id)
    for key, value in _normalize(changes).items():
        setattr(row, key, value)
    row.updated_by_admin_id = admin_id
    row.updated_at = utcnow()
    db.add(row)
    _commit(db, "update", entry_id)
    db.refresh(row)
    return row


def deactivate_entry(db: Session, entry_id: str, *, admin_id: Optional[str]) -> MarketPriceEntry:
    row = get_entry(db, entry_id)
    row.is_active = False
    row.updated_by_admin_id = admin_id
    row.updated_at = utcnow()
    db.add(row)
    _commit(db, "deactivate", entry_id)
    logger.info("Market price removed id=%s admin=%s", entry_id, admin_id)
    return row


def portal_items(db: Session) -> list[dict]:
    """Active entries shaped like provider rows, newest first."""
    rows = (
        db.query(MarketPriceEntry)
        .filter(MarketPriceEntry.is_active.is_(True))
        .order_by(MarketPriceEntry.updated_at.desc())
        .all()
    )
    return [
        {
            "id": row.id,
            "commodity": row.commodity,
            "price": float(row.price),
            "unit": f"per {row.unit}",
            "market": row.market,
            "state": row.state,
            "date": ensure_utc(row.updated_at).date().isoformat(),
            "trend": "stable",
            "category": row.category,
            "source": "admin",
        }
        for row in rows
    ]


def market_stats(db: Session, *, now: Optional[datetime.datetime] = None) -> dict:
    now = now or utcnow()
    rows = db.query(MarketPriceEntry).order_by(MarketPriceEntry.updated_at.desc()).all()
    active = [r for r in rows if r.is_active]
    # SQLite drops tzinfo, so the recency window is applied here.
    recent = [r for r in rows if now - ensure_utc(r.updated_at) <= RECENT_WINDOW]
    return {
        "prices": active[:STATS_SAMPLE_SIZE],
        "total_prices": len(rows),
        "active_prices": len(active),
        "unique_commodities": len({r.commodity.lower() for r in active}),
        "recent_updates": len(recent),
        "last_updated": ensure_utc(rows[0].updated_at) if rows else None,
    }
