"""
ORM model for market prices entered by administrators.
"""

from __future__ import annotations

from datetime import datetime
import uuid

from sqlalchemy import Boolean, DateTime, Float, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from . import Base


class MarketPriceEntry(Base):
    __tablename__ = "market_price_entries"
    __table_args__ = (Index("ix_market_price_entries_commodity_market", "commodity", "market"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    commodity: Mapped[str] = mapped_column(String(100))
    price: Mapped[float] = mapped_column(Float)
    unit: Mapped[str] = mapped_column(String(16), default="kg")
    market: Mapped[str] = mapped_column(String(128))
    state: Mapped[str] = mapped_column(String(64), default="Karnataka")
    district: Mapped[str | None] = mapped_column(String(64), nullable=True)
    category: Mapped[str] = mapped_column(String(16), default="vegetables", index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    created_by_admin_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    updated_by_admin_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, index=True)
