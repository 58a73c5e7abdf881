"""
ORM model for government subsidy schemes listed to farmers.
"""

from __future__ import annotations

from datetime import datetime
import uuid

from sqlalchemy import Boolean, DateTime, Float, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from . import Base


class Subsidy(Base):
    __tablename__ = "subsidies"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    title: Mapped[str] = mapped_column(String(200))
    description: Mapped[str] = mapped_column(Text)
    amount: Mapped[float] = mapped_column(Float, default=0.0)
    eligibility: Mapped[str] = mapped_column(String(1000))
    category: Mapped[str] = mapped_column(String(32), default="other", index=True)
    state: Mapped[str] = mapped_column(String(64), default="Karnataka")
    deadline: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    application_link: Mapped[str | None] = mapped_column(String(512), nullable=True)
    contact_info: Mapped[str | None] = mapped_column(String(500), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    created_by_admin_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow)
