"""
SQLAlchemy model base class for the Krushi Mithra backend.

This package defines ORM models for farmers, administrators, status audit
entries, subsidies, broadcast notifications and admin-entered market
prices. All models should inherit from the declarative `Base` defined here.
"""

from __future__ import annotations

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy ORM models."""

    pass


from .farmer import Farmer  # noqa: E402,F401
from .admin import Admin  # noqa: E402,F401
from .farmer_status_audit import FarmerStatusAudit  # noqa: E402,F401
from .subsidy import Subsidy  # noqa: E402,F401
from .notification import Notification, NotificationRead  # noqa: E402,F401
from .market_price import MarketPriceEntry  # noqa: E402,F401

__all__ = [
    "Base",

    # Accounts
    "Farmer",
    "Admin",
    "FarmerStatusAudit",

    # Portal content
    "Subsidy",
    "Notification",
    "NotificationRead",
    "MarketPriceEntry",
]
