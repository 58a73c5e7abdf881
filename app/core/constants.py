"""
Shared enums for farmer accounts, admin roles and session tokens.
"""

from __future__ import annotations

import enum
from datetime import timedelta

# ── Token lifetimes ──────────────────────────────────────────────────────────
FARMER_TOKEN_TTL = timedelta(days=7)
ADMIN_TOKEN_TTL = timedelta(hours=24)

# ── Registration rules ───────────────────────────────────────────────────────
MIN_PASSWORD_LENGTH = 8
MOBILE_PATTERN = r"^[6-9]\d{9}$"
EMAIL_PATTERN = r"^[^\s@]+@[^\s@]+\.[^\s@]+$"
LOGIN_HISTORY_LIMIT = 10


class Role(str, enum.Enum):
    FARMER = "farmer"
    MAIN_ADMIN = "MAIN_ADMIN"
    ADMIN = "admin"
    MODERATOR = "moderator"


# Spellings seen in older tokens and records.
_ROLE_ALIASES = {
    "farmer": Role.FARMER,
    "main_admin": Role.MAIN_ADMIN,
    "super_admin": Role.MAIN_ADMIN,
    "superadmin": Role.MAIN_ADMIN,
    "admin": Role.ADMIN,
    "moderator": Role.MODERATOR,
}

ADMIN_ROLES = frozenset({Role.MAIN_ADMIN, Role.ADMIN, Role.MODERATOR})


def parse_role(raw: str | Role | None) -> Role:
    if isinstance(raw, Role):
        return raw
    key = (raw or "").strip().lower()
    try:
        return _ROLE_ALIASES[key]
    except KeyError:
        raise ValueError(f"Unknown role: {raw!r}") from None


class TokenType(str, enum.Enum):
    FARMER = "farmer"
    ADMIN = "admin"


class FarmerStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    SUSPENDED = "suspended"


class CropType(str, enum.Enum):
    RICE = "rice"
    WHEAT = "wheat"
    VEGETABLES = "vegetables"
    FRUITS = "fruits"
    PULSES = "pulses"
    SUGARCANE = "sugarcane"
    COTTON = "cotton"
    OTHER = "other"


class Language(str, enum.Enum):
    ENGLISH = "english"
    KANNADA = "kannada"
    HINDI = "hindi"


class SubsidyCategory(str, enum.Enum):
    FERTILIZER = "fertilizer"
    SEEDS = "seeds"
    EQUIPMENT = "equipment"
    IRRIGATION = "irrigation"
    LOAN = "loan"
    INSURANCE = "insurance"
    TRAINING = "training"
    OTHER = "other"


class NotificationAudience(str, enum.Enum):
    ALL = "all"
    APPROVED = "approved"
    PENDING = "pending"
    LOCATION = "location"
    CROP = "crop"


class PriceCategory(str, enum.Enum):
    VEGETABLES = "vegetables"
    FRUITS = "fruits"
    GRAINS = "grains"


class PriceUnit(str, enum.Enum):
    KG = "kg"
    QUINTAL = "quintal"
    TON = "ton"
    PIECE = "piece"
    DOZEN = "dozen"
    LITER = "liter"
