"""
Pydantic schemas for admin-managed market prices.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import Field

from ..core.constants import PriceCategory, PriceUnit
from .farmer import CamelModel


class MarketPriceIn(CamelModel):
    commodity: str = Field(min_length=1, max_length=100)
    price: float = Field(gt=0)
    unit: PriceUnit = PriceUnit.KG
    market: str = Field(min_length=1, max_length=128)
    state: str = Field(default="Karnataka", max_length=64)
    district: Optional[str] = Field(default=None, max_length=64)
    category: PriceCategory = PriceCategory.VEGETABLES


class MarketPriceUpdate(CamelModel):
    commodity: Optional[str] = Field(default=None, min_length=1, max_length=100)
    price: Optional[float] = Field(default=None, gt=0)
    unit: Optional[PriceUnit] = None
    market: Optional[str] = Field(default=None, min_length=1, max_length=128)
    state: Optional[str] = Field(default=None, max_length=64)
    district: Optional[str] = Field(default=None, max_length=64)
    category: Optional[PriceCategory] = None
    is_active: Optional[bool] = None


class MarketPriceOut(CamelModel):
    id: str
    commodity: str
    price: float
    unit: str
    market: str
    state: str
    district: Optional[str] = None
    category: str
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class MarketStatsOut(CamelModel):
    prices: list[MarketPriceOut]
    total_prices: int
    active_prices: int
    unique_commodities: int
    recent_updates: int
    last_updated: Optional[datetime] = None
