"""
Pydantic schemas for subsidy scheme listings.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import Field

from ..core.constants import SubsidyCategory
from .farmer import CamelModel


class SubsidyIn(CamelModel):
    title: str = Field(min_length=3, max_length=200)
    description: str = Field(min_length=1)
    amount: float = Field(default=0.0, ge=0)
    eligibility: str = Field(min_length=1, max_length=1000)
    category: SubsidyCategory = SubsidyCategory.OTHER
    state: str = "Karnataka"
    deadline: datetime
    application_link: Optional[str] = None
    contact_info: Optional[str] = None
    is_active: bool = True


class SubsidyUpdate(CamelModel):
    title: Optional[str] = Field(default=None, min_length=3, max_length=200)
    description: Optional[str] = None
    amount: Optional[float] = Field(default=None, ge=0)
    eligibility: Optional[str] = None
    category: Optional[SubsidyCategory] = None
    state: Optional[str] = None
    deadline: Optional[datetime] = None
    application_link: Optional[str] = None
    contact_info: Optional[str] = None
    is_active: Optional[bool] = None


class SubsidyOut(CamelModel):
    id: str
    title: str
    description: str
    amount: float
    eligibility: str
    category: str
    state: str
    deadline: datetime
    application_link: Optional[str] = None
    contact_info: Optional[str] = None
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
