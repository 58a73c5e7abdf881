"""
Pydantic schemas for admin broadcasts and the farmer notification feed.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import Field

from ..core.constants import NotificationAudience
from .farmer import CamelModel


class BroadcastIn(CamelModel):
    title: str = Field(min_length=1, max_length=200)
    message: str = Field(min_length=1, max_length=5000)
    type: Literal["info", "alert", "warning", "success"] = "info"
    priority: Literal["low", "medium", "high"] = "medium"
    target_audience: NotificationAudience = NotificationAudience.ALL
    target_locations: list[str] = []
    target_crops: list[str] = []
    expires_at: Optional[datetime] = None


class NotificationOut(CamelModel):
    id: str
    title: str
    message: str
    type: str
    priority: str
    target_audience: str
    target_locations: list[str] = []
    target_crops: list[str] = []
    expires_at: Optional[datetime] = None
    is_active: bool
    created_at: datetime
    read_count: Optional[int] = None


class FarmerNotificationOut(CamelModel):
    id: str
    title: str
    message: str
    type: str
    priority: str
    created_at: datetime
    expires_at: Optional[datetime] = None
    is_read: bool = False
