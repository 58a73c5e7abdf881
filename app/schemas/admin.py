"""
Pydantic schemas for admin authentication and farmer moderation.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from ..core.constants import Role
from .farmer import CamelModel, FarmerOut


class AdminLoginIn(CamelModel):
    email: str
    password: str


class AdminOut(CamelModel):
    id: str
    username: str
    email: str
    role: Role
    is_active: bool
    last_login_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class AdminLoginOut(CamelModel):
    message: str = "Login successful"
    token: str
    admin: AdminOut


class ReasonIn(CamelModel):
    reason: Optional[str] = None


class StatusOverrideIn(CamelModel):
    status: str
    reason: Optional[str] = None


class StatusAuditOut(CamelModel):
    id: str
    farmer_id: str
    actor_admin_id: Optional[str] = None
    from_status: Optional[str] = None
    to_status: str
    reason: Optional[str] = None
    is_override: bool
    created_at: datetime


class PaginationOut(CamelModel):
    total: int
    page: int
    limit: int
    pages: int


class FarmerStatsOut(CamelModel):
    total: int = 0
    pending: int = 0
    approved: int = 0
    rejected: int = 0
    suspended: int = 0


class FarmerListOut(CamelModel):
    farmers: list[FarmerOut]
    pagination: PaginationOut
    stats: FarmerStatsOut


class DashboardStatsOut(CamelModel):
    total_farmers: int
    pending_approvals: int
    approved_farmers: int
    rejected_farmers: int
    suspended_farmers: int
    active_subsidies: int
    active_notifications: int
    recent_registrations: list[FarmerOut]
