"""
Admin authentication, farmer moderation and dashboard statistics.

All routes except login require a MAIN_ADMIN bearer token.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from ...core.auth import require_main_admin
from ...core.constants import FarmerStatus
from ...core.db import get_db
from ...core.deps import client_ip, get_account_service, get_credential_store
from ...core.errors import NotFoundError, ValidationError
from ...core.pagination import DEFAULT_PAGE_SIZE, build_pagination, clamp_limit, page_offset
from ...schemas.admin import (
    AdminLoginIn,
    AdminLoginOut,
    AdminOut,
    DashboardStatsOut,
    FarmerListOut,
    FarmerStatsOut,
    ReasonIn,
    StatusAuditOut,
    StatusOverrideIn,
)
from ...schemas.farmer import FarmerDetailOut, FarmerEnvelope, FarmerOut
from ...services import notifications as notification_service
from ...services import subsidies as subsidy_service
from ...services.accounts import AccountService, admin_token
from ...services.credential_store import AdminAccount, CredentialStore

router = APIRouter(prefix="/api/v1/admin", tags=["admin"])


def _parse_status(status: Optional[str]) -> Optional[str]:
    if not status:
        return None
    try:
        return FarmerStatus(status.strip().lower()).value
    except ValueError:
        raise ValidationError(errors=[{"field": "status", "message": "Invalid status"}]) from None


def _stats(counts: dict) -> FarmerStatsOut:
    return FarmerStatsOut(
        total=counts.get("total", 0),
        pending=counts.get(FarmerStatus.PENDING.value, 0),
        approved=counts.get(FarmerStatus.APPROVED.value, 0),
        rejected=counts.get(FarmerStatus.REJECTED.value, 0),
        suspended=counts.get(FarmerStatus.SUSPENDED.value, 0),
    )


@router.post("/login", response_model=AdminLoginOut)
def login(
    payload: AdminLoginIn,
    request: Request,
    service: AccountService = Depends(get_account_service),
) -> AdminLoginOut:
    admin = service.authenticate_admin(payload.email, payload.password, ip_address=client_ip(request))
    return AdminLoginOut(token=admin_token(admin), admin=AdminOut.model_validate(admin))


@router.get("/farmers", response_model=FarmerListOut)
def list_farmers(
    status: Optional[str] = Query(None),
    search: Optional[str] = Query(None, max_length=100),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1),
    admin: AdminAccount = Depends(require_main_admin),
    store: CredentialStore = Depends(get_credential_store),
) -> FarmerListOut:
    limit = clamp_limit(limit)
    items, total = store.list_farmers(
        status=_parse_status(status),
        search=(search or "").strip() or None,
        offset=page_offset(page, limit),
        limit=limit,
    )
    return FarmerListOut(
        farmers=[FarmerOut.model_validate(f) for f in items],
        pagination=build_pagination(total=total, page=page, limit=limit),
        stats=_stats(store.farmer_status_counts()),
    )


@router.get("/farmers/pending", response_model=list[FarmerOut])
def list_pending_farmers(
    admin: AdminAccount = Depends(require_main_admin),
    store: CredentialStore = Depends(get_credential_store),
) -> list[FarmerOut]:
    items, _ = store.list_farmers(status=FarmerStatus.PENDING.value, offset=0, limit=clamp_limit(10_000))
    return [FarmerOut.model_validate(f) for f in items]


@router.get("/farmers/{farmer_id}", response_model=FarmerDetailOut)
def get_farmer(
    farmer_id: str,
    admin: AdminAccount = Depends(require_main_admin),
    store: CredentialStore = Depends(get_credential_store),
) -> FarmerDetailOut:
    farmer = store.find_farmer_by_id(farmer_id)
    if farmer is None:
        raise NotFoundError("Farmer not found")
    return FarmerDetailOut.model_validate(farmer)


@router.get("/farmers/{farmer_id}/history", response_model=list[StatusAuditOut])
def farmer_status_history(
    farmer_id: str,
    admin: AdminAccount = Depends(require_main_admin),
    store: CredentialStore = Depends(get_credential_store),
) -> list[StatusAuditOut]:
    if store.find_farmer_by_id(farmer_id) is None:
        raise NotFoundError("Farmer not found")
    return [StatusAuditOut.model_validate(e) for e in store.list_status_audits(farmer_id)]


@router.put("/farmers/{farmer_id}/approve", response_model=FarmerEnvelope)
def approve_farmer(
    farmer_id: str,
    admin: AdminAccount = Depends(require_main_admin),
    service: AccountService = Depends(get_account_service),
) -> FarmerEnvelope:
    farmer = service.approve(farmer_id, admin.id)
    return FarmerEnvelope(message="Farmer approved successfully", farmer=FarmerOut.model_validate(farmer))


@router.put("/farmers/{farmer_id}/reject", response_model=FarmerEnvelope)
def reject_farmer(
    farmer_id: str,
    payload: Optional[ReasonIn] = None,
    admin: AdminAccount = Depends(require_main_admin),
    service: AccountService = Depends(get_account_service),
) -> FarmerEnvelope:
    farmer = service.reject(farmer_id, payload.reason if payload else None, admin.id)
    return FarmerEnvelope(message="Farmer rejected", farmer=FarmerOut.model_validate(farmer))


@router.put("/farmers/{farmer_id}/suspend", response_model=FarmerEnvelope)
def suspend_farmer(
    farmer_id: str,
    payload: Optional[ReasonIn] = None,
    admin: AdminAccount = Depends(require_main_admin),
    service: AccountService = Depends(get_account_service),
) -> FarmerEnvelope:
    farmer = service.suspend(farmer_id, payload.reason if payload else None, admin.id)
    return FarmerEnvelope(message="Farmer suspended", farmer=FarmerOut.model_validate(farmer))


@router.put("/farmers/{farmer_id}/status", response_model=FarmerEnvelope)
def override_farmer_status(
    farmer_id: str,
    payload: StatusOverrideIn,
    admin: AdminAccount = Depends(require_main_admin),
    service: AccountService = Depends(get_account_service),
) -> FarmerEnvelope:
    farmer = service.override_status(farmer_id, payload.status, payload.reason, admin.id)
    return FarmerEnvelope(message="Farmer status updated", farmer=FarmerOut.model_validate(farmer))


@router.get("/stats", response_model=DashboardStatsOut)
def dashboard_stats(
    admin: AdminAccount = Depends(require_main_admin),
    service: AccountService = Depends(get_account_service),
    db: Session = Depends(get_db),
) -> DashboardStatsOut:
    stats = service.dashboard_stats()
    recent = [FarmerOut.model_validate(f) for f in stats.pop("recent_registrations")]
    return DashboardStatsOut(
        **stats,
        active_subsidies=subsidy_service.count_active_subsidies(db),
        active_notifications=notification_service.count_active(db),
        recent_registrations=recent,
    )
