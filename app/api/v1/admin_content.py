"""
Admin-managed portal content: subsidies, broadcast notifications, manual
market prices and the upstream price cache.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...core.auth import require_main_admin
from ...core.db import get_db
from ...core.deps import get_market_price_provider
from ...core.pagination import DEFAULT_PAGE_SIZE, build_pagination, clamp_limit, page_offset
from ...schemas.farmer import MessageOut
from ...schemas.market_price import MarketPriceIn, MarketPriceOut, MarketPriceUpdate, MarketStatsOut
from ...schemas.notification import BroadcastIn, NotificationOut
from ...schemas.subsidy import SubsidyIn, SubsidyOut, SubsidyUpdate
from ...services import market_price_entries as price_entry_service
from ...services import notifications as notification_service
from ...services import subsidies as subsidy_service
from ...services.credential_store import AdminAccount
from ...services.market_prices import MarketPriceProvider

router = APIRouter(prefix="/api/v1/admin", tags=["admin-content"])


@router.get("/subsidies")
def list_subsidies(
    category: Optional[str] = Query(None),
    is_active: Optional[bool] = Query(None, alias="isActive"),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1),
    admin: AdminAccount = Depends(require_main_admin),
    db: Session = Depends(get_db),
) -> dict:
    limit = clamp_limit(limit)
    rows, total = subsidy_service.list_subsidies(
        db,
        category=category,
        is_active=is_active,
        offset=page_offset(page, limit),
        limit=limit,
    )
    return {
        "subsidies": [SubsidyOut.model_validate(r).model_dump(by_alias=True) for r in rows],
        "pagination": build_pagination(total=total, page=page, limit=limit),
    }


@router.post("/subsidies", status_code=201, response_model=SubsidyOut)
def create_subsidy(
    payload: SubsidyIn,
    admin: AdminAccount = Depends(require_main_admin),
    db: Session = Depends(get_db),
):
    return subsidy_service.create_subsidy(db, payload.model_dump(), admin_id=admin.id)


@router.put("/subsidies/{subsidy_id}", response_model=SubsidyOut)
def update_subsidy(
    subsidy_id: str,
    payload: SubsidyUpdate,
    admin: AdminAccount = Depends(require_main_admin),
    db: Session = Depends(get_db),
):
    return subsidy_service.update_subsidy(db, subsidy_id, payload.model_dump(exclude_unset=True))


@router.delete("/subsidies/{subsidy_id}", response_model=MessageOut)
def delete_subsidy(
    subsidy_id: str,
    admin: AdminAccount = Depends(require_main_admin),
    db: Session = Depends(get_db),
) -> MessageOut:
    subsidy_service.deactivate_subsidy(db, subsidy_id)
    return MessageOut(message="Subsidy removed")


@router.post("/notifications/broadcast", status_code=201, response_model=NotificationOut)
def broadcast_notification(
    payload: BroadcastIn,
    admin: AdminAccount = Depends(require_main_admin),
    db: Session = Depends(get_db),
):
    return notification_service.broadcast(db, payload.model_dump(), admin_id=admin.id)


@router.get("/notifications")
def list_notifications(
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1),
    admin: AdminAccount = Depends(require_main_admin),
    db: Session = Depends(get_db),
) -> dict:
    limit = clamp_limit(limit)
    items, total = notification_service.list_all(db, offset=page_offset(page, limit), limit=limit)
    return {
        "notifications": [NotificationOut.model_validate(i).model_dump(by_alias=True) for i in items],
        "pagination": build_pagination(total=total, page=page, limit=limit),
    }


@router.post("/market-prices/refresh")
def refresh_market_prices(
    admin: AdminAccount = Depends(require_main_admin),
    provider: MarketPriceProvider = Depends(get_market_price_provider),
) -> dict:
    result = provider.refresh()
    return {"message": "Market prices refreshed", **result}


@router.get("/market-prices")
def list_market_prices(
    category: Optional[str] = Query(None),
    market: Optional[str] = Query(None, max_length=128),
    search: Optional[str] = Query(None, max_length=100),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1),
    admin: AdminAccount = Depends(require_main_admin),
    db: Session = Depends(get_db),
) -> dict:
    limit = clamp_limit(limit)
    rows, total = price_entry_service.list_entries(
        db,
        category=category,
        market=market,
        search=search,
        offset=page_offset(page, limit),
        limit=limit,
    )
    return {
        "prices": [MarketPriceOut.model_validate(r).model_dump(by_alias=True) for r in rows],
        "pagination": build_pagination(total=total, page=page, limit=limit),
    }


@router.post("/market-prices", status_code=201, response_model=MarketPriceOut)
def create_market_price(
    payload: MarketPriceIn,
    admin: AdminAccount = Depends(require_main_admin),
    db: Session = Depends(get_db),
):
    return price_entry_service.create_entry(db, payload.model_dump(), admin_id=admin.id)


@router.get("/market-prices/{entry_id}", response_model=MarketPriceOut)
def get_market_price(
    entry_id: str,
    admin: AdminAccount = Depends(require_main_admin),
    db: Session = Depends(get_db),
):
    return price_entry_service.get_entry(db, entry_id)


@router.put("/market-prices/{entry_id}", response_model=MarketPriceOut)
def update_market_price(
    entry_id: str,
    payload: MarketPriceUpdate,
    admin: AdminAccount = Depends(require_main_admin),
    db: Session = Depends(get_db),
):
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    return price_entry_service.update_entry(db, entry_id, changes, admin_id=admin.id)


@router.delete("/market-prices/{entry_id}", response_model=MessageOut)
def delete_market_price(
    entry_id: str,
    admin: AdminAccount = Depends(require_main_admin),
    db: Session = Depends(get_db),
) -> MessageOut:
    price_entry_service.deactivate_entry(db, entry_id, admin_id=admin.id)
    return MessageOut(message="Market price removed")


@router.get("/market-stats", response_model=MarketStatsOut)
def market_stats(
    admin: AdminAccount = Depends(require_main_admin),
    db: Session = Depends(get_db),
) -> MarketStatsOut:
    stats = price_entry_service.market_stats(db)
    return MarketStatsOut(
        **{**stats, "prices": [MarketPriceOut.model_validate(r) for r in stats["prices"]]}
    )
