"""
Farmer portal endpoints: market prices, weather, subsidies, notifications.

Every route requires a farmer who passes the live status checks.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...core.auth import require_farmer
from ...core.db import get_db
from ...core.deps import get_market_price_provider, get_weather_provider
from ...schemas.farmer import MessageOut
from ...schemas.notification import FarmerNotificationOut
from ...schemas.subsidy import SubsidyOut
from ...services import market_price_entries as price_entry_service
from ...services import notifications as notification_service
from ...services import subsidies as subsidy_service
from ...services.credential_store import FarmerAccount
from ...services.market_prices import MarketPriceProvider
from ...services.weather import WeatherProvider

router = APIRouter(prefix="/api/v1/farmers", tags=["farmer-portal"])


@router.get("/market-prices")
def market_prices(
    farmer: FarmerAccount = Depends(require_farmer),
    provider: MarketPriceProvider = Depends(get_market_price_provider),
    db: Session = Depends(get_db),
) -> dict:
    return provider.get_latest(manual=price_entry_service.portal_items(db))


@router.get("/weather")
def weather(
    location: Optional[str] = Query(None, max_length=100),
    farmer: FarmerAccount = Depends(require_farmer),
    provider: WeatherProvider = Depends(get_weather_provider),
) -> dict:
    return provider.get_by_location(location or farmer.location)


@router.get("/subsidies", response_model=list[SubsidyOut])
def subsidies(
    category: Optional[str] = Query(None),
    farmer: FarmerAccount = Depends(require_farmer),
    db: Session = Depends(get_db),
):
    return subsidy_service.list_active_subsidies(db, category=category)


@router.get("/notifications", response_model=list[FarmerNotificationOut])
def notifications(
    farmer: FarmerAccount = Depends(require_farmer),
    db: Session = Depends(get_db),
):
    return notification_service.list_for_farmer(db, farmer)


@router.put("/notifications/{notification_id}/read", response_model=MessageOut)
def mark_notification_read(
    notification_id: str,
    farmer: FarmerAccount = Depends(require_farmer),
    db: Session = Depends(get_db),
) -> MessageOut:
    notification_service.mark_read(db, notification_id, farmer)
    return MessageOut(message="Notification marked as read")
