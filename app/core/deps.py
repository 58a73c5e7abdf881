"""
Request-scoped dependencies resolved from ``app.state``.

`create_app` installs the storage factory, OTP verifier and data providers
once; handlers reach them through these functions so tests can swap any of
them on a live app.
"""

from __future__ import annotations

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from .db import get_db
from ..services.accounts import AccountService
from ..services.credential_store import CredentialStore
from ..services.market_prices import MarketPriceProvider
from ..services.otp import OTPVerifier
from ..services.weather import WeatherProvider


def get_credential_store(request: Request, db: Session = Depends(get_db)) -> CredentialStore:
    return request.app.state.store_factory(db)


def get_account_service(store: CredentialStore = Depends(get_credential_store)) -> AccountService:
    return AccountService(store)


def get_otp_verifier(request: Request) -> OTPVerifier:
    return request.app.state.otp_verifier


def get_market_price_provider(request: Request) -> MarketPriceProvider:
    return request.app.state.market_prices


def get_weather_provider(request: Request) -> WeatherProvider:
    return request.app.state.weather


def client_ip(request: Request) -> str | None:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip() or None
    return request.client.host if request.client else None
