"""
Entry point for the Krushi Mithra backend.

This script creates the FastAPI application, includes all API routers,
wires the shared services onto ``app.state`` and starts the background
threads. Run with:

    uvicorn app.main:app --reload

"""

from __future__ import annotations

import logging
import os
import threading
from typing import Callable

from fastapi import FastAPI

from .api import api_router
from .core.config import env_flag, get_app_env, get_storage_mode, settings
from .core.db import SessionLocal, engine
from .core.errors import log_exception, register_exception_handlers
from .core.logging_config import setup_logging
from .models import Base
from .scripts.run_migrations import run_migrations_to_head
from .services.admin_seed import seed_main_admin
from .services.credential_store import build_store_factory
from .services.mailer import build_mailer
from .services.market_prices import MarketPriceProvider, run_market_price_refresh
from .services.otp import InMemoryOTPStore, OTPVerifier, run_otp_sweeper
from .services.weather import WeatherProvider


def _start_thread(app: FastAPI, name: str, target: Callable, *args) -> None:
    stop_event = threading.Event()
    thread = threading.Thread(target=target, args=(stop_event, *args), daemon=True, name=name)
    thread.start()
    app.state.background_stops[name] = stop_event
    app.state.background_threads[name] = thread


def create_app() -> FastAPI:
    setup_logging()
    app = FastAPI(title="Krushi Mithra Backend", version="0.1.0")
    register_exception_handlers(app)
    # Include API routers
    app.include_router(api_router)

    app.state.store_factory = build_store_factory(get_storage_mode(), json_path=settings.json_storage_path)
    app.state.otp_verifier = OTPVerifier(InMemoryOTPStore(), build_mailer())
    app.state.market_prices = MarketPriceProvider(
        api_key=os.getenv("DATA_GOV_IN_API_KEY") or settings.data_gov_in_api_key,
        cache_path=os.getenv("KM_MARKET_PRICE_CACHE_PATH") or settings.market_price_cache_path,
    )
    app.state.weather = WeatherProvider(api_key=os.getenv("OPENWEATHER_API_KEY") or settings.openweather_api_key)
    app.state.background_stops = {}
    app.state.background_threads = {}

    @app.on_event("startup")
    def _init_db() -> None:
        logger = logging.getLogger("startup")
        env = get_app_env()
        logger.info("Starting Krushi Mithra backend env=%s storage=%s", env, get_storage_mode())
        if env_flag("AUTO_CREATE_DB", "true"):
            try:
                Base.metadata.create_all(bind=engine)
            except Exception as exc:
                log_exception(logger, "DB create_all failed", exc=exc)
                if env == "prod":
                    raise
        if env_flag("AUTO_RUN_MIGRATIONS", "true"):
            try:
                run_migrations_to_head()
            except Exception as exc:
                log_exception(logger, "DB migrations failed", exc=exc)
                if env == "prod":
                    raise
        if env_flag("AUTO_SEED_ADMIN_USER", "true"):
            try:
                with SessionLocal() as db:
                    seed_main_admin(app.state.store_factory(db))
            except Exception as exc:
                log_exception(logger, "Seed admin user failed", exc=exc)
                if env == "prod":
                    raise
        if env_flag("ENABLE_OTP_SWEEPER", "true"):
            _start_thread(app, "otp-sweeper", run_otp_sweeper, app.state.otp_verifier)
        if env_flag("ENABLE_MARKET_PRICE_REFRESH", "true"):
            _start_thread(app, "market-price-refresh", run_market_price_refresh, app.state.market_prices)

    @app.on_event("shutdown")
    def _shutdown() -> None:
        for stop_event in app.state.background_stops.values():
            stop_event.set()
        for thread in app.state.background_threads.values():
            thread.join(timeout=5)

    return app


app = create_app()
