"""
Health endpoint for the Krushi Mithra backend.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...core.config import get_app_env, get_storage_mode
from ...core.db import get_db

router = APIRouter(prefix="/api/v1/health", tags=["health"])


@router.get("")
def health(request: Request, db: Session = Depends(get_db)) -> dict:
    database = "ok"
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        logging.getLogger("health").warning("Database health check failed: %s", exc)
        database = "unavailable"
    threads = {
        name: bool(thread and thread.is_alive())
        for name, thread in (getattr(request.app.state, "background_threads", None) or {}).items()
    }
    return {
        "status": "ok" if database == "ok" else "degraded",
        "env": get_app_env(),
        "storage": get_storage_mode(),
        "database": database,
        "background": threads,
        "timestamp_utc": datetime.now(timezone.utc).isoformat(),
    }
