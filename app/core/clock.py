"""Timezone helpers shared by services and stores."""

from __future__ import annotations

import datetime
from typing import Optional


def utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def ensure_utc(dt: Optional[datetime.datetime]) -> Optional[datetime.datetime]:
    # SQLite hands back naive datetimes even for timezone-aware columns.
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=datetime.timezone.utc)
    return dt.astimezone(datetime.timezone.utc)


def parse_iso(value: Optional[str]) -> Optional[datetime.datetime]:
    if not value:
        return None
    return ensure_utc(datetime.datetime.fromisoformat(value))
