"""
Structured audit logging for account and session events.

Each event is one JSON line on the "audit" logger. Email addresses are
hashed so the log can be shipped without exposing identities.
"""

from __future__ import annotations

import hashlib
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

logger = logging.getLogger("audit")


def hash_identifier(value: str | None) -> str | None:
    if not value:
        return None
    return hashlib.sha256(value.strip().lower().encode("utf-8")).hexdigest()[:16]


def audit_log(
    action: str,
    *,
    email: str | None = None,
    subject_id: str | None = None,
    actor_id: str | None = None,
    ip_address: str | None = None,
    success: bool = True,
    details: Optional[Dict[str, Any]] = None,
) -> None:
    entry = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "action": action,
        "email_hash": hash_identifier(email),
        "subject_id": subject_id,
        "actor_id": actor_id,
        "ip_address": ip_address,
        "success": success,
        "details": details or {},
    }
    logger.info("AUDIT: %s", json.dumps(entry, default=str))
