"""
Bootstrap seed for the single MAIN_ADMIN account.
"""

from __future__ import annotations

import logging
import os

from ..core.config import get_app_env
from ..core.constants import Role
from .credential_store import CredentialStore


def seed_main_admin(store: CredentialStore) -> None:
    logger = logging.getLogger("auth-seed")
    email = (os.getenv("KM_ADMIN_EMAIL") or "").strip().lower()
    password = (os.getenv("KM_ADMIN_PASSWORD") or "").strip()
    username = (os.getenv("KM_ADMIN_USERNAME") or "admin").strip()

    if not email or not password:
        if get_app_env() == "prod":
            raise RuntimeError("KM_ADMIN_EMAIL and KM_ADMIN_PASSWORD are required to seed MAIN_ADMIN in prod")
        logger.warning("Skipping admin seed: KM_ADMIN_EMAIL or KM_ADMIN_PASSWORD is empty")
        return

    existing = store.list_admins_by_role(Role.MAIN_ADMIN)
    if existing:
        if len(existing) > 1:
            logger.error("Found %s MAIN_ADMIN accounts; expected exactly one", len(existing))
        if all(admin.email != email for admin in existing):
            logger.warning("MAIN_ADMIN already exists with a different email; KM_ADMIN_EMAIL ignored")
        return

    if store.find_admin_by_email(email):
        logger.warning("Admin %s exists without MAIN_ADMIN role; not promoting automatically", username)
        return

    admin = store.create_admin(username=username, email=email, password=password, role=Role.MAIN_ADMIN)
    logger.info("Seeded MAIN_ADMIN id=%s username=%s", admin.id, admin.username)
