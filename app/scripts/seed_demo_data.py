"""Seed demo data for the Krushi Mithra backend.

Creates the main admin from KM_ADMIN_* settings and a handful of central
government subsidy schemes so a fresh install has something to show.
"""

from __future__ import annotations

import datetime
import logging

from sqlalchemy.orm import Session

from app.core.clock import utcnow
from app.core.config import get_storage_mode, settings
from app.core.db import SessionLocal
from app.models.subsidy import Subsidy
from app.services.admin_seed import seed_main_admin
from app.services.credential_store import build_store_factory
from app.services.subsidies import create_subsidy


logger = logging.getLogger("scripts.seed_demo_data")

DEMO_SUBSIDIES = [
    {
        "title": "PM-KISAN (Pradhan Mantri Kisan Samman Nidhi)",
        "description": "Direct income support of Rs 6,000 per year in three equal installments to landholding farmers",
        "amount": 6000,
        "category": "other",
        "eligibility": "All landholding farmers with cultivable land",
        "state": "All India",
        "application_link": "https://pmkisan.gov.in",
        "days_open": 90,
    },
    {
        "title": "Pradhan Mantri Fasal Bima Yojana (PMFBY)",
        "description": "Crop insurance against loss from natural calamities, pests and diseases",
        "amount": 200000,
        "category": "insurance",
        "eligibility": "All farmers growing notified crops",
        "state": "All India",
        "application_link": "https://pmfby.gov.in",
        "days_open": 60,
    },
    {
        "title": "Kisan Credit Card (KCC)",
        "description": "Short-term credit for crop cultivation expenses at subsidized interest rates",
        "amount": 300000,
        "category": "loan",
        "eligibility": "Farmers with land ownership or valid lease documents",
        "state": "All India",
        "application_link": "https://www.india.gov.in/spotlight/kisan-credit-card-kcc",
        "days_open": 180,
    },
    {
        "title": "Soil Health Card Scheme",
        "description": "Free soil testing with crop-wise fertilizer recommendations",
        "amount": 0,
        "category": "fertilizer",
        "eligibility": "All farmers across India",
        "state": "All India",
        "application_link": "https://soilhealth.dac.gov.in",
        "days_open": 120,
    },
    {
        "title": "Pradhan Mantri Krishi Sinchayee Yojana (PMKSY)",
        "description": "Irrigation support to improve water use efficiency (Per Drop More Crop)",
        "amount": 50000,
        "category": "irrigation",
        "eligibility": "All farmers with access to water sources",
        "state": "All India",
        "application_link": "https://pmksy.gov.in",
        "days_open": 120,
    },
]


def seed_demo_subsidies(db: Session, *, now: datetime.datetime | None = None) -> int:
    """Insert demo schemes whose title is not present yet. Returns the number created."""
    now = now or utcnow()
    existing = {title for (title,) in db.query(Subsidy.title).all()}
    created = 0
    for item in DEMO_SUBSIDIES:
        if item["title"] in existing:
            continue
        data = {k: v for k, v in item.items() if k != "days_open"}
        data["deadline"] = now + datetime.timedelta(days=item["days_open"])
        create_subsidy(db, data, admin_id=None)
        created += 1
    return created


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    store_factory = build_store_factory(get_storage_mode(), json_path=settings.json_storage_path)
    with SessionLocal() as db:
        seed_main_admin(store_factory(db))
        created = seed_demo_subsidies(db)
    logger.info("Demo seed complete. subsidies_created=%s", created)


if __name__ == "__main__":
    main()
