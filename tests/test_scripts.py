from app.core.db import SessionLocal
from app.models.subsidy import Subsidy
from app.scripts.seed_demo_data import DEMO_SUBSIDIES, seed_demo_subsidies


def test_demo_subsidies_seeded_once(client):
    with SessionLocal() as db:
        first = seed_demo_subsidies(db)
        second = seed_demo_subsidies(db)
        titles = {t for (t,) in db.query(Subsidy.title).all()}
    assert second == 0
    assert first <= len(DEMO_SUBSIDIES)
    assert {item["title"] for item in DEMO_SUBSIDIES} <= titles
