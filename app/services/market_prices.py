"""
Karnataka market prices from data.gov.in with a file cache.

`get_latest` serves the cache while it is fresh and refreshes otherwise, then
overlays prices entered by administrators.
Upstream failures fall back to the last cache, then to built-in reference
prices; neither method raises to the caller.
"""

from __future__ import annotations

import datetime
import logging
import os
import threading
from typing import Callable, Optional

import requests

from ..core.clock import parse_iso, utcnow
from ..core.fileio import JsonDocument

logger = logging.getLogger("market-prices")

DATA_GOV_IN_URL = "https://api.data.gov.in/resource/9ef84268-d588-465a-a308-a864a43d0070"
DEFAULT_CACHE_TTL = datetime.timedelta(hours=6)
CATEGORIES = ("vegetables", "fruits", "grains")

_VEGETABLES = ("tomato", "onion", "potato", "brinjal", "cabbage", "cauliflower", "carrot", "beans", "peas", "capsicum")
_FRUITS = ("banana", "mango", "apple", "grapes", "orange", "watermelon", "papaya", "guava", "pomegranate")

# Reference prices (per quintal) used when neither upstream nor cache is available.
_FALLBACK = {
    "vegetables": [
        ("Tomato", 3500, "Bangalore APMC"),
        ("Onion", 2800, "Mysore Market"),
        ("Potato", 2200, "Hubli Market"),
        ("Cabbage", 1800, "Belgaum Market"),
        ("Cauliflower", 2500, "Mangalore Market"),
        ("Carrot", 3200, "Dharwad Market"),
        ("Beans", 4500, "Hassan Market"),
        ("Brinjal", 2900, "Tumkur Market"),
    ],
    "fruits": [
        ("Banana", 2500, "Bangalore APMC"),
        ("Mango", 4500, "Mysore Market"),
        ("Grapes", 8000, "Belgaum Market"),
        ("Papaya", 1800, "Mangalore Market"),
        ("Watermelon", 1200, "Hubli Market"),
        ("Pomegranate", 9500, "Shimoga Market"),
    ],
    "grains": [
        ("Rice", 2200, "Mandya Market"),
        ("Wheat", 2000, "Dharwad Market"),
        ("Ragi", 3500, "Hassan Market"),
    ],
}


class UpstreamError(RuntimeError):
    pass


def _category_for(commodity: str) -> str:
    name = commodity.lower()
    if any(v in name for v in _VEGETABLES):
        return "vegetables"
    if any(f in name for f in _FRUITS):
        return "fruits"
    return "grains"


def _trend(previous: Optional[float], current: float) -> str:
    if previous is None or previous <= 0:
        return "stable"
    change = (current - previous) / previous
    if change > 0.02:
        return "up"
    if change < -0.02:
        return "down"
    return "stable"


def _previous_prices(price_set: Optional[dict]) -> dict[tuple[str, str], float]:
    out: dict[tuple[str, str], float] = {}
    if not price_set:
        return out
    for category in CATEGORIES:
        for item in price_set.get(category, []):
            try:
                out[(item["commodity"].lower(), item["market"].lower())] = float(item["price"])
            except (KeyError, TypeError, ValueError):
                continue
    return out


def normalize_records(records: list[dict], *, previous: Optional[dict] = None, today: Optional[str] = None) -> dict:
    """Group upstream records into vegetables/fruits/grains; records without a price are skipped."""
    today = today or utcnow().date().isoformat()
    prior = _previous_prices(previous)
    grouped: dict[str, list[dict]] = {c: [] for c in CATEGORIES}
    for record in records:
        commodity = str(record.get("commodity") or record.get("Commodity") or "").strip()
        raw_price = record.get("modal_price") or record.get("Modal_Price") or record.get("price") or 0
        try:
            price = float(raw_price)
        except (TypeError, ValueError):
            continue
        if not commodity or price <= 0:
            continue
        market = str(record.get("market") or record.get("Market") or "Karnataka Market").strip()
        name = commodity.title()
        grouped[_category_for(commodity)].append(
            {
                "commodity": name,
                "price": price,
                "unit": "per quintal",
                "market": market,
                "state": "Karnataka",
                "date": str(record.get("arrival_date") or today),
                "trend": _trend(prior.get((name.lower(), market.lower())), price),
            }
        )
    return grouped


def fallback_prices(today: Optional[str] = None) -> dict:
    today = today or utcnow().date().isoformat()
    return {
        category: [
            {
                "commodity": name,
                "price": float(price),
                "unit": "per quintal",
                "market": market,
                "state": "Karnataka",
                "date": today,
                "trend": "stable",
            }
            for name, price, market in rows
        ]
        for category, rows in _FALLBACK.items()
    }


def merge_manual_prices(result: dict, manual: list[dict]) -> dict:
    """Overlay admin entries on a price set; an entry replaces the row for its commodity and market."""
    if not manual:
        return result
    overridden = {(m["commodity"].lower(), m["market"].lower()) for m in manual}
    merged = dict(result)
    for category in CATEGORIES:
        rows = [
            r for r in result.get(category, []) if (r["commodity"].lower(), r["market"].lower()) not in overridden
        ]
        merged[category] = [m for m in manual if m.get("category") == category] + rows
    return merged


class MarketPriceProvider:
    def __init__(
        self,
        *,
        api_key: Optional[str],
        cache_path: str,
        cache_ttl: datetime.timedelta = DEFAULT_CACHE_TTL,
        http: Optional[requests.Session] = None,
        clock: Callable[[], datetime.datetime] = utcnow,
    ) -> None:
        self.api_key = (api_key or "").strip() or None
        self.cache = JsonDocument(cache_path, dict)
        self.cache_ttl = cache_ttl
        self.http = http or requests.Session()
        self.clock = clock

    def _fetch(self) -> list[dict]:
        params = {
            "api-key": self.api_key,
            "format": "json",
            "limit": 200,
            "filters[state]": "Karnataka",
        }
        try:
            response = self.http.get(DATA_GOV_IN_URL, params=params, timeout=(5, 15))
        except requests.RequestException as exc:
            raise UpstreamError(f"data.gov.in request failed: {exc}") from exc
        if response.status_code // 100 != 2:
            raise UpstreamError(f"data.gov.in returned HTTP {response.status_code}")
        try:
            body = response.json()
        except ValueError as exc:
            raise UpstreamError("data.gov.in returned invalid JSON") from exc
        records = body.get("records") if isinstance(body, dict) else None
        if not isinstance(records, list):
            raise UpstreamError("data.gov.in response has no records")
        return records

    def _cached(self) -> Optional[dict]:
        doc = self.cache.read()
        if not doc.get("prices"):
            return None
        return doc

    def _result(self, prices: dict, *, source: str, updated_at: Optional[str]) -> dict:
        return {**{c: prices.get(c, []) for c in CATEGORIES}, "source": source, "lastUpdated": updated_at}

    def refresh(self) -> dict:
        """Pull fresh prices; on failure serve the cache or the reference set."""
        cached = self._cached()
        if self.api_key:
            try:
                records = self._fetch()
                prices = normalize_records(records, previous=cached.get("prices") if cached else None)
                if not any(prices.values()):
                    raise UpstreamError("data.gov.in returned no usable prices")
                fetched_at = self.clock().isoformat()

                def _store(doc: dict) -> None:
                    doc.clear()
                    doc.update({"prices": prices, "fetched_at": fetched_at, "source": "data.gov.in"})

                self.cache.update(_store)
                logger.info("Market prices refreshed count=%s", sum(len(v) for v in prices.values()))
                return self._result(prices, source="data.gov.in", updated_at=fetched_at)
            except (UpstreamError, OSError) as exc:
                logger.warning("Market price refresh failed: %s", exc)
        if cached:
            return self._result(cached["prices"], source="cache", updated_at=cached.get("fetched_at"))
        return self._result(fallback_prices(), source="fallback", updated_at=None)

    def get_latest(self, manual: Optional[list[dict]] = None) -> dict:
        cached = self._cached()
        result = None
        if cached:
            fetched_at = parse_iso(cached.get("fetched_at"))
            if fetched_at and self.clock() - fetched_at < self.cache_ttl:
                result = self._result(cached["prices"], source="cache", updated_at=cached.get("fetched_at"))
        if result is None:
            result = self.refresh()
        return merge_manual_prices(result, manual or [])


def run_market_price_refresh(stop_event: threading.Event, provider: MarketPriceProvider) -> None:
    interval_sec = max(60, int(os.getenv("MARKET_PRICE_REFRESH_INTERVAL_SEC", "21600")))
    logger.info("Market price refresher started (interval=%ss)", interval_sec)
    while not stop_event.is_set():
        try:
            result = provider.refresh()
            logger.debug("Market price refresh source=%s", result.get("source"))
        except Exception as exc:
            logger.exception("Market price refresh cycle failed: %s", exc)
        stop_event.wait(interval_sec)
    logger.info("Market price refresher stopped")
