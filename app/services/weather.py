"""
Weather snapshot and farming advisories for a location in Karnataka.

Uses OpenWeatherMap when OPENWEATHER_API_KEY is set; otherwise, and on any
upstream failure, returns a fixed demo snapshot flagged ``source="fallback"``.
"""

from __future__ import annotations

import datetime
import logging
import threading
from collections import Counter, defaultdict
from typing import Callable, Optional

import requests

from ..core.clock import utcnow

logger = logging.getLogger("weather")

OWM_BASE_URL = "https://api.openweathermap.org/data/2.5"
OWM_GEO_URL = "https://api.openweathermap.org/geo/1.0/direct"
DEFAULT_LOCATION = {"name": "Bangalore", "state": "Karnataka", "country": "IN", "lat": 12.9716, "lon": 77.5946}
DEFAULT_CACHE_TTL = datetime.timedelta(minutes=10)


class UpstreamError(RuntimeError):
    pass


def condition_from_code(code: int) -> str:
    if 200 <= code < 300:
        return "thunderstorm"
    if 300 <= code < 400:
        return "drizzle"
    if 500 <= code < 600:
        return "rain"
    if 600 <= code < 700:
        return "snow"
    if 700 <= code < 800:
        return "mist"
    if code == 800:
        return "clear"
    if code > 800:
        return "clouds"
    return "unknown"


def agriculture_alerts(current: dict, forecast: list[dict]) -> list[dict]:
    alerts = []
    if current.get("temperature", 0) > 35:
        alerts.append(
            {
                "type": "heat",
                "severity": "warning",
                "title": "High Temperature Alert",
                "message": "Temperature above 35°C. Ensure adequate irrigation for crops.",
            }
        )
    if forecast and forecast[0].get("rainfall", 0) > 50:
        alerts.append(
            {
                "type": "rain",
                "severity": "alert",
                "title": "Heavy Rainfall Expected",
                "message": "Heavy rain predicted. Prepare drainage and protect crops.",
            }
        )
    if current.get("windSpeed", 0) > 40:
        alerts.append(
            {
                "type": "wind",
                "severity": "warning",
                "title": "Strong Wind Advisory",
                "message": "High wind speeds. Secure loose items and check crop support structures.",
            }
        )
    return alerts


def farming_advice(current: dict, forecast: list[dict]) -> list[str]:
    advice = []
    temperature = current.get("temperature", 0)
    humidity = current.get("humidity", 0)
    if humidity < 40 and temperature > 30:
        advice.append("Increase irrigation frequency due to high temperature and low humidity")
    if forecast:
        avg_temp = sum((d["tempMax"] + d["tempMin"]) / 2 for d in forecast) / len(forecast)
        if 25 < avg_temp < 35:
            advice.append("Good conditions for planting summer vegetables")
    if humidity > 70 and temperature > 25:
        advice.append("Monitor for pest activity: conditions favour insects")
    rainy_days = sum(1 for d in forecast if d.get("rainfall", 0) > 20)
    if rainy_days < 2:
        advice.append("Good time for fertilizer application: low chance of rain")
    return advice


def summarize_forecast(entries: list[dict], days: int = 7) -> list[dict]:
    """Collapse 3-hourly forecast entries into daily min/max summaries."""
    by_day: dict[str, list[dict]] = defaultdict(list)
    for entry in entries:
        day = str(entry.get("dt_txt", "")).split(" ")[0]
        if day:
            by_day[day].append(entry)
    summaries = []
    for day in sorted(by_day)[:days]:
        items = by_day[day]
        temps = [i["main"]["temp"] for i in items]
        codes = Counter(i["weather"][0]["id"] for i in items)
        summaries.append(
            {
                "date": day,
                "tempMax": round(max(temps)),
                "tempMin": round(min(temps)),
                "description": items[0]["weather"][0]["description"],
                "condition": condition_from_code(codes.most_common(1)[0][0]),
                "humidity": round(sum(i["main"]["humidity"] for i in items) / len(items)),
                "windSpeed": round(sum(i["wind"]["speed"] for i in items) / len(items) * 3.6),
                "rainfall": round(sum((i.get("rain") or {}).get("3h", 0) for i in items)),
            }
        )
    return summaries


def demo_snapshot(location: str, today: Optional[datetime.date] = None) -> dict:
    today = today or utcnow().date()
    current = {
        "temperature": 28,
        "feelsLike": 30,
        "description": "Partly cloudy",
        "condition": "clouds",
        "humidity": 65,
        "pressure": 1013,
        "windSpeed": 15,
        "cloudiness": 40,
        "visibility": 10,
    }
    pattern = [(31, 21, 0), (32, 22, 5), (30, 21, 25), (29, 20, 10), (31, 22, 0), (33, 23, 0), (30, 21, 15)]
    forecast = [
        {
            "date": (today + datetime.timedelta(days=i + 1)).isoformat(),
            "tempMax": hi,
            "tempMin": lo,
            "description": "Light rain" if rain > 20 else "Partly cloudy",
            "condition": "rain" if rain > 20 else "clouds",
            "humidity": 65,
            "windSpeed": 12,
            "rainfall": rain,
        }
        for i, (hi, lo, rain) in enumerate(pattern)
    ]
    return {
        "location": {**DEFAULT_LOCATION, "name": location or DEFAULT_LOCATION["name"]},
        "current": current,
        "forecast": forecast,
        "alerts": agriculture_alerts(current, forecast),
        "advice": farming_advice(current, forecast),
        "source": "fallback",
        "lastUpdated": utcnow().isoformat(),
    }


class WeatherProvider:
    def __init__(
        self,
        *,
        api_key: Optional[str],
        cache_ttl: datetime.timedelta = DEFAULT_CACHE_TTL,
        http: Optional[requests.Session] = None,
        clock: Callable[[], datetime.datetime] = utcnow,
    ) -> None:
        self.api_key = (api_key or "").strip() or None
        self.cache_ttl = cache_ttl
        self.http = http or requests.Session()
        self.clock = clock
        self._cache: dict[str, tuple[datetime.datetime, dict]] = {}
        self._lock = threading.Lock()

    def _get_json(self, url: str, params: dict):
        try:
            response = self.http.get(url, params={**params, "appid": self.api_key}, timeout=(5, 10))
        except requests.RequestException as exc:
            raise UpstreamError(f"OpenWeather request failed: {exc}") from exc
        if response.status_code // 100 != 2:
            raise UpstreamError(f"OpenWeather returned HTTP {response.status_code}")
        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamError("OpenWeather returned invalid JSON") from exc

    def _geocode(self, location: str) -> dict:
        places = self._get_json(OWM_GEO_URL, {"q": f"{location},Karnataka,IN", "limit": 1})
        if not places:
            return dict(DEFAULT_LOCATION)
        try:
            place = places[0]
            return {
                "name": place.get("name") or location,
                "state": place.get("state") or "Karnataka",
                "country": place.get("country") or "IN",
                "lat": place["lat"],
                "lon": place["lon"],
            }
        except (KeyError, IndexError, TypeError, AttributeError) as exc:
            raise UpstreamError(f"OpenWeather geocode not understood: {exc}") from exc

    def _fetch(self, location: str) -> dict:
        coords = self._geocode(location)
        point = {"lat": coords["lat"], "lon": coords["lon"], "units": "metric"}
        data = self._get_json(f"{OWM_BASE_URL}/weather", point)
        forecast_raw = self._get_json(f"{OWM_BASE_URL}/forecast", {**point, "cnt": 40})
        try:
            current = {
                "temperature": round(data["main"]["temp"]),
                "feelsLike": round(data["main"]["feels_like"]),
                "description": data["weather"][0]["description"],
                "condition": condition_from_code(int(data["weather"][0]["id"])),
                "humidity": data["main"]["humidity"],
                "pressure": data["main"]["pressure"],
                "windSpeed": round(data["wind"]["speed"] * 3.6),
                "cloudiness": (data.get("clouds") or {}).get("all", 0),
                "visibility": data.get("visibility", 10000) / 1000,
            }
            forecast = summarize_forecast(forecast_raw.get("list") or [])
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            raise UpstreamError(f"OpenWeather payload not understood: {exc}") from exc
        return {
            "location": coords,
            "current": current,
            "forecast": forecast,
            "alerts": agriculture_alerts(current, forecast),
            "advice": farming_advice(current, forecast),
            "source": "openweathermap",
            "lastUpdated": self.clock().isoformat(),
        }

    def get_by_location(self, location: Optional[str]) -> dict:
        name = (location or "").strip() or DEFAULT_LOCATION["name"]
        if not self.api_key:
            return demo_snapshot(name)
        key = name.lower()
        now = self.clock()
        with self._lock:
            hit = self._cache.get(key)
            if hit and now - hit[0] < self.cache_ttl:
                return hit[1]
        try:
            snapshot = self._fetch(name)
        except UpstreamError as exc:
            logger.warning("Weather lookup failed location=%s: %s", name, exc)
            return demo_snapshot(name)
        with self._lock:
            self._cache[key] = (now, snapshot)
        return snapshot
