"""
OpenWeatherMap client with caching.
"""
import logging
from collections import Counter, OrderedDict
from datetime import datetime, timezone
from typing import Dict, Any, List, Optional

from dashboard.cache import CacheStore, get_ttl_for_source
from dashboard.errors import SourceUnavailable
from dashboard.utils.helpers import iso_now
from .http import get_json

logger = logging.getLogger("services.weather")

OPENWEATHER_API_BASE = "https://api.openweathermap.org/data/2.5"
REQUEST_TIMEOUT = 5
FORECAST_DAYS = 5

FALLBACK_WEATHER: Dict[str, Any] = {
    "temp": None,
    "condition": "Unavailable",
    "feelsLike": None,
    "humidity": None,
    "high": None,
    "low": None,
    "icon": "01d",
    "description": "Weather data temporarily unavailable",
    "error": True,
}


def format_current_weather(data: Dict[str, Any]) -> Dict[str, Any]:
    """Flatten an OpenWeatherMap /weather payload."""
    try:
        main = data["main"]
        condition = data["weather"][0]
        wind = data.get("wind") or {}
        sys = data.get("sys") or {}
        return {
            "temp": round(main["temp"]),
            "condition": condition["main"],
            "description": condition.get("description"),
            "feelsLike": round(main["feels_like"]),
            "humidity": main.get("humidity"),
            "high": round(main["temp_max"]),
            "low": round(main["temp_min"]),
            "icon": condition.get("icon"),
            "pressure": main.get("pressure"),
            "windSpeed": round(wind["speed"]) if wind.get("speed") is not None else None,
            "windDirection": wind.get("deg"),
            "cloudiness": (data.get("clouds") or {}).get("all"),
            "visibility": data.get("visibility"),
            "sunrise": sys.get("sunrise"),
            "sunset": sys.get("sunset"),
            "timezone": data.get("timezone"),
            "cityName": data.get("name"),
            "timestamp": iso_now(),
        }
    except (KeyError, IndexError, TypeError) as e:
        raise SourceUnavailable("weather", f"unexpected current weather payload: {e}") from e


def format_forecast(data: Dict[str, Any]) -> List[Dict[str, Any]]:
    """
    Group a 3-hour forecast into daily summaries.

    Each day gets its high, low, most common condition and the icon from the
    middle of the day's entries.
    """
    days: "OrderedDict[str, Dict[str, list]]" = OrderedDict()
    try:
        for entry in data.get("list") or []:
            day = datetime.fromtimestamp(entry["dt"], tz=timezone.utc).date().isoformat()
            bucket = days.setdefault(day, {"temps": [], "conditions": [], "icons": []})
            bucket["temps"].append(entry["main"]["temp"])
            bucket["conditions"].append(entry["weather"][0]["main"])
            bucket["icons"].append(entry["weather"][0]["icon"])
    except (KeyError, IndexError, TypeError) as e:
        raise SourceUnavailable("weather", f"unexpected forecast payload: {e}") from e

    forecast = []
    for day, bucket in days.items():
        forecast.append({
            "date": day,
            "high": round(max(bucket["temps"])),
            "low": round(min(bucket["temps"])),
            "condition": Counter(bucket["conditions"]).most_common(1)[0][0],
            "icon": bucket["icons"][len(bucket["icons"]) // 2],
        })
    return forecast[:FORECAST_DAYS]


class WeatherService:
    """Current conditions and 5-day forecast for a fixed location."""

    def __init__(
        self,
        store: CacheStore,
        api_key: Optional[str],
        lat: Optional[float],
        lon: Optional[float],
        ttl: Optional[int] = None,
    ):
        self._store = store
        self._api_key = api_key
        self._lat = lat
        self._lon = lon
        self._ttl = ttl if ttl is not None else get_ttl_for_source("weather")

    def _fetch(self, endpoint: str) -> Dict[str, Any]:
        if not self._api_key:
            raise SourceUnavailable("weather", "OPENWEATHER_API_KEY not configured")
        if self._lat is None or self._lon is None:
            raise SourceUnavailable("weather", "WEATHER_LAT and WEATHER_LON not configured")
        return get_json(
            "weather",
            f"{OPENWEATHER_API_BASE}/{endpoint}",
            params={
                "lat": self._lat,
                "lon": self._lon,
                "appid": self._api_key,
                "units": "imperial",
            },
            timeout=REQUEST_TIMEOUT,
        )

    def get_current(self) -> Dict[str, Any]:
        """
        Current conditions, cached.

        Raises:
            SourceUnavailable: If OpenWeatherMap can't be reached or isn't configured
        """
        return self._store.get_or_set(
            "weather:current",
            lambda: format_current_weather(self._fetch("weather")),
            self._ttl,
        )

    def get_forecast(self) -> List[Dict[str, Any]]:
        """
        Daily forecast summaries, cached.

        Raises:
            SourceUnavailable: If OpenWeatherMap can't be reached or isn't configured
        """
        return self._store.get_or_set(
            "weather:forecast",
            lambda: format_forecast(self._fetch("forecast")),
            self._ttl,
        )

    def get_all(self) -> Dict[str, Any]:
        """Current conditions plus forecast, degrading each part independently."""
        result: Dict[str, Any] = {"timestamp": iso_now()}
        try:
            result["current"] = self.get_current()
        except SourceUnavailable as e:
            logger.warning(f"Returning fallback current weather: {e}")
            result["current"] = dict(FALLBACK_WEATHER, timestamp=iso_now())
            result["error"] = True
        try:
            result["forecast"] = self.get_forecast()
        except SourceUnavailable as e:
            logger.warning(f"Returning empty forecast: {e}")
            result["forecast"] = []
            result["error"] = True
        return result
