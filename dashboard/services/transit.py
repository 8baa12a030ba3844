"""
CTA Bus Tracker and Train Tracker client with caching.
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Callable, Dict, Any, List, Optional

from dashboard.cache import CacheStore, get_ttl_for_source
from dashboard.errors import SourceUnavailable
from dashboard.utils.helpers import iso_now, safe_lower
from .http import get_json, redact

logger = logging.getLogger("services.transit")

CTA_BUS_API_BASE = "http://www.ctabustracker.com/bustime/api/v2"
CTA_TRAIN_API_BASE = "http://lapi.transitchicago.com/api/1.0"
REQUEST_TIMEOUT = 10

# Tracked stops. Bus stop IDs come from getstops, train map IDs from the
# Train Tracker station list.
CTA_STOPS: Dict[str, Any] = {
    "bus": {
        "77": {
            "route_id": "77",  # Belmont Avenue
            "eastbound": {"stop_id": "1129", "direction": "Eastbound"},  # Belmont & Sheffield
            "westbound": {"stop_id": "1130", "direction": "Westbound"},
        },
    },
    "train": {
        "red": {"line": "Red", "stop_id": "41320", "stop_name": "Belmont"},
        "brown": {"line": "Brown", "stop_id": "41320", "stop_name": "Belmont"},
    },
}


def _minutes_until(when: datetime, now: datetime) -> int:
    return max(0, int((when - now).total_seconds() // 60))


def format_bus_predictions(
    predictions: List[Dict[str, Any]],
    direction: str,
    now: datetime,
) -> List[Dict[str, Any]]:
    """Predictions for one direction, soonest first."""
    formatted = []
    for pred in predictions:
        if pred.get("rtdir") != direction:
            continue
        try:
            predicted = datetime.strptime(pred["prdtm"], "%Y%m%d %H:%M")
        except (KeyError, ValueError):
            continue
        formatted.append({
            "route": pred.get("rt"),
            "direction": pred.get("rtdir"),
            "destination": pred.get("des"),
            "minutesAway": _minutes_until(predicted, now),
            "predictedTime": predicted.strftime("%H:%M"),
            "vehicleId": pred.get("vid"),
        })
    return sorted(formatted, key=lambda p: p["minutesAway"])


def format_train_arrivals(arrivals: List[Dict[str, Any]], now: datetime) -> List[Dict[str, Any]]:
    """Train arrivals, soonest first."""
    formatted = []
    for arrival in arrivals:
        try:
            arrives = datetime.fromisoformat(arrival["arrT"])
        except (KeyError, ValueError, TypeError):
            continue
        formatted.append({
            "line": arrival.get("rt"),
            "destination": arrival.get("destNm"),
            "minutesAway": _minutes_until(arrives, now),
            "arrivalTime": arrives.strftime("%H:%M"),
            "isApproaching": arrival.get("isApp") == "1",
            "isDelayed": arrival.get("isDly") == "1",
            "runNumber": arrival.get("rn"),
        })
    return sorted(formatted, key=lambda a: a["minutesAway"])


class TransitService:
    """Bus and train arrival predictions for the configured CTA stops."""

    def __init__(
        self,
        store: CacheStore,
        bus_api_key: Optional[str],
        train_api_key: Optional[str],
        stops: Optional[Dict[str, Any]] = None,
        ttl: Optional[int] = None,
        now: Callable[[], datetime] = datetime.now,
    ):
        self._store = store
        self._bus_api_key = bus_api_key
        self._train_api_key = train_api_key
        self._stops = stops or CTA_STOPS
        self._ttl = ttl if ttl is not None else get_ttl_for_source("transit")
        self._now = now

    def fetch_bus_predictions(self, stop_id: str, route_id: str) -> List[Dict[str, Any]]:
        """Raw predictions for one stop. Empty when no service is scheduled."""
        if not self._bus_api_key:
            raise SourceUnavailable("transit", "CTA_BUS_API_KEY not configured")
        logger.debug(
            f"Fetching bus predictions: stop={stop_id} route={route_id} key={redact(self._bus_api_key)}"
        )
        data = get_json(
            "transit",
            f"{CTA_BUS_API_BASE}/getpredictions",
            params={"key": self._bus_api_key, "stpid": stop_id, "rt": route_id, "format": "json"},
            timeout=REQUEST_TIMEOUT,
        )
        body = (data or {}).get("bustime-response") or {}
        errors = body.get("error")
        if errors:
            message = (errors[0] or {}).get("msg") or "Unknown error"
            if "no service scheduled" in safe_lower(message):
                logger.debug(f"No bus service scheduled for stop {stop_id}, route {route_id}")
            else:
                logger.warning(f"CTA Bus API error for stop {stop_id}, route {route_id}: {message}")
            return []
        return body.get("prd") or []

    def fetch_train_arrivals(self, stop_id: str) -> List[Dict[str, Any]]:
        """Raw arrivals for one station."""
        if not self._train_api_key:
            raise SourceUnavailable("transit", "CTA_TRAIN_API_KEY not configured")
        data = get_json(
            "transit",
            f"{CTA_TRAIN_API_BASE}/ttarrivals.aspx",
            params={"key": self._train_api_key, "mapid": stop_id, "outputType": "JSON"},
            timeout=REQUEST_TIMEOUT,
        )
        body = (data or {}).get("ctatt") or {}
        # errCd "0" means success
        error_code = body.get("errCd")
        if error_code and error_code != "0":
            logger.warning(
                f"CTA Train API error for stop {stop_id}: [{error_code}] {body.get('errNm') or 'Unknown error'}"
            )
            return []
        return body.get("eta") or []

    def get_route(self, route: str) -> Dict[str, Any]:
        """Both directions for one bus route, cached."""
        config = self._stops["bus"][route]

        def fetch():
            now = self._now()
            directions = {}
            for name in ("eastbound", "westbound"):
                stop = config[name]
                raw = self.fetch_bus_predictions(stop["stop_id"], config["route_id"])
                directions[name] = format_bus_predictions(raw, stop["direction"], now)
            return dict(route=route, timestamp=iso_now(), **directions)

        return self._store.get_or_set(f"transit:buses:route{route}", fetch, self._ttl)

    def get_line(self, line: str) -> Dict[str, Any]:
        """Arrivals for one train line, cached."""
        config = self._stops["train"][line]

        def fetch():
            arrivals = self.fetch_train_arrivals(config["stop_id"])
            return {
                "line": config["line"],
                "stopName": config["stop_name"],
                "arrivals": format_train_arrivals(arrivals, self._now()),
                "timestamp": iso_now(),
            }

        return self._store.get_or_set(f"transit:trains:{line}line", fetch, self._ttl)

    def get_buses(self) -> Dict[str, Any]:
        return {
            "routes": {route: self.get_route(route) for route in self._stops["bus"]},
            "timestamp": iso_now(),
        }

    def get_trains(self) -> Dict[str, Any]:
        return {
            "lines": {line: self.get_line(line) for line in self._stops["train"]},
            "timestamp": iso_now(),
        }

    def get_all(self) -> Dict[str, Any]:
        """
        Buses and trains fetched in parallel.

        A failing half is reported under "errors" and left empty.

        Raises:
            SourceUnavailable: If both buses and trains failed
        """
        with ThreadPoolExecutor(max_workers=2) as executor:
            futures = {
                "buses": executor.submit(self.get_buses),
                "trains": executor.submit(self.get_trains),
            }

        result: Dict[str, Any] = {"timestamp": iso_now()}
        errors: Dict[str, str] = {}
        for name, future in futures.items():
            try:
                result[name] = future.result()
            except SourceUnavailable as e:
                logger.error(f"Error getting {name}: {e}")
                errors[name] = str(e)
                result[name] = {"routes": {}} if name == "buses" else {"lines": {}}

        if len(errors) == len(futures):
            raise SourceUnavailable("transit", "; ".join(errors.values()))
        if errors:
            result["errors"] = errors
        return result
