"""
Lifestack HTTP client for calendar events and tasks.

Not cached here; Lifestack caches internally.
"""
import logging
from typing import Dict, Any, List

import requests

from dashboard.errors import SourceUnavailable
from dashboard.utils.helpers import iso_now
from .http import get_json

logger = logging.getLogger("services.lifestack")

REQUEST_TIMEOUT = 5
HEALTH_TIMEOUT = 2


class LifestackClient:
    """Thin client over the Lifestack REST API."""

    def __init__(self, base_url: str, timeout: float = REQUEST_TIMEOUT):
        self.base_url = base_url.rstrip("/")
        self._timeout = timeout

    def _get(self, path: str) -> Any:
        logger.debug(f"Fetching {path} from Lifestack")
        return get_json(
            "lifestack",
            f"{self.base_url}{path}",
            headers={"Content-Type": "application/json"},
            timeout=self._timeout,
        )

    def _get_list(self, path: str, field: str) -> List[Dict[str, Any]]:
        data = self._get(path)
        # Lifestack returns either a bare list or {field: [...]}
        if isinstance(data, dict):
            data = data.get(field)
        if not isinstance(data, list):
            raise SourceUnavailable("lifestack", f"unexpected {field} payload from {path}")
        return data

    def get_today(self) -> Dict[str, Any]:
        """Today's combined events and tasks."""
        return self._get("/api/today")

    def get_today_events(self) -> List[Dict[str, Any]]:
        """
        Today's calendar events.

        Raises:
            SourceUnavailable: If Lifestack can't be reached
        """
        return self._get_list("/api/today/events", "events")

    def get_tasks(self) -> List[Dict[str, Any]]:
        """
        All tasks.

        Raises:
            SourceUnavailable: If Lifestack can't be reached
        """
        return self._get_list("/api/tasks", "tasks")

    def health_check(self) -> Dict[str, Any]:
        """Probe Lifestack's /health endpoint. Never raises."""
        try:
            response = requests.get(f"{self.base_url}/health", timeout=HEALTH_TIMEOUT)
            response.raise_for_status()
            return {"status": "healthy", "lifestackUrl": self.base_url, "checkedAt": iso_now()}
        except requests.RequestException as e:
            logger.error(f"Lifestack health check failed: {e}")
            return {
                "status": "unhealthy",
                "lifestackUrl": self.base_url,
                "error": str(e),
                "checkedAt": iso_now(),
            }
