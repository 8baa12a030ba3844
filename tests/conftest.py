"""
Shared fixtures and fakes.

Nothing here touches the network: sources and services are replaced by
scripted fakes, clocks are injected and sleeps are no-ops.
"""
import random
from typing import Any, Callable, Dict, List, Optional

import pytest
import requests
from fastapi.testclient import TestClient

from config.settings import Settings
from dashboard.aggregator import DashboardAggregator, ModeState
from dashboard.cache import CacheStore
from dashboard.context import AppContext, get_context
from dashboard.main import app
from dashboard.realtime import ConnectionManager, RefreshScheduler
from dashboard.errors import SourceUnavailable
from dashboard.rotation import ContentItem, ContentSource, SourceWeight


class FakeClock:
    """Manually advanced epoch-seconds clock."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_item(source: str, item_id: Any, image_url: Optional[str] = "https://img.example/x.jpg", **kwargs) -> ContentItem:
    return ContentItem(
        id=str(item_id),
        source=source,
        title=kwargs.pop("title", f"{source} #{item_id}"),
        image_url=image_url,
        **kwargs,
    )


class ScriptedSource(ContentSource):
    """
    Source whose n-th call (1-based) is decided by a script.

    By default every call returns a fresh item with id equal to the call number.
    """

    accept_unknown_orientation = True

    def __init__(
        self,
        key: str,
        fail_when: Optional[Callable[[int], bool]] = None,
        item_for: Optional[Callable[[int], ContentItem]] = None,
    ):
        super().__init__()
        self.key = key
        self.calls = 0
        self._fail_when = fail_when or (lambda n: False)
        self._item_for = item_for or (lambda n: make_item(key, n))

    def search_candidates(self, orientation, filters):
        return []

    def normalize(self, raw):
        return make_item(self.key, raw.get("id"))

    def fetch_item(self, orientation, filters):
        self.calls += 1
        if self._fail_when(self.calls):
            raise SourceUnavailable(self.key, f"scripted failure on call {self.calls}")
        return self._item_for(self.calls)


def weighted(source: ContentSource, weight: float = 1, enabled: bool = True) -> SourceWeight:
    return SourceWeight(source=source, weight=weight, enabled=enabled)


class FakeResponse:
    """Stand-in for requests.Response."""

    def __init__(self, payload: Any = None, status_code: int = 200):
        self._payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class RecordingGet:
    """
    Replacement for requests.get that answers by URL substring.

    routes maps a URL fragment to a payload, a FakeResponse, or an exception
    to raise. Calls are recorded as (url, params).
    """

    def __init__(self, routes: Dict[str, Any]):
        self.routes = routes
        self.calls: List[tuple] = []

    def __call__(self, url, params=None, headers=None, timeout=None):
        self.calls.append((url, params))
        for fragment, answer in self.routes.items():
            if fragment in url:
                if isinstance(answer, Exception):
                    raise answer
                if isinstance(answer, FakeResponse):
                    return answer
                return FakeResponse(answer)
        return FakeResponse({}, status_code=404)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return CacheStore(default_ttl=300, check_period=60, clock=clock)


@pytest.fixture
def rng():
    return random.Random(1234)


# =============================================================================
# Application fakes
# =============================================================================

class FakeWeather:
    def __init__(self):
        self.fail = False

    def get_current(self):
        if self.fail:
            raise SourceUnavailable("weather", "timed out after 5s")
        return {"temp": 41, "condition": "Clouds", "feelsLike": 35, "humidity": 70,
                "high": 45, "low": 33, "icon": "04d", "description": "overcast clouds"}

    def get_forecast(self):
        return [{"date": "2025-03-14", "high": 48, "low": 40, "condition": "Rain", "icon": "04d"}]

    def get_all(self):
        return {"current": self.get_current(), "forecast": self.get_forecast()}


class FakeTransit:
    def get_buses(self):
        return {"routes": {"77": {"route": "77", "eastbound": [{"minutesAway": 3}], "westbound": []}}}

    def get_trains(self):
        return {"lines": {"red": {"line": "Red", "arrivals": [{"minutesAway": 2}]}}}

    def get_all(self):
        return {"buses": self.get_buses(), "trains": self.get_trains()}


class FakeLifestack:
    def __init__(self):
        self.fail = False
        self.events: List[Dict[str, Any]] = []
        self.tasks: List[Dict[str, Any]] = []

    def _check(self):
        if self.fail:
            raise SourceUnavailable("lifestack", "connection failed")

    def get_today_events(self):
        self._check()
        return list(self.events)

    def get_tasks(self):
        self._check()
        return list(self.tasks)

    def health_check(self):
        return {"status": "unhealthy" if self.fail else "healthy", "lifestackUrl": "http://lifestack.test"}


class FakeRotation:
    def __init__(self):
        self.requested = []
        self.refresh_error: Optional[Exception] = None

    def get_all_current(self, filters):
        self.requested.append(filters)
        return {"artworkCenter": {"id": "1", "source": "artic"}, "artworkRight": None, "artworkTV": None}

    def refresh_all(self, filters):
        if self.refresh_error is not None:
            raise self.refresh_error
        self.requested.append(filters)
        return {"success": True, "poolSizes": {"portrait": 12, "landscape": 12, "tv": 12}, "errors": {}}


@pytest.fixture
def app_context(store):
    weather, transit, lifestack, rotation = FakeWeather(), FakeTransit(), FakeLifestack(), FakeRotation()
    aggregator = DashboardAggregator.from_services(weather, transit, lifestack, rotation)
    mode_state = ModeState(initial="personal")
    ws_manager = ConnectionManager()
    return AppContext(
        settings=Settings(scheduler_enabled=False),
        store=store,
        fetcher=None,
        rotation=rotation,
        weather=weather,
        transit=transit,
        lifestack=lifestack,
        aggregator=aggregator,
        mode_state=mode_state,
        ws_manager=ws_manager,
        scheduler=RefreshScheduler(aggregator, mode_state, rotation=rotation, broadcast=ws_manager.broadcast_threadsafe),
    )


@pytest.fixture
def client(app_context):
    app.dependency_overrides[get_context] = lambda: app_context
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()
