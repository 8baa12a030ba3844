"""
Mode-filtered dashboard aggregation.

Fans out one fetch per category the mode includes, isolates each failure,
and composes whatever succeeded into a single response with an error map.
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from dashboard.errors import CategoryFetchFailed
from dashboard.rotation import FilterSet, RotationPoolManager
from dashboard.services import LifestackClient, TransitService, WeatherService
from dashboard.utils.helpers import iso_now, parse_timestamp, safe_lower, utc_now
from .modes import Mode, get_mode

logger = logging.getLogger("aggregator")

URGENT_TASK_WINDOW = timedelta(hours=24)

# A fetcher receives the resolved mode and returns the raw category data
CategoryFetcher = Callable[[Mode], Any]


@dataclass
class CategoryResult:
    """Outcome of one category fetch."""
    success: bool
    data: Any = None
    error: Optional[str] = None


@dataclass
class CompositeResult:
    """
    The composed dashboard snapshot.

    Only categories included by the mode appear in fields. errors maps a
    category name to its failure message.
    """
    mode: str
    timestamp: str
    fields: Dict[str, Any] = field(default_factory=dict)
    errors: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON response."""
        return {
            "success": True,
            "mode": self.mode,
            "timestamp": self.timestamp,
            **self.fields,
            "errors": dict(self.errors),
        }


# =============================================================================
# Post-processing
# =============================================================================

def _task_due(task: Dict[str, Any]) -> Optional[datetime]:
    return parse_timestamp(task.get("due") or task.get("dueDate"))


def _is_completed(task: Dict[str, Any]) -> bool:
    return bool(task.get("completed")) or safe_lower(task.get("status")) == "completed"


def filter_urgent_tasks(
    tasks: Optional[List[Dict[str, Any]]],
    now: Optional[datetime] = None,
    window: timedelta = URGENT_TASK_WINDOW,
) -> List[Dict[str, Any]]:
    """
    Incomplete tasks that are overdue or due within the window, soonest first.

    Tasks without a parseable due date are dropped.
    """
    if not tasks:
        return []
    now = now or utc_now()
    threshold = now + window

    urgent = []
    for task in tasks:
        if _is_completed(task):
            continue
        due = _task_due(task)
        if due is None or due >= threshold:
            continue
        urgent.append((due, task))

    urgent.sort(key=lambda pair: pair[0])
    return [task for _, task in urgent]


def get_next_event(
    events: Optional[List[Dict[str, Any]]],
    now: Optional[datetime] = None,
) -> Optional[Dict[str, Any]]:
    """
    The soonest-starting event that has not ended yet.

    Events without an end time count as upcoming only if they start after now.
    """
    if not events:
        return None
    now = now or utc_now()

    upcoming = []
    for event in events:
        start = parse_timestamp(event.get("start") or event.get("startTime"))
        if start is None:
            continue
        end = parse_timestamp(event.get("end") or event.get("endTime"))
        if end is not None:
            if end <= now:
                continue
        elif start <= now:
            continue
        upcoming.append((start, event))

    if not upcoming:
        return None
    upcoming.sort(key=lambda pair: pair[0])
    return upcoming[0][1]


def format_weather(weather: Dict[str, Any]) -> Dict[str, Any]:
    """Subset of current conditions shown on the dashboard."""
    keys = ("temp", "condition", "feelsLike", "humidity", "high", "low", "icon", "description")
    return {key: weather.get(key) for key in keys}


def format_transit(transit: Dict[str, Any]) -> Dict[str, Any]:
    """Arrivals grouped the way the dashboard lays them out."""
    routes = (transit.get("buses") or {}).get("routes") or {}
    lines = (transit.get("trains") or {}).get("lines") or {}
    route77 = routes.get("77") or {}
    return {
        "buses": {
            "east": route77.get("eastbound") or [],
            "west": route77.get("westbound") or [],
        },
        "red": {
            "north": (lines.get("red") or {}).get("arrivals") or [],
            "south": [],
        },
        "brown": {
            "north": (lines.get("brown") or {}).get("arrivals") or [],
            "south": [],
        },
    }


# =============================================================================
# Aggregator
# =============================================================================

class DashboardAggregator:
    """
    Composes a dashboard snapshot for a mode.

    Args:
        fetchers: Category name -> fetch function. Recognized categories are
            weather, transit, calendar, tasks and art.
        clock: Returns the current aware datetime (injectable for tests)
    """

    def __init__(
        self,
        fetchers: Dict[str, CategoryFetcher],
        clock: Callable[[], datetime] = utc_now,
    ):
        self._fetchers = dict(fetchers)
        self._clock = clock

    @classmethod
    def from_services(
        cls,
        weather: WeatherService,
        transit: TransitService,
        lifestack: LifestackClient,
        rotation: RotationPoolManager,
    ) -> "DashboardAggregator":
        """Wire the standard upstream services as category fetchers."""
        return cls({
            "weather": lambda mode: weather.get_current(),
            "transit": lambda mode: transit.get_all(),
            "calendar": lambda mode: lifestack.get_today_events(),
            "tasks": lambda mode: lifestack.get_tasks(),
            "art": lambda mode: rotation.get_all_current(FilterSet(styles=mode.art_styles)),
        })

    @staticmethod
    def plan(mode: Mode) -> List[str]:
        """Categories to fetch for a mode."""
        includes = mode.includes
        planned = []
        if includes.weather:
            planned.append("weather")
        if includes.transit:
            planned.append("transit")
        if includes.needs_events:
            planned.append("calendar")
        if includes.tasks:
            planned.append("tasks")
        if includes.art:
            planned.append("art")
        return planned

    def _fetch_category(self, category: str, mode: Mode) -> CategoryResult:
        """Run one fetcher, capturing any failure as a result."""
        try:
            fetcher = self._fetchers.get(category)
            if fetcher is None:
                raise CategoryFetchFailed(category, f"No fetcher configured for {category}")
            return CategoryResult(success=True, data=fetcher(mode))
        except Exception as e:
            logger.error(f"Dashboard aggregator - {category} fetch failed: {e}")
            return CategoryResult(success=False, error=str(e))

    def fetch_all(self, mode: Mode) -> Dict[str, CategoryResult]:
        """Fetch every planned category in parallel and wait for all of them."""
        categories = self.plan(mode)
        if not categories:
            return {}
        with ThreadPoolExecutor(max_workers=len(categories)) as executor:
            futures = {
                category: executor.submit(self._fetch_category, category, mode)
                for category in categories
            }
            return {category: future.result() for category, future in futures.items()}

    def aggregate(self, mode_name: Optional[str] = None) -> CompositeResult:
        """
        Build the composite snapshot for a mode.

        Unknown mode names resolve to the default mode. Never raises for
        upstream failures; they end up in the errors map.
        """
        mode = get_mode(mode_name)
        logger.info(f"Aggregating dashboard data for mode: {mode.name}")

        results = self.fetch_all(mode)
        now = self._clock()
        composite = CompositeResult(mode=mode.key, timestamp=iso_now())
        errors = composite.errors

        for category, result in results.items():
            if not result.success:
                errors[category] = result.error or "Unknown error"

        def data_for(category: str) -> Any:
            result = results.get(category)
            return result.data if result is not None and result.success else None

        includes = mode.includes
        fields = composite.fields

        if includes.weather:
            fields["weather"] = self._post_process("weather", errors, format_weather, data_for("weather"))

        if includes.transit:
            fields["transit"] = self._post_process("transit", errors, format_transit, data_for("transit"))

        events = data_for("calendar") or []
        if includes.calendar:
            fields["events"] = events

        if includes.next_event:
            fields["nextEvent"] = self._post_process(
                "calendar", errors, lambda evts: get_next_event(evts, now), events,
            )

        if includes.tasks:
            tasks = data_for("tasks") or []
            if includes.urgent_tasks_only:
                tasks = self._post_process(
                    "tasks", errors, lambda items: filter_urgent_tasks(items, now), tasks,
                ) or []
            fields["tasks"] = tasks

        if includes.art:
            fields["art"] = data_for("art")

        if errors:
            logger.warning(f"Dashboard aggregation completed with errors: {errors}")
        else:
            logger.info("Dashboard aggregation completed successfully")
        return composite

    @staticmethod
    def _post_process(
        category: str,
        errors: Dict[str, str],
        fn: Callable[[Any], Any],
        data: Any,
    ) -> Any:
        """Apply fn to data, recording a failure for the category instead of raising."""
        if data is None:
            return None
        try:
            return fn(data)
        except Exception as e:
            logger.error(f"Dashboard aggregator - {category} post-processing failed: {e}")
            errors.setdefault(category, str(e))
            return None
