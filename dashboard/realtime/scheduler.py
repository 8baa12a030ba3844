"""
Periodic dashboard jobs.

- broadcast: aggregate the current mode and push dashboard:update to clients
- art refresh: rebuild the artwork pools before they expire
"""
import logging
import threading
from typing import Any, Callable, Dict, List, Optional

from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from dashboard.aggregator import MODES, DashboardAggregator, ModeState
from dashboard.rotation import FilterSet, RotationPoolManager, NO_FILTERS
from dashboard.utils.helpers import iso_now

logger = logging.getLogger("realtime.scheduler")

BroadcastHandler = Callable[[str, Any], None]

BROADCAST_JOB_ID = "dashboard-broadcast"
ART_REFRESH_JOB_ID = "art-pool-refresh"


def art_filter_sets() -> List[FilterSet]:
    """Distinct filter sets that art-including modes request, plus the unfiltered one."""
    filter_sets = [NO_FILTERS]
    for mode in MODES.values():
        if not mode.includes.art:
            continue
        filters = FilterSet.from_styles(mode.art_styles)
        if filters not in filter_sets:
            filter_sets.append(filters)
    return filter_sets


class RefreshScheduler:
    """
    Runs the broadcast and art refresh jobs on a background scheduler.

    Args:
        aggregator: Builds the dashboard snapshot
        mode_state: Source of the current mode
        rotation: Art pool manager; the art refresh job is skipped without one
        broadcast: Called with (event, data) after each refresh
        interval: Seconds between broadcasts
        art_refresh_interval: Seconds between art pool rebuilds
    """

    def __init__(
        self,
        aggregator: DashboardAggregator,
        mode_state: ModeState,
        rotation: Optional[RotationPoolManager] = None,
        broadcast: Optional[BroadcastHandler] = None,
        interval: float = 30,
        art_refresh_interval: float = 3000,
    ):
        self.aggregator = aggregator
        self.mode_state = mode_state
        self.rotation = rotation
        self.interval = interval
        self.art_refresh_interval = art_refresh_interval
        self._broadcast = broadcast
        self._scheduler: Optional[BackgroundScheduler] = None
        self._lock = threading.Lock()
        self._refresh_count = 0
        self._error_count = 0
        self._last_refresh_time: Optional[str] = None

    def set_broadcast_handler(self, handler: Optional[BroadcastHandler]) -> None:
        self._broadcast = handler

    @property
    def is_running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def start(self) -> None:
        if self.is_running:
            logger.warning("Scheduler already running")
            return

        scheduler = BackgroundScheduler(executors={"default": ThreadPoolExecutor(max_workers=2)})
        scheduler.add_job(
            self.perform_refresh,
            trigger=IntervalTrigger(seconds=self.interval),
            id=BROADCAST_JOB_ID,
            name="dashboard broadcast",
            coalesce=True,
            max_instances=1,
            replace_existing=True,
        )
        if self.rotation is not None:
            scheduler.add_job(
                self.refresh_art_pools,
                trigger=IntervalTrigger(seconds=self.art_refresh_interval),
                id=ART_REFRESH_JOB_ID,
                name="art pool refresh",
                coalesce=True,
                max_instances=1,
                replace_existing=True,
            )
        scheduler.start()
        self._scheduler = scheduler
        logger.info(f"Scheduler started: broadcast every {self.interval}s, art refresh every {self.art_refresh_interval}s")

    def stop(self) -> None:
        if self._scheduler is None:
            return
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        self._scheduler = None
        logger.info("Scheduler stopped")

    def perform_refresh(self) -> Optional[Dict[str, Any]]:
        """
        Aggregate the current mode and broadcast it.

        Returns:
            The broadcast payload, or None if aggregation failed
        """
        mode = self.mode_state.current
        try:
            data = self.aggregator.aggregate(mode).to_dict()
        except Exception as e:
            with self._lock:
                self._error_count += 1
            logger.error(f"Scheduled refresh failed: {e}")
            return None

        with self._lock:
            self._refresh_count += 1
            self._last_refresh_time = iso_now()

        if self._broadcast is not None:
            try:
                self._broadcast("dashboard:update", data)
            except Exception as e:
                logger.error(f"Broadcast failed: {e}")
        logger.debug(f"Refresh #{self._refresh_count} complete for mode {mode}")
        return data

    def refresh_art_pools(self) -> Dict[str, Any]:
        """Rebuild every art pool the configured modes can ask for."""
        results = {}
        for filters in art_filter_sets():
            try:
                results[filters.signature] = self.rotation.refresh_all(filters)
            except Exception as e:
                logger.error(f"Art pool refresh failed for filters {filters.signature}: {e}")
                results[filters.signature] = {"success": False, "error": str(e)}
        return results

    def trigger_refresh(self) -> Optional[Dict[str, Any]]:
        """Run a refresh now, outside the schedule."""
        logger.info("Manual refresh triggered")
        return self.perform_refresh()

    def status(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "isRunning": self.is_running,
                "interval": self.interval,
                "artRefreshInterval": self.art_refresh_interval,
                "refreshCount": self._refresh_count,
                "errorCount": self._error_count,
                "lastRefreshTime": self._last_refresh_time,
            }

    def reset_stats(self) -> None:
        with self._lock:
            self._refresh_count = 0
            self._error_count = 0
            self._last_refresh_time = None
