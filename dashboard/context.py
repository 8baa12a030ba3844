"""
Application wiring.

Builds the cache, upstream clients, art rotation, aggregator, mode state and
real-time components once from settings. Routes receive the result through
the get_context dependency, which tests override.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from config.settings import Settings, settings as default_settings
from dashboard.aggregator import DashboardAggregator, ModeState
from dashboard.cache import CacheStore
from dashboard.realtime import ConnectionManager, RefreshScheduler
from dashboard.rotation import RotationPoolManager, WeightedFetcher, build_source_table
from dashboard.services import LifestackClient, TransitService, WeatherService

logger = logging.getLogger("context")


@dataclass
class AppContext:
    """Everything a request handler may need."""
    settings: Settings
    store: CacheStore
    fetcher: WeightedFetcher
    rotation: RotationPoolManager
    weather: WeatherService
    transit: TransitService
    lifestack: LifestackClient
    aggregator: DashboardAggregator
    mode_state: ModeState
    ws_manager: ConnectionManager
    scheduler: RefreshScheduler


def create_context(settings: Settings = default_settings) -> AppContext:
    store = CacheStore(
        default_ttl=settings.cache_default_ttl_seconds,
        check_period=settings.cache_check_period_seconds,
    )
    fetcher = WeightedFetcher(
        build_source_table(),
        retry_delay=settings.art_retry_delay_ms / 1000,
        fetch_attempts=settings.art_fetch_attempts,
        attempt_multiplier=settings.art_attempt_multiplier,
    )
    rotation = RotationPoolManager(
        store,
        fetcher,
        intervals=settings.art_rotation_intervals,
        pool_size=settings.art_pool_size,
        pool_ttl=settings.art_pool_ttl_seconds,
    )
    weather = WeatherService(
        store,
        settings.openweather_api_key,
        settings.weather_lat,
        settings.weather_lon,
        ttl=settings.weather_cache_ttl_seconds,
    )
    transit = TransitService(
        store,
        settings.cta_bus_api_key,
        settings.cta_train_api_key,
        ttl=settings.transit_cache_ttl_seconds,
    )
    lifestack = LifestackClient(settings.lifestack_url)
    aggregator = DashboardAggregator.from_services(weather, transit, lifestack, rotation)
    mode_state = ModeState(initial=settings.default_mode, history_size=settings.mode_history_size)
    ws_manager = ConnectionManager()
    scheduler = RefreshScheduler(
        aggregator,
        mode_state,
        rotation=rotation,
        broadcast=ws_manager.broadcast_threadsafe,
        interval=settings.dashboard_broadcast_interval_seconds,
        art_refresh_interval=settings.art_refresh_interval_seconds,
    )
    logger.info("Application context created")
    return AppContext(
        settings=settings,
        store=store,
        fetcher=fetcher,
        rotation=rotation,
        weather=weather,
        transit=transit,
        lifestack=lifestack,
        aggregator=aggregator,
        mode_state=mode_state,
        ws_manager=ws_manager,
        scheduler=scheduler,
    )


_context: Optional[AppContext] = None


def get_context() -> AppContext:
    """Get or create the application context."""
    global _context
    if _context is None:
        _context = create_context()
    return _context
