"""
Time-slot rotation over cached content pools.

Every category has a fixed rotation interval. Wall-clock time is cut into
slots of that width and each slot deterministically maps onto one pool
index, so every caller inside the same slot sees the same item and the
item only changes at slot boundaries.
"""
import threading
import time
import logging
from collections import OrderedDict
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Optional, Callable, Any

from dashboard.cache import CacheStore
from .fetcher import WeightedFetcher
from .models import ContentItem, ContentPool, FilterSet, NO_FILTERS
from .policies import CATEGORY_SLOTS, ROTATION_INTERVALS, get_rotation_interval

logger = logging.getLogger("rotation.pool")

DEFAULT_POOL_SIZE = 12
DEFAULT_POOL_TTL_SECONDS = 3600
# Stale-fallback pools kept across all filter sets
MAX_REMEMBERED_POOLS = 48


class RotationPoolManager:
    """
    Serves the current item per category from cached pools.

    Args:
        store: Cache shared with the rest of the service
        fetcher: Builds pools from the weighted sources
        intervals: Rotation interval (seconds) per category
        pool_size: Target number of distinct items per pool
        pool_ttl: Seconds a built pool stays cached
        fallback: Value served when no item can be produced at all
        clock: Returns epoch seconds (injectable for tests)
        max_remembered: Pools kept for the stale fallback, least recently built dropped first
    """

    def __init__(
        self,
        store: CacheStore,
        fetcher: WeightedFetcher,
        intervals: Optional[Dict[str, int]] = None,
        pool_size: int = DEFAULT_POOL_SIZE,
        pool_ttl: int = DEFAULT_POOL_TTL_SECONDS,
        fallback: Optional[ContentItem] = None,
        clock: Callable[[], float] = time.time,
        max_remembered: int = MAX_REMEMBERED_POOLS,
    ):
        self._store = store
        self._fetcher = fetcher
        self._intervals = dict(intervals or ROTATION_INTERVALS)
        self._pool_size = pool_size
        self._pool_ttl = pool_ttl
        self._fallback = fallback
        self._clock = clock

        # Last pool built per pool key, kept after its cache entry expires
        self._last_pools: "OrderedDict[str, ContentPool]" = OrderedDict()
        self._max_remembered = max(1, max_remembered)
        self._last_pools_lock = threading.Lock()

    @property
    def categories(self):
        return list(CATEGORY_SLOTS.keys())

    @staticmethod
    def pool_key(category: str, filters: FilterSet) -> str:
        return f"pool:{category}:{filters.signature}"

    @staticmethod
    def rotation_key(category: str, filters: FilterSet, slot: int) -> str:
        return f"rotation:{category}:{filters.signature}:{slot}"

    def interval_for(self, category: str) -> int:
        return get_rotation_interval(category, self._intervals)

    def current_slot(self, category: str, now: Optional[float] = None) -> int:
        """floor(now_ms / interval_ms) for the category's interval."""
        if now is None:
            now = self._clock()
        interval_ms = self.interval_for(category) * 1000
        return int(now * 1000) // interval_ms

    def _remember(self, key: str, pool: ContentPool) -> None:
        with self._last_pools_lock:
            self._last_pools[key] = pool
            self._last_pools.move_to_end(key)
            while len(self._last_pools) > self._max_remembered:
                self._last_pools.popitem(last=False)

    def _build_and_cache(self, category: str, filters: FilterSet) -> ContentPool:
        logger.info(f"Fetching new {category} pool with filters: {filters.signature}")
        pool = self._fetcher.build_pool(category, self._pool_size, filters)
        key = self.pool_key(category, filters)
        self._store.set(key, pool, self._pool_ttl)
        self._remember(key, pool)
        return pool

    def get_pool(self, category: str, filters: FilterSet = NO_FILTERS) -> ContentPool:
        """Cached pool for category and filters, building it on a miss."""
        pool = self._store.get(self.pool_key(category, filters))
        if pool:
            return pool
        return self._build_and_cache(category, filters)

    def get_current(self, category: str, filters: FilterSet = NO_FILTERS) -> Optional[ContentItem]:
        """
        Item for the current rotation slot.

        Never raises: on failure serves the first item of the last known
        pool, then the configured fallback.
        """
        try:
            interval = self.interval_for(category)
            slot = self.current_slot(category)

            def pick() -> ContentItem:
                pool = self.get_pool(category, filters)
                index = slot % len(pool)
                logger.info(f"Serving {category} item from pool index {index} (rotation slot: {slot})")
                return pool.pick(slot)

            key = self.rotation_key(category, filters, slot)
            return self._store.get_or_set(key, pick, ttl=interval)
        except Exception as e:
            logger.error(f"Error getting {category} item: {e}")
            return self._fallback_item(category, filters)

    def _fallback_item(self, category: str, filters: FilterSet) -> Optional[ContentItem]:
        key = self.pool_key(category, filters)
        pool = self._store.get(key)
        if not pool:
            with self._last_pools_lock:
                pool = self._last_pools.get(key)
        if pool:
            logger.warning(f"Returning first {category} item from cached pool due to error")
            return pool[0]
        logger.warning(f"Returning fallback {category} item")
        return self._fallback

    def get_all_current(self, filters: FilterSet = NO_FILTERS) -> Dict[str, Optional[Dict[str, Any]]]:
        """
        Current item for every category, fetched in parallel.

        Returns:
            Screen slot name -> serialized item (or None)
        """
        with ThreadPoolExecutor(max_workers=len(CATEGORY_SLOTS)) as executor:
            futures = {
                slot_name: executor.submit(self.get_current, category, filters)
                for category, slot_name in CATEGORY_SLOTS.items()
            }
            items = {slot_name: future.result() for slot_name, future in futures.items()}

        return {
            slot_name: item.to_dict() if item is not None else None
            for slot_name, item in items.items()
        }

    def refresh_pool(self, category: str, filters: FilterSet = NO_FILTERS) -> ContentPool:
        """
        Rebuild and re-cache one pool.

        The cached pick for the current slot is left alone; only later slots
        draw from the new pool.

        Raises:
            NoSourcesEnabled, PoolBuildFailed: If the pool can't be built
        """
        return self._build_and_cache(category, filters)

    def refresh_all(self, filters: FilterSet = NO_FILTERS) -> Dict[str, Any]:
        """
        Rebuild every category's pool in parallel.

        Returns:
            Summary with per-category pool sizes and errors. Never raises.
        """
        logger.info("Refreshing content pools")
        with ThreadPoolExecutor(max_workers=len(CATEGORY_SLOTS)) as executor:
            futures = {
                category: executor.submit(self.refresh_pool, category, filters)
                for category in CATEGORY_SLOTS
            }

        sizes: Dict[str, int] = {}
        errors: Dict[str, str] = {}
        for category, future in futures.items():
            try:
                sizes[category] = len(future.result())
            except Exception as e:
                logger.error(f"Error refreshing {category} pool: {e}")
                errors[category] = str(e)

        if not errors:
            logger.info("Content pools refreshed successfully")
        return {
            "success": not errors,
            "poolSizes": sizes,
            "errors": errors,
        }
