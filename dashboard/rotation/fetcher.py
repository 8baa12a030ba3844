"""
Weighted multi-source fetching of content items.

Picks an upstream source in proportion to its configured weight, retries on
failure with a fixed delay, and assembles deduplicated pools.
"""
import random
import time
import logging
from typing import Callable, List, Optional, Set, Tuple

from tenacity import (
    Retrying,
    stop_after_attempt,
    wait_fixed,
    retry_if_exception_type,
)

from dashboard.errors import NoSourcesEnabled, PoolBuildFailed, SourceUnavailable
from .models import ContentItem, ContentPool, FilterSet, NO_FILTERS
from .policies import SourceWeight, get_category_orientation

logger = logging.getLogger("rotation.fetcher")

DEFAULT_RETRY_DELAY_SECONDS = 0.5
DEFAULT_FETCH_ATTEMPTS = 3
DEFAULT_ATTEMPT_MULTIPLIER = 4


class WeightedFetcher:
    """
    Draws items from a weight table of source adapters.

    Args:
        sources: Weight table in selection order
        retry_delay: Seconds to wait after a failure and between pool additions
        fetch_attempts: Draw budget for a single fetch_one() call
        attempt_multiplier: Pool attempt budget is target_size * attempt_multiplier
        rng: Random source for weighted draws
        sleep: Sleep function (injectable for tests)
    """

    def __init__(
        self,
        sources: List[SourceWeight],
        retry_delay: float = DEFAULT_RETRY_DELAY_SECONDS,
        fetch_attempts: int = DEFAULT_FETCH_ATTEMPTS,
        attempt_multiplier: int = DEFAULT_ATTEMPT_MULTIPLIER,
        rng: Optional[random.Random] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._sources = list(sources)
        self._retry_delay = retry_delay
        self._fetch_attempts = max(1, fetch_attempts)
        self._attempt_multiplier = max(1, attempt_multiplier)
        self._rng = rng or random.Random()
        self._sleep = sleep

    @property
    def sources(self) -> List[SourceWeight]:
        return list(self._sources)

    def enabled_sources(self) -> List[SourceWeight]:
        """Sources that participate in weighted selection."""
        return [s for s in self._sources if s.active]

    def total_weight(self) -> float:
        return sum(s.weight for s in self.enabled_sources())

    def pick_source(self) -> SourceWeight:
        """
        Choose a source with probability weight / total_weight.

        Raises:
            NoSourcesEnabled: If no enabled source has positive weight
        """
        enabled = self.enabled_sources()
        total = sum(s.weight for s in enabled)
        if total <= 0:
            raise NoSourcesEnabled("No content sources enabled")

        roll = self._rng.random() * total
        cursor = 0.0
        for entry in enabled:
            cursor += entry.weight
            if roll <= cursor:
                return entry
        return enabled[-1]

    def _attempt(self, category: str, filters: FilterSet) -> ContentItem:
        """One weighted draw and one adapter call."""
        entry = self.pick_source()
        orientation = get_category_orientation(category)
        try:
            return entry.source.fetch_item(orientation, filters)
        except SourceUnavailable:
            raise
        except Exception as e:
            raise SourceUnavailable(entry.key, f"unexpected adapter error: {e}") from e

    def fetch_one(self, category: str, filters: FilterSet = NO_FILTERS) -> ContentItem:
        """
        Fetch a single item, redrawing a source after each failure.

        Raises:
            NoSourcesEnabled: Immediately, without retrying
            SourceUnavailable: If every attempt in the budget failed
        """
        retryer = Retrying(
            stop=stop_after_attempt(self._fetch_attempts),
            wait=wait_fixed(self._retry_delay),
            retry=retry_if_exception_type(SourceUnavailable),
            sleep=self._sleep,
            reraise=True,
            before_sleep=lambda state: logger.warning(
                f"Fetch for {category} failed (attempt {state.attempt_number}): "
                f"{state.outcome.exception()}"
            ),
        )
        return retryer(self._attempt, category, filters)

    def build_pool(
        self,
        category: str,
        target_size: int,
        filters: FilterSet = NO_FILTERS,
        max_attempts: Optional[int] = None,
    ) -> ContentPool:
        """
        Collect up to target_size distinct items for a category.

        Each attempt is one weighted draw. Partial pools are returned.

        Raises:
            NoSourcesEnabled: If the weight table has nothing to draw from
            PoolBuildFailed: If no item was collected within the attempt budget
        """
        if max_attempts is None:
            max_attempts = target_size * self._attempt_multiplier
        if not self.enabled_sources():
            raise NoSourcesEnabled("No content sources enabled")

        pool = ContentPool(category=category, filters=filters)
        seen: Set[Tuple[str, str]] = set()

        for attempt in range(1, max_attempts + 1):
            if len(pool) >= target_size:
                break
            pool.attempts = attempt

            try:
                item = self._attempt(category, filters)
            except SourceUnavailable as e:
                logger.warning(f"Failed to fetch {category} item (attempt {attempt}): {e}")
                self._sleep(self._retry_delay)
                continue

            if not item.has_media or item.identity in seen:
                continue

            seen.add(item.identity)
            pool.items.append(item)
            logger.debug(
                f"Added {category} item from {item.source}: {item.title} "
                f"({len(pool)}/{target_size})"
            )
            if len(pool) < target_size:
                self._sleep(self._retry_delay)

        if not pool.items:
            raise PoolBuildFailed(category, pool.attempts)

        logger.info(
            f"Created {category} pool with {len(pool)} items "
            f"({pool.attempts} attempts, filters={filters.signature})"
        )
        return pool
