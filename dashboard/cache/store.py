"""
In-memory TTL cache store shared by every upstream service.
"""
import threading
import time
import logging
from typing import Dict, Optional, Callable, Any, List

from .core import CacheEntry, CacheStats
from .coalescer import KeyedCoalescer

logger = logging.getLogger("cache.store")

DEFAULT_TTL_SECONDS = 300
DEFAULT_CHECK_PERIOD_SECONDS = 60


class CacheStore:
    """
    Key/value store with per-entry expiry.

    - ttl=None uses the store default, ttl <= 0 never expires
    - expired entries read as misses whether or not the sweeper has run
    - get_or_set collapses concurrent misses for the same key
    - a daemon thread sweeps expired entries every check_period seconds
    """

    def __init__(
        self,
        default_ttl: int = DEFAULT_TTL_SECONDS,
        check_period: int = DEFAULT_CHECK_PERIOD_SECONDS,
        clock: Callable[[], float] = time.time,
        single_flight: bool = True,
    ):
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.RLock()
        self._default_ttl = default_ttl
        self._check_period = check_period
        self._clock = clock
        self._coalescer = KeyedCoalescer() if single_flight else None

        self._hits = 0
        self._misses = 0

        self._sweeper: Optional[threading.Thread] = None
        self._stop_sweeper = threading.Event()

        logger.info(
            f"Cache store initialized (default ttl={default_ttl}s, check period={check_period}s)"
        )

    @property
    def default_ttl(self) -> int:
        return self._default_ttl

    def _expiry_for(self, ttl: Optional[float]) -> Optional[float]:
        if ttl is None:
            ttl = self._default_ttl
        if ttl <= 0:
            return None
        return self._clock() + ttl

    def _live_entry(self, key: str) -> Optional[CacheEntry]:
        """Return the entry for key unless it has expired. Caller holds the lock."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired(self._clock()):
            del self._entries[key]
            logger.debug(f"Cache EXPIRED: {key}")
            return None
        return entry

    def get(self, key: str, default: Any = None) -> Any:
        """Return the cached value for key, or default on a miss."""
        with self._lock:
            entry = self._live_entry(key)
            if entry is None:
                self._misses += 1
                logger.debug(f"Cache MISS: {key}")
                return default
            self._hits += 1
            logger.debug(f"Cache HIT: {key}")
            return entry.value

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> bool:
        """Store value under key, replacing any existing entry and expiry."""
        entry = CacheEntry(
            key=key,
            value=value,
            expires_at=self._expiry_for(ttl),
            created_at=self._clock(),
        )
        with self._lock:
            self._entries[key] = entry
        logger.debug(f"Cache SET: {key}" + (f" (TTL: {ttl}s)" if ttl is not None else ""))
        return True

    def get_or_set(
        self,
        key: str,
        producer: Callable[[], Any],
        ttl: Optional[float] = None,
    ) -> Any:
        """
        Return the cached value for key, computing and caching it on a miss.

        A None result is returned but not cached. Exceptions from producer
        propagate and leave the cache untouched.
        """
        miss = object()
        value = self.get(key, miss)
        if value is not miss:
            return value

        def produce_and_store():
            # The key may have been filled since the first lookup
            with self._lock:
                entry = self._live_entry(key)
            if entry is not None:
                return entry.value
            logger.debug(f"Cache MISS, producing: {key}")
            result = producer()
            if result is not None:
                self.set(key, result, ttl)
            return result

        try:
            if self._coalescer is None:
                return produce_and_store()
            return self._coalescer.run(key, produce_and_store)
        except Exception as e:
            logger.error(f"Cache get_or_set error for key {key}: {e}")
            raise

    def delete(self, key: str) -> bool:
        """Remove key. Returns True if an entry was removed."""
        with self._lock:
            if key in self._entries:
                del self._entries[key]
                logger.debug(f"Cache DEL: {key}")
                return True
            return False

    def has(self, key: str) -> bool:
        """Check for a live entry without touching hit/miss counters."""
        with self._lock:
            return self._live_entry(key) is not None

    def keys(self) -> List[str]:
        """Keys of all live entries."""
        with self._lock:
            now = self._clock()
            return [k for k, e in self._entries.items() if not e.is_expired(now)]

    def ttl_remaining(self, key: str) -> Optional[float]:
        """Seconds until key expires, or None if missing or never-expiring."""
        with self._lock:
            entry = self._live_entry(key)
            if entry is None:
                return None
            return entry.remaining_ttl(self._clock())

    def flush(self) -> int:
        """
        Remove every entry.

        Returns:
            Number of entries removed
        """
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        logger.info(f"Cache flushed ({count} entries)")
        return count

    def stats(self) -> CacheStats:
        """Hit/miss counters and current key count."""
        with self._lock:
            return CacheStats(
                hit_count=self._hits,
                miss_count=self._misses,
                key_count=len(self._entries),
            )

    def sweep(self) -> int:
        """
        Remove all expired entries.

        Returns:
            Number of entries removed
        """
        with self._lock:
            now = self._clock()
            expired = [k for k, e in self._entries.items() if e.is_expired(now)]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.debug(f"Swept {len(expired)} expired cache entries")
        return len(expired)

    def start_sweeper(self) -> None:
        """Start the background expiry sweep."""
        if self._sweeper is not None and self._sweeper.is_alive():
            return
        self._stop_sweeper.clear()
        self._sweeper = threading.Thread(
            target=self._sweep_loop,
            name="cache-sweeper",
            daemon=True,
        )
        self._sweeper.start()
        logger.info(f"Cache sweeper started ({self._check_period}s period)")

    def stop_sweeper(self) -> None:
        """Stop the background sweep and wait for the thread to exit."""
        self._stop_sweeper.set()
        if self._sweeper is not None:
            self._sweeper.join(timeout=5)
            self._sweeper = None
            logger.info("Cache sweeper stopped")

    def _sweep_loop(self) -> None:
        while not self._stop_sweeper.wait(self._check_period):
            try:
                self.sweep()
            except Exception as e:
                logger.warning(f"Cache sweep failed: {e}")
