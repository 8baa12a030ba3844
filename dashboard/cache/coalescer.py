"""
Single-flight collapsing of concurrent cache misses.

When several threads miss the same key at once, only the first one runs the
producer. The others block until it finishes and receive the same value or
the same exception.
"""
import threading
import time
import logging
from typing import Dict, Callable, Any, Optional
from dataclasses import dataclass, field

logger = logging.getLogger("cache.coalescer")


@dataclass
class _Flight:
    """A producer call currently running for one key."""
    done: threading.Event = field(default_factory=threading.Event)
    value: Optional[Any] = None
    error: Optional[BaseException] = None
    started_at: float = field(default_factory=time.time)
    waiters: int = 0


class KeyedCoalescer:
    """
    Runs at most one producer per key at a time.

    Usage:
        coalescer = KeyedCoalescer()
        value = coalescer.run("pool:portrait:any", build_pool)
    """

    def __init__(self, wait_timeout: float = 120.0):
        """
        Args:
            wait_timeout: Max seconds a waiter blocks on another thread's producer
        """
        self._flights: Dict[str, _Flight] = {}
        self._lock = threading.Lock()
        self._wait_timeout = wait_timeout

    def run(self, key: str, producer: Callable[[], Any]) -> Any:
        """
        Run producer for key, or join a run already in progress.

        Raises:
            TimeoutError: If the in-flight producer does not finish in time
            Exception: Whatever the producer raised
        """
        with self._lock:
            flight = self._flights.get(key)
            leader = flight is None
            if leader:
                flight = _Flight()
                self._flights[key] = flight
            else:
                flight.waiters += 1

        if leader:
            return self._lead(key, flight, producer)

        logger.debug(f"Joining in-flight producer for {key} (waiters: {flight.waiters})")
        if not flight.done.wait(timeout=self._wait_timeout):
            raise TimeoutError(f"Producer for {key} did not finish within {self._wait_timeout}s")
        if flight.error is not None:
            raise flight.error
        return flight.value

    def _lead(self, key: str, flight: _Flight, producer: Callable[[], Any]) -> Any:
        try:
            flight.value = producer()
        except Exception as e:
            flight.error = e
        finally:
            with self._lock:
                self._flights.pop(key, None)
            flight.done.set()

        if flight.error is not None:
            raise flight.error
        return flight.value

    @property
    def in_flight(self) -> int:
        """Number of producers currently running."""
        with self._lock:
            return len(self._flights)

    def get_stats(self) -> Dict[str, Any]:
        """Snapshot of in-flight keys."""
        with self._lock:
            return {
                "in_flight": len(self._flights),
                "keys": list(self._flights.keys()),
            }
