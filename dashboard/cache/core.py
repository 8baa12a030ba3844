"""
Core cache data structures.
"""
import time
from dataclasses import dataclass
from typing import Any, Optional


@dataclass
class CacheEntry:
    """
    A cached value with an optional absolute expiry.

    expires_at is epoch seconds; None means the entry never expires.
    """
    key: str
    value: Any
    expires_at: Optional[float] = None
    created_at: float = 0.0

    def is_expired(self, now: Optional[float] = None) -> bool:
        """Check if the entry is past its expiry."""
        if self.expires_at is None:
            return False
        if now is None:
            now = time.time()
        return now >= self.expires_at

    def remaining_ttl(self, now: Optional[float] = None) -> Optional[float]:
        """Seconds left before expiry, or None if the entry never expires."""
        if self.expires_at is None:
            return None
        if now is None:
            now = time.time()
        return max(0.0, self.expires_at - now)


@dataclass
class CacheStats:
    """
    Counters reported by the cache store.
    """
    hit_count: int = 0
    miss_count: int = 0
    key_count: int = 0

    @property
    def hit_rate(self) -> Optional[float]:
        """Hit percentage, or None before the first lookup."""
        total = self.hit_count + self.miss_count
        if total == 0:
            return None
        return self.hit_count / total * 100

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON response."""
        hit_rate = self.hit_rate
        return {
            "hits": self.hit_count,
            "misses": self.miss_count,
            "keys": self.key_count,
            "hitRate": f"{hit_rate:.2f}%" if hit_rate is not None else "N/A",
        }
