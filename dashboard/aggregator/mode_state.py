"""
Process-wide current dashboard mode with change history.
"""
import threading
import logging
from collections import deque
from dataclasses import dataclass
from typing import Deque, Dict, Any, List, Optional

from dashboard.errors import InvalidModeError
from dashboard.utils.helpers import iso_now
from .modes import DEFAULT_MODE, Mode, get_mode, is_valid_mode, normalize_mode_name

logger = logging.getLogger("aggregator.mode_state")

DEFAULT_HISTORY_SIZE = 10


@dataclass(frozen=True)
class ModeTransition:
    """One recorded mode change."""
    from_mode: str
    to_mode: str
    timestamp: str
    version: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "from": self.from_mode,
            "to": self.to_mode,
            "timestamp": self.timestamp,
            "version": self.version,
        }


class ModeState:
    """
    Owns the current mode.

    Writes are serialized by a lock; every change bumps a monotonic version
    and is appended to a bounded history.
    """

    def __init__(self, initial: str = DEFAULT_MODE, history_size: int = DEFAULT_HISTORY_SIZE):
        if not is_valid_mode(initial):
            raise InvalidModeError(initial)
        self._default = normalize_mode_name(initial)
        self._current = self._default
        self._version = 0
        self._last_changed = iso_now()
        self._history: Deque[ModeTransition] = deque(maxlen=history_size)
        self._lock = threading.Lock()
        logger.info(f"Mode state initialized with mode: {self._current}")

    @property
    def current(self) -> str:
        return self._current

    @property
    def version(self) -> int:
        return self._version

    @property
    def last_changed(self) -> str:
        return self._last_changed

    def current_mode(self) -> Mode:
        return get_mode(self._current)

    def set_mode(self, mode_name: Optional[str]) -> ModeTransition:
        """
        Switch to another mode.

        Raises:
            InvalidModeError: If the mode is not configured
        """
        if not is_valid_mode(mode_name):
            logger.warning(f"Attempted to set invalid mode: {mode_name}")
            raise InvalidModeError(str(mode_name))
        return self._transition(normalize_mode_name(mode_name))

    def reset(self) -> ModeTransition:
        """Return to the default mode."""
        return self._transition(self._default)

    def _transition(self, target: str) -> ModeTransition:
        with self._lock:
            previous = self._current
            self._current = target
            self._version += 1
            self._last_changed = iso_now()
            transition = ModeTransition(
                from_mode=previous,
                to_mode=target,
                timestamp=self._last_changed,
                version=self._version,
            )
            self._history.append(transition)
        logger.info(f"Mode changed from {previous} to {target}")
        return transition

    def history(self) -> List[Dict[str, Any]]:
        """Recorded transitions, oldest first."""
        with self._lock:
            return [t.to_dict() for t in self._history]

    def profile(self) -> Dict[str, Any]:
        """Current mode plus its metadata."""
        mode = self.current_mode()
        return {
            "mode": self._current,
            "name": mode.name,
            "description": mode.description,
            "includes": mode.includes.to_dict(),
            "lastChanged": self._last_changed,
            "version": self._version,
        }
