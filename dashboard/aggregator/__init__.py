"""
Mode-filtered composition of dashboard data.
"""
from .modes import (
    MODES,
    DEFAULT_MODE,
    Mode,
    ModeIncludes,
    get_mode,
    get_all_modes,
    is_valid_mode,
)
from .mode_state import ModeState, ModeTransition
from .aggregator import (
    CategoryResult,
    CompositeResult,
    DashboardAggregator,
    filter_urgent_tasks,
    get_next_event,
    format_weather,
    format_transit,
)

__all__ = [
    # Modes
    "MODES",
    "DEFAULT_MODE",
    "Mode",
    "ModeIncludes",
    "get_mode",
    "get_all_modes",
    "is_valid_mode",
    # State
    "ModeState",
    "ModeTransition",
    # Aggregation
    "CategoryResult",
    "CompositeResult",
    "DashboardAggregator",
    "filter_urgent_tasks",
    "get_next_event",
    "format_weather",
    "format_transit",
]
