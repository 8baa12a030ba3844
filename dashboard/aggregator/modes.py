"""
Dashboard mode definitions.

Each mode names which data categories a composite response includes.
To add a mode, add an entry to MODES; its key is what clients send
(e.g. ?mode=gallery).
"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple, Any

from config.settings import settings


@dataclass(frozen=True)
class ModeIncludes:
    """Which categories a mode pulls in."""
    weather: bool = False
    transit: bool = False
    calendar: bool = False
    tasks: bool = False
    next_event: bool = False
    art: bool = False
    urgent_tasks_only: bool = False

    @property
    def needs_events(self) -> bool:
        """The calendar fetch feeds both the event list and the next event."""
        return self.calendar or self.next_event

    def to_dict(self) -> Dict[str, bool]:
        return {
            "weather": self.weather,
            "transit": self.transit,
            "calendar": self.calendar,
            "tasks": self.tasks,
            "nextEvent": self.next_event,
            "art": self.art,
            "urgentTasksOnly": self.urgent_tasks_only,
        }


@dataclass(frozen=True)
class Mode:
    """A named, immutable dashboard configuration."""
    key: str
    name: str
    description: str
    includes: ModeIncludes
    art_styles: Tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "key": self.key,
            "name": self.name,
            "description": self.description,
            "includes": self.includes.to_dict(),
        }
        if self.art_styles:
            result["artStyles"] = list(self.art_styles)
        return result


MODES: Dict[str, Mode] = {
    # Full dashboard with all personal data
    "personal": Mode(
        key="personal",
        name="Personal",
        description="Full dashboard with calendar, tasks, weather, and transit",
        includes=ModeIncludes(weather=True, transit=True, calendar=True, tasks=True, next_event=True),
    ),
    # Public data only
    "guest": Mode(
        key="guest",
        name="Guest",
        description="Public information only - weather and transit",
        includes=ModeIncludes(weather=True, transit=True),
    ),
    "transit": Mode(
        key="transit",
        name="Transit",
        description="Transit information only",
        includes=ModeIncludes(transit=True),
    ),
    "morning": Mode(
        key="morning",
        name="Morning",
        description="Morning briefing - weather, next event, and urgent tasks",
        includes=ModeIncludes(
            weather=True, transit=True, tasks=True, next_event=True, urgent_tasks_only=True,
        ),
    ),
    "work": Mode(
        key="work",
        name="Work",
        description="Work focus - calendar and tasks",
        includes=ModeIncludes(calendar=True, tasks=True, next_event=True),
    ),
    "gallery": Mode(
        key="gallery",
        name="Gallery",
        description="Rotating artwork with weather and transit info",
        includes=ModeIncludes(weather=True, transit=True, art=True),
        art_styles=(
            "Cubism", "Expressionism", "Surrealism", "Abstract", "Minimalism",
            "Constructivism", "Symbolism", "Suprematism", "Bauhaus",
        ),
    ),
}

DEFAULT_MODE = settings.default_mode if settings.default_mode in MODES else "personal"


def normalize_mode_name(mode_name: Optional[str]) -> str:
    return (mode_name or "").strip().lower()


def is_valid_mode(mode_name: Optional[str]) -> bool:
    """Check if a mode exists."""
    return normalize_mode_name(mode_name) in MODES


def get_mode(mode_name: Optional[str]) -> Mode:
    """Mode configuration by name. Unknown names get the default mode."""
    return MODES.get(normalize_mode_name(mode_name), MODES[DEFAULT_MODE])


def get_all_modes() -> List[Dict[str, Any]]:
    """List of all available modes."""
    return [mode.to_dict() for mode in MODES.values()]
