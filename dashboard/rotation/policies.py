"""
Rotation cadence and upstream source weights.
"""
import random
from dataclasses import dataclass
from typing import Dict, Any, List, Optional

from config.settings import settings

from .models import Orientation
from .sources import ContentSource, SOURCE_CLASSES


# Rotation categories map to screen positions on the dashboard
CATEGORY_SLOTS: Dict[str, str] = {
    "portrait": "artworkCenter",
    "landscape": "artworkRight",
    "tv": "artworkTV",
}

# Orientation requested from sources for each category. The TV screen is wide.
CATEGORY_ORIENTATION: Dict[str, Optional[Orientation]] = {
    "portrait": Orientation.PORTRAIT,
    "landscape": Orientation.LANDSCAPE,
    "tv": Orientation.LANDSCAPE,
}

ROTATION_INTERVALS: Dict[str, int] = dict(settings.art_rotation_intervals)

FALLBACK_CATEGORY = "landscape"
FALLBACK_INTERVAL_SECONDS = 420

# Source weight table, in selection order
SOURCE_CONFIG: Dict[str, Dict[str, Any]] = {
    "artic": {
        "enabled": True,
        "weight": 35,
        "styles": [
            "Cubism", "Expressionism", "Surrealism", "Abstract", "Minimalism",
            "Constructivism", "Symbolism", "Suprematism", "Bauhaus",
        ],
    },
    "met": {
        "enabled": True,
        "weight": 35,
        "has_images": True,
        # European Paintings, The American Wing, Drawings/Prints, Photographs
        "departments": [11, 21, 26, 30],
    },
    "cleveland": {
        "enabled": True,
        "weight": 20,
        "type": "Painting",
    },
    "giphy": {
        "enabled": False,
        "weight": 0,
        "api_key": settings.giphy_api_key,
    },
}


@dataclass
class SourceWeight:
    """One row of the weight table: an adapter and its selection weight."""
    source: ContentSource
    weight: float
    enabled: bool = True

    @property
    def key(self) -> str:
        return self.source.key

    @property
    def active(self) -> bool:
        return self.enabled and self.weight > 0


def get_rotation_interval(category: str, intervals: Optional[Dict[str, int]] = None) -> int:
    """
    Rotation interval in seconds for a category.

    Unknown categories use the landscape cadence, or 420 s if the table has none.
    """
    intervals = intervals or ROTATION_INTERVALS
    return intervals.get(category) or intervals.get(FALLBACK_CATEGORY) or FALLBACK_INTERVAL_SECONDS


def get_category_orientation(category: str) -> Optional[Orientation]:
    return CATEGORY_ORIENTATION.get(category)


def build_source_table(
    config: Optional[Dict[str, Dict[str, Any]]] = None,
    rng: Optional[random.Random] = None,
) -> List[SourceWeight]:
    """
    Instantiate one adapter per configured source, keeping config order.

    Unknown source keys are ignored.
    """
    config = SOURCE_CONFIG if config is None else config
    table = []
    for key, options in config.items():
        source_cls = SOURCE_CLASSES.get(key)
        if source_cls is None:
            continue
        table.append(SourceWeight(
            source=source_cls(options=options, rng=rng),
            weight=options.get("weight", 1),
            enabled=bool(options.get("enabled")),
        ))
    return table
