"""
Data models for rotating art content.

These dataclasses are the canonical shape of an artwork regardless of
which museum or media API it came from.
"""
from dataclasses import dataclass, field
from typing import Optional, List, Tuple, Dict, Any, Iterator
from enum import Enum


class Orientation(Enum):
    """Aspect of an image, derived from its pixel dimensions."""
    PORTRAIT = "portrait"
    LANDSCAPE = "landscape"


def derive_orientation(width: Any, height: Any) -> Optional[Orientation]:
    """
    Classify dimensions as portrait or landscape.

    Returns None for square images or dimensions that are missing or not numeric.
    """
    try:
        w = float(width)
        h = float(height)
    except (TypeError, ValueError):
        return None
    if w <= 0 or h <= 0:
        return None
    if h > w:
        return Orientation.PORTRAIT
    if w > h:
        return Orientation.LANDSCAPE
    return None


@dataclass(frozen=True)
class FilterSet:
    """Style filters applied to a pool (e.g. a mode's art styles)."""
    styles: Tuple[str, ...] = ()

    @classmethod
    def from_styles(cls, styles: Optional[List[str]]) -> "FilterSet":
        return cls(styles=tuple(styles or ()))

    @property
    def signature(self) -> str:
        """Stable cache key fragment for these filters."""
        if not self.styles:
            return "any"
        return "-".join(self.styles)

    def __bool__(self) -> bool:
        return bool(self.styles)


NO_FILTERS = FilterSet()


@dataclass
class ContentItem:
    """A single artwork or cinemagraph ready for display."""
    id: str
    source: str
    title: str = "Untitled"
    artist: str = "Unknown Artist"
    date: str = "Unknown Date"
    style: str = "Unknown Style"
    image_url: Optional[str] = None
    orientation: Optional[Orientation] = None
    # Motion sources only
    video_url: Optional[str] = None
    webp_url: Optional[str] = None
    still_url: Optional[str] = None
    is_video: bool = False

    @property
    def identity(self) -> Tuple[str, str]:
        """Deduplication key: (source, id)."""
        return (self.source, self.id)

    @property
    def has_media(self) -> bool:
        return bool(self.image_url or self.video_url)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON response."""
        result = {
            "id": self.id,
            "source": self.source,
            "title": self.title,
            "artist": self.artist,
            "date": self.date,
            "style": self.style,
            "imageUrl": self.image_url,
            "orientation": self.orientation.value if self.orientation else None,
        }
        if self.is_video:
            result.update({
                "videoUrl": self.video_url,
                "webpUrl": self.webp_url,
                "gifUrl": self.image_url,
                "stillUrl": self.still_url,
                "type": "cinemagraph",
                "isVideo": True,
            })
        return result


@dataclass
class ContentPool:
    """
    Deduplicated batch of items that a rotation category cycles through.
    """
    category: str
    filters: FilterSet
    items: List[ContentItem] = field(default_factory=list)
    attempts: int = 0

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator[ContentItem]:
        return iter(self.items)

    def __getitem__(self, index: int) -> ContentItem:
        return self.items[index]

    def pick(self, slot: int) -> ContentItem:
        """Item shown during a rotation slot."""
        return self.items[slot % len(self.items)]

    @property
    def identities(self) -> List[Tuple[str, str]]:
        return [item.identity for item in self.items]
