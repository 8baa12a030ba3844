"""
Rotating art content drawn from weighted upstream sources.
"""
from .models import (
    ContentItem,
    ContentPool,
    FilterSet,
    NO_FILTERS,
    Orientation,
    derive_orientation,
)
from .sources import (
    ContentSource,
    ArticSource,
    MetSource,
    ClevelandSource,
    GiphySource,
)
from .policies import (
    CATEGORY_SLOTS,
    SOURCE_CONFIG,
    SourceWeight,
    build_source_table,
    get_rotation_interval,
)
from .fetcher import WeightedFetcher
from .pool_manager import RotationPoolManager

__all__ = [
    # Models
    "ContentItem",
    "ContentPool",
    "FilterSet",
    "NO_FILTERS",
    "Orientation",
    "derive_orientation",
    # Sources
    "ContentSource",
    "ArticSource",
    "MetSource",
    "ClevelandSource",
    "GiphySource",
    # Policies
    "CATEGORY_SLOTS",
    "SOURCE_CONFIG",
    "SourceWeight",
    "build_source_table",
    "get_rotation_interval",
    # Fetching and rotation
    "WeightedFetcher",
    "RotationPoolManager",
]
