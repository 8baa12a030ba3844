"""
TTL configuration for each upstream data source.
"""
from typing import Dict, Any

from config.settings import settings


# TTL Configuration by source (in seconds). ttl 0 means the source is not
# cached here because the upstream caches on its own.
TTL_CONFIG: Dict[str, Dict[str, Any]] = {
    "transit": {
        "ttl": settings.transit_cache_ttl_seconds,   # predictions change quickly
        "description": "CTA bus and train arrival predictions",
    },
    "weather": {
        "ttl": settings.weather_cache_ttl_seconds,   # 10 minutes
        "description": "Current weather and forecast data",
    },
    "lifestack": {
        "ttl": 0,
        "description": "Calendar events and tasks from Lifestack API",
    },
    "art_pool": {
        "ttl": settings.art_pool_ttl_seconds,        # 1 hour
        "description": "Pools of artworks per rotation category",
    },
    "default": {
        "ttl": settings.cache_default_ttl_seconds,
        "description": "Default cache TTL for miscellaneous data",
    },
}


def get_ttl_for_source(source: str) -> int:
    """
    Get the cache TTL for an upstream source.

    Unknown sources get the default TTL.
    """
    config = TTL_CONFIG.get(source, TTL_CONFIG["default"])
    return config["ttl"]


def is_cached_source(source: str) -> bool:
    """True if responses from this source go through the cache store."""
    return get_ttl_for_source(source) > 0
