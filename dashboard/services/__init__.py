"""
Clients for the non-rotating upstream data sources.
"""
from .weather import WeatherService, FALLBACK_WEATHER
from .transit import TransitService, CTA_STOPS
from .lifestack import LifestackClient

__all__ = [
    "WeatherService",
    "FALLBACK_WEATHER",
    "TransitService",
    "CTA_STOPS",
    "LifestackClient",
]
