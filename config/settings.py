"""Configuration management using pydantic-settings."""
from typing import Dict, Optional

from pydantic_settings import BaseSettings


def _default_rotation_intervals() -> Dict[str, int]:
    """Rotation cadence per art category, in seconds."""
    return {
        "portrait": 300,   # 5 minutes
        "landscape": 420,  # 7 minutes
        "tv": 360,         # 6 minutes
    }


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Server
    port: int = 3001
    environment: str = "development"
    log_level: str = "INFO"

    # Cache settings
    cache_default_ttl_seconds: int = 300
    cache_check_period_seconds: int = 60
    transit_cache_ttl_seconds: int = 30
    weather_cache_ttl_seconds: int = 600

    # CTA transit
    cta_bus_api_key: Optional[str] = None
    cta_train_api_key: Optional[str] = None

    # OpenWeatherMap
    openweather_api_key: Optional[str] = None
    weather_lat: Optional[float] = None
    weather_lon: Optional[float] = None

    # Lifestack (calendar + tasks, caches internally)
    lifestack_url: str = "http://localhost:3000"

    # GIPHY cinemagraphs
    giphy_api_key: Optional[str] = None

    # Art rotation
    art_pool_size: int = 12
    art_pool_ttl_seconds: int = 3600
    art_retry_delay_ms: int = 500
    art_attempt_multiplier: int = 4
    art_fetch_attempts: int = 3
    art_rotation_intervals: Dict[str, int] = _default_rotation_intervals()

    # Background jobs
    dashboard_broadcast_interval_seconds: int = 30
    art_refresh_interval_seconds: int = 3000
    scheduler_enabled: bool = True

    # Modes
    default_mode: str = "personal"
    mode_history_size: int = 10

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
