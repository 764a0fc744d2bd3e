"""Service configuration, read from environment variables."""

from typing import List

from pydantic_settings import BaseSettings

HAWAII40_BASE_URL = "https://raw.githubusercontent.com/cwebber314/osu_hackathon/main/hawaii40_osu"


class Settings(BaseSettings):
    model_config = {"env_prefix": "", "case_sensitive": False}

    # App
    app_name: str = "Grid Thermal Stress API"
    log_json: bool = False
    cors_origins: List[str] = ["*"]

    # Grid data: local directory or base URL laid out like hawaii40_osu/
    grid_data_source: str = HAWAII40_BASE_URL
    conductor_library_path: str = ""
    regions_geojson_path: str = ""  # empty: built-in Oʻahu regions
    topology_cache_ttl_s: float = 3600.0

    # Weather (Honolulu, center of the 40-bus system)
    open_meteo_url: str = "https://api.open-meteo.com/v1/forecast"
    weather_lat: float = 21.3069
    weather_lon: float = -157.8583
    weather_cache_ttl_s: float = 300.0

    http_timeout_s: float = 10.0


settings = Settings()
