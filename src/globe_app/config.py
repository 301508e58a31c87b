"""Configuration management using Pydantic settings."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="GLOBE_",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Meteorite Globe"
    debug: bool = False
    log_level: str = "WARNING"  # the globe only reports warnings and errors

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # Meteorite landings feed (Socrata GeoJSON resource)
    feed_url: str = "https://data.nasa.gov/resource/y77d-th95.geojson"
    feed_timeout: float = 30.0  # seconds
    feed_user_agent: str = "meteorite-globe/0.1.0"

    # Load the found / fell / all layers at startup
    load_default_filters: bool = True

    # Initial camera target
    start_lat: float = 38.72
    start_lng: float = 14.91


settings = Settings()
