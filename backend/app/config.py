"""Application configuration using Pydantic settings."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Database
    database_url: str = "postgresql+asyncpg://localhost:5432/disaster"

    # Road routing (OSRM public demo server, no API key needed)
    osrm_base_url: str = "https://router.project-osrm.org"
    routing_timeout_seconds: float = 10.0
    fallback_waypoints: int = 10
    fallback_connect_km: float = 5.0

    # Incident ids
    incident_id_max_attempts: int = 50

    # API settings
    api_v1_prefix: str = "/api/v1"
    cors_origins: list[str] = ["*"]  # Restrict in production
    rate_limit_per_minute: int = 30

    # Environment
    debug: bool = False


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
