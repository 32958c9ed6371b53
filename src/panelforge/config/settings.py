"""
Application settings using Pydantic.

Provides environment-based configuration loading with PANELFORGE_ prefix.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="PANELFORGE_",
    )

    # Dashboards
    dashboards_dir: str = "dashboards"

    # Datasource config file (see config.loader for search order)
    config_path: str | None = None

    # Time range id from the relative catalog
    default_time_range: str = "1h"

    # Auto-refresh interval in seconds, 0 disables it
    refresh_interval: int = 0

    # Default per-datasource request timeout, seconds
    http_timeout: float = 30.0

    # Logging
    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
