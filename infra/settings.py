"""Process settings loaded from environment variables or a .env file."""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Platform settings.

    Read from ``PLATFORM_*`` environment variables or a .env file in the
    project root.
    """

    model_config = SettingsConfigDict(
        env_prefix="PLATFORM_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    log_level: str = "info"
    environments_file: Optional[str] = None  # defaults to the packaged table
    # Environment to build; the Pulumi stack name when unset
    environment: Optional[str] = None


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
