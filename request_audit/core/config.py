"""
Process-wide configuration for the request audit logger using Pydantic Settings.
Loads environment labels, logging options and the default sink address.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Environment-driven settings shared by every middleware instance.
    Per-instance behaviour (index, whitelists, censor list) lives in AuditConfig.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # --- Backend labels embedded in every document ---
    APP_ENV: str = Field(default="development")
    STAGE_ENV: str = Field(default="dev")

    # --- Sink ---
    ELASTICSEARCH_URL: str = "http://localhost:9200"

    # --- Logging ---
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"

    @property
    def is_production(self) -> bool:
        return self.APP_ENV == "production"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Cached accessor for process settings."""
    return Settings()
