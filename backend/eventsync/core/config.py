"""
Settings for the sync engine, read from the environment (or `.env`).

Remote catalog and local cache settings are independent: the cache path
can be moved without touching the API configuration and vice versa.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    APP_NAME: str = "Event Catalog Sync"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Local cache
    DATABASE_URL: str = "sqlite+aiosqlite:///./eventsync.db"
    DB_ECHO: bool = False

    # Remote catalog
    API_BASE_URL: str = "https://nema-api.kanakaagro.in/api/"
    API_TIMEOUT_SECONDS: float = Field(20.0, gt=0)
    SUBRESOURCE_TIMEOUT_SECONDS: float = Field(15.0, gt=0)

    # Sync
    SNAPSHOT_LIMIT: int = Field(30, ge=1, le=500)
    SYNC_ON_STARTUP: bool = True

    @field_validator("API_BASE_URL")
    @classmethod
    def endpoint_paths_are_relative_to_base(cls, value: str) -> str:
        # `events/...` is joined onto the base, so the base must end in a slash
        return value if value.endswith("/") else value + "/"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
