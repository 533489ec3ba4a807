from typing import Optional
from zoneinfo import ZoneInfo

from pydantic import ConfigDict, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = ConfigDict(env_file=".env", case_sensitive=True)

    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Redis holds the daily cron run lock and last-run marker only
    REDIS_URL: str = "redis://localhost:6379/0"

    # Shared secret for the scheduled trigger; unset means open (dev mode)
    CRON_SECRET: Optional[str] = None
    CRON_MIN_HOURS_BETWEEN_RUNS: int = 20

    # Local zone for time-of-day scoring when no hour is given
    TIMEZONE: str = "America/Phoenix"

    # Assignment defaults
    DEFAULT_MAX_DISTANCE_MILES: float = 50
    DEFAULT_STALE_DAYS: int = 5

    # Rate limiting (slowapi)
    RATE_LIMIT_ENABLED: bool = True
    CRON_RATE_LIMIT: str = "10/minute"
    AUTOASSIGN_RATE_LIMIT: str = "30/minute"

    # CORS configuration, comma-separated origins
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:8080"

    @field_validator("TIMEZONE")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        ZoneInfo(value)
        return value


settings = Settings()
