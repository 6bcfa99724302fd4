"""
Application settings loaded from the environment (or a .env file).

The alert thresholds here are only the defaults; the values actually used by
the engine are read at request time through ``get_alert_config`` in
``app/store.py`` so they can be edited without a restart.
"""

from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    DATABASE_URL: str = "sqlite:///./cow_breeding.db"

    # Alert defaults
    PD_ALERT_DAYS: int = 60
    DELIVERY_EXPECTED_DAYS: int = 283
    PD_OVERDUE_DAYS: Optional[int] = None  # None = same as PD_ALERT_DAYS
    DELIVERY_ALERT_DAYS: int = 7

    LOG_LEVEL: str = "INFO"


settings = Settings()
