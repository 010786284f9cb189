# railfare/config.py
from typing import Literal, Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Upstream forbids polling more often than this
MIN_COLLECT_INTERVAL_MINUTES = 15


class Settings(BaseSettings):
    # App
    APP_ENV: Literal["dev", "prod", "staging"] = "dev"
    TZ: str = "Europe/Moscow"

    # Upstream fare source
    RZD_BASE_URL: str = "https://pass.rzd.ru/timetable/public/ru"
    RZD_DEEPLINK_URL: str = "https://pass.rzd.ru/tickets/public/ru"
    RZD_STRUCTURE_ID: str = "735"
    RZD_LAYER_ID: str = "5371"
    RZD_HIGH_SPEED_BRAND: str = "САПСАН"
    HTTP_TIMEOUT_SECONDS: float = Field(20.0, gt=0)

    # Ingestion
    LOOKUP_WINDOW_DAYS: int = Field(60, gt=0)
    MAX_SIMULTANEOUS_REQUESTS: int = Field(30, gt=0)  # portion size
    SETTLE_DELAY_SECONDS: float = Field(10.0, ge=0)  # session needs time to activate
    MAX_ATTEMPTS: int = Field(5, ge=0)  # re-acquisitions after the first listing request
    MIN_FARE_COUNT: int = Field(500, ge=0)
    COLLECT_INTERVAL_MINUTES: int = 20

    # Selection
    PAGE_SIZE: int = Field(5, gt=0)

    # Storage, "memory://" keeps everything in-process
    REDIS_URL: str = "redis://localhost:6379/0"

    # Link shortener
    SHORTENER_URL: str = "https://www.googleapis.com/urlshortener/v1/url"
    SHORTENER_API_KEY: Optional[str] = None

    # read .env and ignore any extra keys
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("COLLECT_INTERVAL_MINUTES")
    @classmethod
    def _interval_not_too_short(cls, v: int) -> int:
        if v < MIN_COLLECT_INTERVAL_MINUTES:
            raise ValueError(f"Interval too short: {v} < {MIN_COLLECT_INTERVAL_MINUTES} minutes")
        return v


settings = Settings()
