"""Settings loaded from ``REMINDER_*`` environment variables (+ optional .env)."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="REMINDER_", env_file=".env", extra="ignore"
    )

    # Dispatcher
    poll_interval_seconds: float = Field(default=60.0, gt=0)
    dispatcher_enabled: bool = True

    # Parsing
    timezone: str = "UTC"
    dateparser_fallback: bool = True

    # Storage
    store_backend: Literal["sqlite", "memory"] = "sqlite"
    database_path: str = "reminders.sqlite3"

    # Channels
    telegram_bot_token: str | None = None
    twilio_account_sid: str | None = None
    twilio_auth_token: str | None = None
    twilio_whatsapp_from: str | None = None
    http_timeout_seconds: float = 10.0

    # Logging
    log_level: str = "INFO"
    log_file: str | None = None

    # HTTP server
    host: str = "127.0.0.1"
    port: int = 8000

    @field_validator("timezone")
    @classmethod
    def _known_zone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"unknown time zone {value!r}") from exc
        return value

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    @property
    def whatsapp_configured(self) -> bool:
        return bool(
            self.twilio_account_sid and self.twilio_auth_token and self.twilio_whatsapp_from
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
