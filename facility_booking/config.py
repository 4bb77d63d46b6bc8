from __future__ import annotations

from datetime import time
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

GRID_START = time(8, 0)
GRID_END = time(22, 0)
GRID_GRANULARITY_MINUTES = 30
WEEK_LENGTH_DAYS = 7
MAX_BOOKING_MINUTES = 8 * 60
MAX_PURPOSE_LENGTH = 500

ENV_PREFIX = "FACILITY_BOOKING_"


class BookingSettings(BaseSettings):
    """Runtime settings loaded from FACILITY_BOOKING_* environment variables."""

    data_dir: Path = Path("data")
    holiday_country: str | None = None
    notifications: bool = True
    mail_from: str = "no-reply@campus-booking.local"
    notification_workers: int = Field(default=2, ge=1)

    model_config = SettingsConfigDict(env_prefix=ENV_PREFIX, frozen=True)

    @field_validator("holiday_country", mode="before")
    @classmethod
    def _normalize_country(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().upper() or None
        return value
