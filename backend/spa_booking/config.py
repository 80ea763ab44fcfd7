# backend/spa_booking/config.py

from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parents[2]  # repo root


class Settings(BaseSettings):
    database_url: str = "sqlite:///./data/spa_booking.db"
    redis_url: Optional[str] = None

    log_level: str = "INFO"
    lock_timeout_seconds: float = 5.0

    # Business day grid
    opening_time: str = "09:00"
    closing_time: str = "20:00"
    slot_step_minutes: int = 30
    default_duration_minutes: int = 60

    # Availability cache
    summary_cache_ttl_seconds: int = 300
    slot_cache_ttl_seconds: int = 120

    default_range_days: int = 14
    max_range_days: int = 60

    initial_booking_status: str = "pending"
    slots_per_schedule_entry: Optional[int] = None

    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        extra="ignore",
    )

    @property
    def resolved_database_url(self) -> str:
        url = self.database_url
        if url.startswith("sqlite:///./"):
            # Relative sqlite path is resolved against the repo root
            relative_path = url.replace("sqlite:///./", "")
            absolute_path = BASE_DIR / relative_path
            return f"sqlite:///{absolute_path}"
        return url


settings = Settings()
