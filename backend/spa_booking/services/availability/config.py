# backend/spa_booking/services/availability/config.py
"""
Booking configuration for slot generation and availability caching.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime
from functools import lru_cache
from typing import Optional

from ..exceptions import ValidationError

MINUTES_PER_DAY = 24 * 60

_TIME_24H = re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2}))?$")
_TIME_12H = re.compile(r"^(\d{1,2}):(\d{2})\s*(AM|PM)$", re.IGNORECASE)


@dataclass(frozen=True)
class BookingConfig:
    """
    Configuration for the availability engine.

    Attributes:
        opening_time: First bookable start on the grid ("HH:MM")
        closing_time: Every slot must end by this time ("HH:MM")
        slot_step_minutes: Grid step in minutes (15/30/60)
        default_duration_minutes: Duration used when no service is given
        summary_cache_ttl_seconds: TTL for per-day summary entries (0 = off)
        slot_cache_ttl_seconds: TTL for per-date slot detail (0 = off)
        default_range_days: Summary window when the caller gives none
        max_range_days: Largest summary window accepted
        slots_per_schedule_entry: Legacy fixed capacity per schedule entry;
            None derives capacity from scheduled minutes
    """
    opening_time: str = "09:00"
    closing_time: str = "20:00"
    slot_step_minutes: int = 30  # 15 / 30 / 60
    default_duration_minutes: int = 60
    summary_cache_ttl_seconds: int = 300
    slot_cache_ttl_seconds: int = 120
    default_range_days: int = 14
    max_range_days: int = 60
    slots_per_schedule_entry: Optional[int] = None

    def __post_init__(self):
        """Validate configuration."""
        if self.slot_step_minutes not in (15, 30, 60):
            raise ValueError(f"slot_step_minutes must be 15, 30, or 60, got {self.slot_step_minutes}")
        if time_str_to_minutes(self.opening_time) >= time_str_to_minutes(self.closing_time):
            raise ValueError(f"opening_time {self.opening_time} must be before closing_time {self.closing_time}")
        if self.default_duration_minutes <= 0:
            raise ValueError("default_duration_minutes must be positive")

    @property
    def opening_minutes(self) -> int:
        return time_str_to_minutes(self.opening_time)

    @property
    def closing_minutes(self) -> int:
        return time_str_to_minutes(self.closing_time)


@lru_cache
def get_booking_config() -> BookingConfig:
    """Get booking configuration (singleton) built from application settings."""
    from ...config import settings

    return BookingConfig(
        opening_time=settings.opening_time,
        closing_time=settings.closing_time,
        slot_step_minutes=settings.slot_step_minutes,
        default_duration_minutes=settings.default_duration_minutes,
        summary_cache_ttl_seconds=settings.summary_cache_ttl_seconds,
        slot_cache_ttl_seconds=settings.slot_cache_ttl_seconds,
        default_range_days=settings.default_range_days,
        max_range_days=settings.max_range_days,
        slots_per_schedule_entry=settings.slots_per_schedule_entry,
    )


# ── Time helpers ─────────────────────────────────────────────────────────


def time_str_to_minutes(value: str) -> int:
    """"HH:MM" (or "HH:MM:SS") → minutes since midnight. "24:00" is allowed."""
    hours, minutes = value.split(":")[:2]
    return int(hours) * 60 + int(minutes)


def minutes_to_time_str(minutes: int) -> str:
    """Minutes since midnight → zero-padded "HH:MM"."""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def parse_date(value) -> date:
    """Accept a date or a YYYY-MM-DD string."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(str(value), "%Y-%m-%d").date()
    except ValueError:
        raise ValidationError(f"Invalid date {value!r}, expected YYYY-MM-DD")


def parse_time(value) -> str:
    """
    Normalize a start/end time to zero-padded "HH:MM".

    Accepts "9:00", "09:00", "09:00:00" and "9:00 AM" style input.
    """
    if hasattr(value, "hour") and hasattr(value, "minute"):
        return minutes_to_time_str(value.hour * 60 + value.minute)

    text = str(value).strip()

    match = _TIME_12H.match(text)
    if match:
        hour, minute, period = int(match.group(1)), int(match.group(2)), match.group(3).upper()
        if not 1 <= hour <= 12 or minute > 59:
            raise ValidationError(f"Invalid time {value!r}")
        if period == "PM" and hour != 12:
            hour += 12
        elif period == "AM" and hour == 12:
            hour = 0
        return minutes_to_time_str(hour * 60 + minute)

    match = _TIME_24H.match(text)
    if not match:
        raise ValidationError(f"Invalid time {value!r}, expected HH:MM")
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        raise ValidationError(f"Invalid time {value!r}")
    return minutes_to_time_str(hour * 60 + minute)


def add_minutes(time_str: str, minutes: int) -> str:
    """Shift "HH:MM" by minutes; the result must not pass midnight."""
    total = time_str_to_minutes(time_str) + minutes
    if total > MINUTES_PER_DAY:
        raise ValidationError(f"{time_str} + {minutes} min runs past midnight")
    return minutes_to_time_str(total)
