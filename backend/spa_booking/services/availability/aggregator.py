# backend/spa_booking/services/availability/aggregator.py
"""
Read-side availability: multi-day summaries and per-date slot detail.

Summary per day:
  total_slots      Σ floor(entry minutes / step) over available schedule
                   entries of active staff (or the fixed legacy count)
  booked_slots     active (not cancelled / no-show) bookings that day
  available_slots  max(0, total - booked)

Results are plain dicts (dates and times as strings), so a cache hit and a
live computation return identical values.
"""

import logging
from dataclasses import asdict
from datetime import date, timedelta
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from ...database import lock_errors_as_retryable
from ..exceptions import ValidationError
from .cache import AvailabilityCache, NullAvailabilityCache, day_key, slots_key
from .calculator import generate_slots
from .config import BookingConfig, get_booking_config, parse_date, time_str_to_minutes
from .invalidator import get_affected_dates
from .store import AvailabilityStore
from .types import ScheduleEntry

logger = logging.getLogger(__name__)


class AvailabilityAggregator:
    """Availability queries for one session, backed by an optional cache."""

    def __init__(
        self,
        db: Session,
        cache: Optional[AvailabilityCache] = None,
        config: BookingConfig | None = None,
    ):
        self.store = AvailabilityStore(db)
        self.cache = cache or NullAvailabilityCache()
        self.config = config or get_booking_config()

    # ── Summary ──────────────────────────────────────────────────────────

    def summarize_range(self, start_date, num_days: int | None = None) -> list[dict]:
        """
        Availability summary for num_days consecutive days from start_date.

        Raises:
            ValidationError: bad date or num_days outside [1, max_range_days].
        """
        start = parse_date(start_date)
        if num_days is None:
            num_days = self.config.default_range_days
        if not 1 <= num_days <= self.config.max_range_days:
            raise ValidationError(
                f"days must be between 1 and {self.config.max_range_days}, got {num_days}"
            )

        dates = get_affected_dates(start, start + timedelta(days=num_days - 1))
        keys = [day_key(d.isoformat()) for d in dates]

        cached = self._cache_get_many(keys)
        missing = [d for d, key in zip(dates, keys) if cached.get(key) is None]

        computed: dict[str, dict] = {}
        if missing:
            with lock_errors_as_retryable("availability summary"):
                computed = self._compute_summaries(min(missing), max(missing))
            for d in missing:
                self._cache_set(
                    day_key(d.isoformat()),
                    computed[d.isoformat()],
                    self.config.summary_cache_ttl_seconds,
                )

        logger.debug(
            f"Summary {start} +{num_days}d: {num_days - len(missing)} cached, {len(missing)} computed"
        )
        return [cached.get(key) or computed[d.isoformat()] for d, key in zip(dates, keys)]

    def _compute_summaries(self, start: date, end: date) -> dict[str, dict]:
        entries = self.store.available_entries_between(start, end)
        booked = self.store.count_active_bookings_between(start, end)

        totals: dict[str, int] = {}
        for entry in entries:
            totals[entry.date] = totals.get(entry.date, 0) + self._entry_capacity(entry)

        summaries = {}
        for d in get_affected_dates(start, end):
            key = d.isoformat()
            total = totals.get(key, 0)
            booked_count = booked.get(key, 0)
            available = max(0, total - booked_count)
            summaries[key] = {
                "date": key,
                "total_slots": total,
                "booked_slots": booked_count,
                "available_slots": available,
                "has_availability": available > 0,
            }
        return summaries

    def _entry_capacity(self, entry: ScheduleEntry) -> int:
        if self.config.slots_per_schedule_entry is not None:
            return self.config.slots_per_schedule_entry
        minutes = time_str_to_minutes(entry.end_time) - time_str_to_minutes(entry.start_time)
        return max(0, minutes) // self.config.slot_step_minutes

    # ── Slots ────────────────────────────────────────────────────────────

    def slots_for_date(
        self,
        target_date,
        service_id: Optional[int] = None,
        staff_ids: Optional[Iterable[int]] = None,
        room_ids: Optional[Iterable[int]] = None,
    ) -> list[dict]:
        """Slot grid for one date; see calculator.calculate_slots."""
        target = parse_date(target_date)
        staff_ids = list(staff_ids) if staff_ids is not None else None
        room_ids = list(room_ids) if room_ids is not None else None

        key = slots_key(target.isoformat(), service_id, staff_ids, room_ids)
        hit = self._cache_get_many([key]).get(key)
        if hit is not None:
            return hit

        with lock_errors_as_retryable("slot generation"):
            slots = generate_slots(self.store, target, service_id, staff_ids, room_ids, self.config)
        result = [asdict(slot) for slot in slots]
        self._cache_set(key, result, self.config.slot_cache_ttl_seconds)
        return result

    # ── Cache access (fail open) ─────────────────────────────────────────

    def _cache_get_many(self, keys: list[str]) -> dict:
        try:
            return self.cache.get_many(keys)
        except Exception:
            logger.warning("Availability cache read failed, computing live", exc_info=True)
            return {}

    def _cache_set(self, key: str, value, ttl_seconds: int) -> None:
        if ttl_seconds <= 0:
            return
        try:
            self.cache.set(key, value, ttl_seconds)
        except Exception:
            logger.warning(f"Availability cache write failed for {key}", exc_info=True)
