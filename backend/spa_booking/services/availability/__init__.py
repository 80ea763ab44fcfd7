# backend/spa_booking/services/availability/__init__.py
"""
Availability engine.

Write side: compatibility rules + conflict detection, re-run inside the
booking transaction (see ..booking_service).
Read side: slot grid per date and multi-day summaries, cached per date.
"""

from .config import BookingConfig, get_booking_config
from .compatibility import incompatibility_reason, is_compatible, is_staff_qualified
from .conflicts import find_conflicts, has_conflict, overlaps
from .calculator import calculate_slots, generate_slots
from .cache import AvailabilityCache, MemoryAvailabilityCache, NullAvailabilityCache
from .redis_store import RedisAvailabilityCache
from .invalidator import invalidate_dates
from .aggregator import AvailabilityAggregator
from .store import AvailabilityStore
from .types import ResourceKind

__all__ = [
    "BookingConfig",
    "get_booking_config",
    "incompatibility_reason",
    "is_compatible",
    "is_staff_qualified",
    "find_conflicts",
    "has_conflict",
    "overlaps",
    "calculate_slots",
    "generate_slots",
    "AvailabilityCache",
    "MemoryAvailabilityCache",
    "NullAvailabilityCache",
    "RedisAvailabilityCache",
    "invalidate_dates",
    "AvailabilityAggregator",
    "AvailabilityStore",
    "ResourceKind",
]
