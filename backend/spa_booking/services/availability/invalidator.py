# backend/spa_booking/services/availability/invalidator.py
"""
Cache invalidation for availability read models.

Triggers:
✓ Booking created → its date
✓ Booking rescheduled → old and new date
✓ Booking status changed / cancelled → its date

Does NOT trigger:
✗ Staff schedule edits (entries age out with the TTL)
✗ Room / service catalog edits (same)
"""

import logging
from datetime import date, timedelta
from typing import Iterable, Optional

from .cache import AvailabilityCache

logger = logging.getLogger(__name__)


def invalidate_dates(
    cache: Optional[AvailabilityCache],
    dates: Iterable,
) -> int:
    """
    Drop cached summaries and slot detail for the given dates.

    Never raises: a cache outage only widens the staleness window up to
    the TTL, it must not fail a booking that already committed.

    Returns:
        Number of deleted cache keys
    """
    if cache is None:
        return 0

    date_strs = sorted({d.isoformat() if isinstance(d, date) else str(d) for d in dates})
    if not date_strs:
        return 0

    try:
        deleted = cache.delete_dates(date_strs)
    except Exception:
        logger.exception("Failed to invalidate availability cache for dates=%s", date_strs)
        return 0

    logger.info(f"Availability cache invalidated: dates={date_strs}, keys={deleted}")
    return deleted


def get_affected_dates(
    date_start: date,
    date_end: date,
) -> list[date]:
    """
    Get list of dates in range [date_start, date_end].

    Args:
        date_start: Start date (inclusive)
        date_end: End date (inclusive)

    Returns:
        List of dates
    """
    if date_start > date_end:
        date_start, date_end = date_end, date_start

    dates = []
    current = date_start
    while current <= date_end:
        dates.append(current)
        current += timedelta(days=1)

    return dates
