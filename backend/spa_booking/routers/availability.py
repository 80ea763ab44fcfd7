# backend/spa_booking/routers/availability.py
"""
Availability API endpoints.

GET  /availability/summary    - Per-day availability for a date range
GET  /availability/slots      - Slot grid for one date (optionally per service)
POST /availability/validate   - Point-in-time check of a proposed booking
GET  /availability/conflicts  - Bookings overlapping an interval
POST /availability/invalidate - Drop cached availability (admin)
"""

import logging
from dataclasses import asdict
from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..database import get_db
from ..dependencies import get_cache
from ..schemas.availability import (
    AvailabilitySummaryResponse,
    ConflictsResponse,
    InvalidateRequest,
    InvalidateResponse,
    SlotsDayResponse,
    ValidateRequest,
    ValidateResponse,
)
from ..services.availability import AvailabilityAggregator, AvailabilityStore, get_booking_config
from ..services.availability.cache import AvailabilityCache
from ..services.availability.config import add_minutes, parse_time
from ..services.availability.conflicts import find_conflicts
from ..services.availability.invalidator import invalidate_dates
from ..services.booking_service import validate_booking
from ..services.exceptions import ValidationError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/availability", tags=["availability"])


def _reject_past(target_date: date) -> None:
    if target_date < date.today():
        raise ValidationError("Date cannot be in the past")


@router.get("/summary", response_model=AvailabilitySummaryResponse)
def get_summary(
    start_date: date | None = None,
    days: int | None = None,
    db: Session = Depends(get_db),
    cache: AvailabilityCache = Depends(get_cache),
):
    """Availability summary for `days` consecutive days (default from settings)."""
    config = get_booking_config()
    if start_date is None:
        start_date = date.today()
    _reject_past(start_date)

    aggregator = AvailabilityAggregator(db, cache, config)
    summaries = aggregator.summarize_range(start_date, days)

    return AvailabilitySummaryResponse(
        start_date=start_date,
        days=summaries,
        slot_step_minutes=config.slot_step_minutes,
    )


@router.get("/slots", response_model=SlotsDayResponse)
def get_slots(
    target_date: date = Query(..., alias="date"),
    service_id: int | None = None,
    staff_id: list[int] | None = Query(None),
    room_id: list[int] | None = Query(None),
    only_available: bool = False,
    db: Session = Depends(get_db),
    cache: AvailabilityCache = Depends(get_cache),
):
    """Slot grid for one date; repeat staff_id / room_id to filter by several."""
    _reject_past(target_date)
    config = get_booking_config()

    aggregator = AvailabilityAggregator(db, cache, config)
    slots = aggregator.slots_for_date(target_date, service_id, staff_id, room_id)
    if only_available:
        slots = [s for s in slots if s["is_available"]]

    duration = config.default_duration_minutes
    if service_id is not None:
        service = aggregator.store.get_service(service_id)
        duration = service.duration_minutes if service else duration

    return SlotsDayResponse(
        date=target_date,
        service_id=service_id,
        duration_minutes=duration,
        slots=slots,
    )


@router.post("/validate", response_model=ValidateResponse)
def post_validate(
    data: ValidateRequest,
    db: Session = Depends(get_db),
):
    start = parse_time(data.start_time)
    end = parse_time(data.end_time) if data.end_time else add_minutes(start, data.duration_minutes)

    return validate_booking(
        db,
        room_id=data.room_id,
        staff_id=data.staff_id,
        booking_date=data.date,
        start_time=start,
        end_time=end,
        exclude_booking_id=data.exclude_booking_id,
    )


@router.get("/conflicts", response_model=ConflictsResponse)
def get_conflicts(
    target_date: date = Query(..., alias="date"),
    start_time: str = Query(...),
    end_time: str = Query(...),
    room_id: int | None = None,
    staff_id: int | None = None,
    exclude_booking_id: int | None = None,
    db: Session = Depends(get_db),
):
    start = parse_time(start_time)
    end = parse_time(end_time)
    if end <= start:
        raise ValidationError(f"end_time {end} must be after start_time {start}")

    conflicts = find_conflicts(
        AvailabilityStore(db),
        target_date.isoformat(),
        start,
        end,
        room_id=room_id,
        staff_id=staff_id,
        exclude_booking_id=exclude_booking_id,
    )
    return ConflictsResponse(
        date=target_date,
        start_time=start,
        end_time=end,
        conflicts=[asdict(c) for c in conflicts],
    )


@router.post("/invalidate", response_model=InvalidateResponse)
def post_invalidate(
    data: InvalidateRequest,
    cache: AvailabilityCache = Depends(get_cache),
):
    """Drop cached entries for the given dates, or everything when none given."""
    if data.dates:
        deleted = invalidate_dates(cache, data.dates)
    else:
        deleted = cache.clear()
        logger.info(f"Availability cache cleared: keys={deleted}")
    return InvalidateResponse(deleted_keys=deleted)
