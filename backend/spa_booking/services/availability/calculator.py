# backend/spa_booking/services/availability/calculator.py
"""
Slot generation for a single business day.

Produces, for every start time on the fixed grid, how many staff members
and rooms could take a booking of the effective duration, plus a
deterministic suggestion (lowest id) for each.

Staff candidates:
✓ active, with an `available` schedule entry covering [t, t+duration)
✓ specialized in the service category (service given)
✓ in the staff filter (filter given)
✗ holding an active booking overlapping [t, t+duration)

Room candidates:
✓ active and compatible with the service (service given)
✓ in the room filter (filter given)
✗ holding an active booking overlapping [t, t+duration)
"""

import logging
from datetime import date
from typing import Iterable, Optional

from ..exceptions import NotFoundError
from .compatibility import is_compatible, is_staff_qualified
from .config import BookingConfig, get_booking_config, minutes_to_time_str, parse_date, time_str_to_minutes
from .conflicts import conflicting_bookings
from .store import AvailabilityStore
from .types import DaySnapshot, ResourceKind, ServiceInfo, SlotAvailability

logger = logging.getLogger(__name__)


def build_time_grid(config: BookingConfig, duration_minutes: int) -> list[str]:
    """Start times from opening, every step, that still end by closing."""
    step = config.slot_step_minutes
    last_start = config.closing_minutes - duration_minutes

    times = []
    t = config.opening_minutes
    while t <= last_start:
        times.append(minutes_to_time_str(t))
        t += step
    return times


def calculate_slots(
    snapshot: DaySnapshot,
    service: Optional[ServiceInfo] = None,
    staff_ids: Optional[Iterable[int]] = None,
    room_ids: Optional[Iterable[int]] = None,
    config: BookingConfig | None = None,
) -> list[SlotAvailability]:
    """Pure slot computation over one day's snapshot."""
    config = config or get_booking_config()
    duration = service.duration_minutes if service else config.default_duration_minutes

    staff_filter = set(staff_ids) if staff_ids is not None else None
    room_filter = set(room_ids) if room_ids is not None else None

    # Time-independent filters first
    staff_pool = [
        s for s in snapshot.staff
        if s.is_active
        and (staff_filter is None or s.id in staff_filter)
        and (service is None or is_staff_qualified(service, s))
    ]
    room_pool = [
        r for r in snapshot.rooms
        if r.is_active
        and (room_filter is None or r.id in room_filter)
        and (service is None or is_compatible(service, r))
    ]

    schedules_by_staff: dict[int, list] = {}
    for entry in snapshot.schedules:
        schedules_by_staff.setdefault(entry.staff_id, []).append(entry)

    slots = []
    for start in build_time_grid(config, duration):
        end = _end_of(start, duration)

        free_staff = sorted(
            s.id for s in staff_pool
            if any(e.covers(start, end) for e in schedules_by_staff.get(s.id, ()))
            and not conflicting_bookings(snapshot.bookings, ResourceKind.STAFF, s.id, start, end)
        )
        free_rooms = sorted(
            r.id for r in room_pool
            if not conflicting_bookings(snapshot.bookings, ResourceKind.ROOM, r.id, start, end)
        )

        slots.append(SlotAvailability(
            time=start,
            available_staff_count=len(free_staff),
            available_room_count=len(free_rooms),
            is_available=bool(free_staff) and bool(free_rooms),
            suggested_staff_id=free_staff[0] if free_staff else None,
            suggested_room_id=free_rooms[0] if free_rooms else None,
        ))

    return slots


def generate_slots(
    store: AvailabilityStore,
    target_date,
    service_id: Optional[int] = None,
    staff_ids: Optional[Iterable[int]] = None,
    room_ids: Optional[Iterable[int]] = None,
    config: BookingConfig | None = None,
) -> list[SlotAvailability]:
    """
    Fetch the day's snapshot and compute its slot grid.

    Raises:
        NotFoundError: service_id given but no active service has it.
    """
    config = config or get_booking_config()
    target: date = parse_date(target_date)

    service = None
    if service_id is not None:
        service = store.get_service(service_id)
        if not service:
            raise NotFoundError(f"Service {service_id} not found or inactive")

    snapshot = store.day_snapshot(target.isoformat())
    slots = calculate_slots(snapshot, service, staff_ids, room_ids, config)

    logger.debug(
        f"Generated {len(slots)} slots for {target} (service={service_id}), "
        f"{sum(1 for s in slots if s.is_available)} available"
    )
    return slots


def _end_of(start: str, duration: int) -> str:
    return minutes_to_time_str(time_str_to_minutes(start) + duration)
