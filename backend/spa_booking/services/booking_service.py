# backend/spa_booking/services/booking_service.py
"""
Booking transaction manager.

create_booking runs every check inside one transaction, after taking the
room and staff locks:
  1. service / customer / room / staff exist (NotFoundError)
  2. room compatible, staff qualified (IncompatibleResourceError)
  3. no active room booking overlaps (RoomUnavailableError)
  4. no active staff booking overlaps (StaffUnavailableError)
  5. an available schedule entry covers the interval (StaffNotScheduledError)
then inserts the booking plus one history entry and commits.

Any failure rolls the whole attempt back. A lock wait timeout surfaces as
the retryable ResourceLockedError. Cache invalidation runs only after
commit, and the transaction never reads the cache.
"""

import logging
from dataclasses import asdict
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session, joinedload

from ..config import settings
from ..database import atomic, lock_errors_as_retryable
from ..models.generated import BookingHistory as DBBookingHistory, Bookings as DBBookings
from .availability.cache import AvailabilityCache
from .availability.compatibility import incompatibility_reason, is_staff_qualified
from .availability.config import add_minutes, parse_date, parse_time
from .availability.conflicts import find_conflicts, has_conflict
from .availability.invalidator import invalidate_dates
from .availability.store import AvailabilityStore
from .availability.types import (
    ALLOWED_TRANSITIONS,
    BookingStatus,
    ResourceKind,
    RoomInfo,
    ServiceInfo,
    StaffInfo,
    is_active_status,
)
from .exceptions import (
    IncompatibleResourceError,
    NotFoundError,
    RoomUnavailableError,
    StaffNotScheduledError,
    StaffUnavailableError,
    ValidationError,
)

logger = logging.getLogger(__name__)

INITIAL_STATUSES = (BookingStatus.PENDING.value, BookingStatus.CONFIRMED.value)


def _now() -> str:
    return datetime.now().strftime("%Y-%m-%d %H:%M:%S")


# ── Checks shared by create and reschedule ───────────────────────────────


def _require_service(store: AvailabilityStore, service_id: int) -> ServiceInfo:
    service = store.get_catalog("service", service_id)
    if not service:
        raise NotFoundError(f"Service {service_id} not found or inactive", service_id=service_id)
    return service


def _require_resources(
    room: Optional[RoomInfo],
    staff: Optional[StaffInfo],
    room_id: int,
    staff_id: int,
) -> tuple[RoomInfo, StaffInfo]:
    if room is None:
        raise NotFoundError(f"Room {room_id} not found", room_id=room_id)
    if staff is None or not staff.is_active:
        raise NotFoundError(f"Staff member {staff_id} not found or inactive", staff_id=staff_id)
    return room, staff


def _check_slot(
    store: AvailabilityStore,
    service: ServiceInfo,
    room: RoomInfo,
    staff: StaffInfo,
    booking_date: str,
    start: str,
    end: str,
    exclude_booking_id: Optional[int] = None,
) -> None:
    """Compatibility, conflicts and schedule coverage, in that order."""
    reason = incompatibility_reason(service, room)
    if reason:
        raise IncompatibleResourceError(reason, service_id=service.id, room_id=room.id)

    if not is_staff_qualified(service, staff):
        raise IncompatibleResourceError(
            f"Staff member {staff.id} is not qualified for {service.category} services",
            service_id=service.id,
            staff_id=staff.id,
        )

    room_conflicts = find_conflicts(
        store, booking_date, start, end,
        room_id=room.id, exclude_booking_id=exclude_booking_id,
    )
    if room_conflicts:
        raise RoomUnavailableError(
            f"Room {room.name} is already booked on {booking_date} between {start} and {end}",
            conflicts=[asdict(c) for c in room_conflicts],
        )

    staff_conflicts = find_conflicts(
        store, booking_date, start, end,
        staff_id=staff.id, exclude_booking_id=exclude_booking_id,
    )
    if staff_conflicts:
        raise StaffUnavailableError(
            f"{staff.name} is already booked on {booking_date} between {start} and {end}",
            conflicts=[asdict(c) for c in staff_conflicts],
        )

    entries = store.get_schedule_entries(staff.id, booking_date)
    if not any(entry.covers(start, end) for entry in entries):
        raise StaffNotScheduledError(
            f"{staff.name} is not scheduled on {booking_date} from {start} to {end}",
            staff_id=staff.id,
        )


# ── Create ───────────────────────────────────────────────────────────────


def create_booking(
    db: Session,
    customer_id: int,
    service_id: int,
    staff_id: int,
    room_id: int,
    booking_date,
    start_time,
    *,
    status: Optional[str] = None,
    special_requests: Optional[str] = None,
    internal_notes: Optional[str] = None,
    changed_by: Optional[int] = None,
    cache: Optional[AvailabilityCache] = None,
) -> DBBookings:
    """
    Validate and insert a booking atomically.

    Raises:
        ValidationError, NotFoundError, IncompatibleResourceError,
        RoomUnavailableError, StaffUnavailableError, StaffNotScheduledError,
        ResourceLockedError
    """
    date_str = parse_date(booking_date).isoformat()
    start = parse_time(start_time)
    status = status or settings.initial_booking_status
    if status not in INITIAL_STATUSES:
        raise ValidationError(f"New bookings must be pending or confirmed, got {status!r}")

    store = AvailabilityStore(db)
    with lock_errors_as_retryable("booking creation"), atomic(db):
        room, staff = store.lock_resources(room_id, staff_id)

        service = _require_service(store, service_id)
        end = add_minutes(start, service.duration_minutes)
        if not store.get_catalog("customer", customer_id):
            raise NotFoundError(f"Customer {customer_id} not found", customer_id=customer_id)
        room, staff = _require_resources(room, staff, room_id, staff_id)

        _check_slot(store, service, room, staff, date_str, start, end)

        booking = store.insert_booking(
            customer_id=customer_id,
            service_id=service.id,
            staff_id=staff.id,
            room_id=room.id,
            booking_date=date_str,
            start_time=start,
            end_time=end,
            status=status,
            total_price=service.price,
            special_requests=special_requests,
            internal_notes=internal_notes,
        )
        store.append_history(
            booking.id,
            old_status=None,
            new_status=status,
            changed_by=changed_by,
            reason="Booking created",
            details={"room_id": room.id, "staff_id": staff.id, "date": date_str, "start_time": start},
        )
        # Load server defaults (created_at) before the transaction ends
        db.refresh(booking)
        booking_id = booking.id

    logger.info(
        f"Booking {booking_id} created: service={service_id} room={room_id} "
        f"staff={staff_id} {date_str} {start}-{end} ({status})"
    )
    invalidate_dates(cache, [date_str])
    return booking


# ── Update / cancel ──────────────────────────────────────────────────────


def update_booking(
    db: Session,
    booking_id: int,
    *,
    status: Optional[str] = None,
    booking_date=None,
    start_time=None,
    room_id: Optional[int] = None,
    staff_id: Optional[int] = None,
    service_id: Optional[int] = None,
    reason: Optional[str] = None,
    changed_by: Optional[int] = None,
    special_requests: Optional[str] = None,
    internal_notes: Optional[str] = None,
    cache: Optional[AvailabilityCache] = None,
) -> DBBookings:
    """
    Change status and/or reschedule a booking.

    A reschedule that leaves the booking active re-runs every creation
    check, ignoring the booking itself. A status change appends exactly
    one history entry however many fields change with it.
    """
    new_date = parse_date(booking_date).isoformat() if booking_date is not None else None
    new_start = parse_time(start_time) if start_time is not None else None

    store = AvailabilityStore(db)
    with lock_errors_as_retryable(f"update of booking {booking_id}"), atomic(db):
        booking = store.get_catalog("booking", booking_id)
        if not booking:
            raise NotFoundError(f"Booking {booking_id} not found", booking_id=booking_id)

        old_status = booking.status
        old_date = booking.booking_date
        target_status = status if status is not None else old_status

        if target_status != old_status and target_status not in ALLOWED_TRANSITIONS.get(old_status, ()):
            raise ValidationError(
                f"Cannot change booking {booking_id} from {old_status} to {target_status}"
            )

        target = {
            "booking_date": new_date or booking.booking_date,
            "start_time": new_start or booking.start_time[:5],
            "room_id": room_id if room_id is not None else booking.room_id,
            "staff_id": staff_id if staff_id is not None else booking.staff_id,
            "service_id": service_id if service_id is not None else booking.service_id,
        }
        current = {
            "booking_date": booking.booking_date,
            "start_time": booking.start_time[:5],
            "room_id": booking.room_id,
            "staff_id": booking.staff_id,
            "service_id": booking.service_id,
        }
        changed = {k: {"from": current[k], "to": v} for k, v in target.items() if v != current[k]}

        if changed:
            if not is_active_status(old_status) or old_status == BookingStatus.COMPLETED.value:
                raise ValidationError(f"Cannot reschedule a {old_status} booking")

            service = _require_service(store, target["service_id"])
            end = add_minutes(target["start_time"], service.duration_minutes)

            if is_active_status(target_status):
                room, staff = store.lock_resources(target["room_id"], target["staff_id"])
                room, staff = _require_resources(room, staff, target["room_id"], target["staff_id"])
                _check_slot(
                    store, service, room, staff,
                    target["booking_date"], target["start_time"], end,
                    exclude_booking_id=booking.id,
                )

            for field, value in target.items():
                setattr(booking, field, value)
            booking.end_time = end
            if "service_id" in changed:
                booking.total_price = service.price

        if target_status != old_status:
            booking.status = target_status
            if target_status == BookingStatus.CANCELLED.value:
                booking.cancellation_reason = reason
                booking.cancelled_at = _now()
                booking.cancelled_by = changed_by

        if special_requests is not None:
            booking.special_requests = special_requests
        if internal_notes is not None:
            booking.internal_notes = internal_notes
        booking.updated_at = _now()

        if target_status != old_status:
            store.append_history(
                booking.id,
                old_status=old_status,
                new_status=target_status,
                changed_by=changed_by,
                reason=reason,
                details={"changed_fields": changed},
            )
        db.flush()
        final_date = booking.booking_date

    if target_status != old_status:
        logger.info(f"Booking {booking_id}: {old_status} → {target_status}")
    if changed:
        logger.info(f"Booking {booking_id} rescheduled: {changed}")

    invalidate_dates(cache, {old_date, final_date})
    return booking


def cancel_booking(
    db: Session,
    booking_id: int,
    *,
    reason: Optional[str] = None,
    changed_by: Optional[int] = None,
    cache: Optional[AvailabilityCache] = None,
) -> DBBookings:
    """Soft cancel: the row stays, status becomes cancelled."""
    booking = get_booking(db, booking_id)
    if booking.status == BookingStatus.CANCELLED.value:
        raise ValidationError(f"Booking {booking_id} is already cancelled")

    return update_booking(
        db,
        booking_id,
        status=BookingStatus.CANCELLED.value,
        reason=reason,
        changed_by=changed_by,
        cache=cache,
    )


# ── Validation (read-only) ───────────────────────────────────────────────


def validate_booking(
    db: Session,
    room_id: int,
    staff_id: int,
    booking_date,
    start_time,
    end_time,
    exclude_booking_id: Optional[int] = None,
) -> dict:
    """
    Point-in-time check of a proposed interval. Commit-time checks in
    create_booking remain authoritative.
    """
    date_str = parse_date(booking_date).isoformat()
    start = parse_time(start_time)
    end = parse_time(end_time)
    if end <= start:
        raise ValidationError(f"end_time {end} must be after start_time {start}")

    store = AvailabilityStore(db)

    with lock_errors_as_retryable("booking validation"):
        if store.get_catalog("room", room_id) is None:
            raise NotFoundError(f"Room {room_id} not found", room_id=room_id)
        if store.get_catalog("staff", staff_id) is None:
            raise NotFoundError(f"Staff member {staff_id} not found", staff_id=staff_id)

        room_available = not has_conflict(
            store, ResourceKind.ROOM, room_id, date_str, start, end, exclude_booking_id
        )
        staff_free = not has_conflict(
            store, ResourceKind.STAFF, staff_id, date_str, start, end, exclude_booking_id
        )
        scheduled = any(e.covers(start, end) for e in store.get_schedule_entries(staff_id, date_str))

        conflicts = find_conflicts(
            store, date_str, start, end,
            room_id=room_id, staff_id=staff_id, exclude_booking_id=exclude_booking_id,
        )

    staff_available = staff_free and scheduled
    return {
        "is_valid": room_available and staff_available and not conflicts,
        "room_available": room_available,
        "staff_available": staff_available,
        "conflicts": [asdict(c) for c in conflicts],
    }


# ── Queries ──────────────────────────────────────────────────────────────


def get_booking(db: Session, booking_id: int) -> DBBookings:
    booking = db.get(DBBookings, booking_id)
    if not booking:
        raise NotFoundError(f"Booking {booking_id} not found", booking_id=booking_id)
    return booking


def list_bookings(
    db: Session,
    customer_id: Optional[int] = None,
    staff_id: Optional[int] = None,
    booking_date=None,
    status: Optional[str] = None,
) -> list[DBBookings]:
    """Bookings ordered by date and start time; cancelled ones only on request."""
    query = db.query(DBBookings)
    if customer_id is not None:
        query = query.filter(DBBookings.customer_id == customer_id)
    if staff_id is not None:
        query = query.filter(DBBookings.staff_id == staff_id)
    if booking_date is not None:
        query = query.filter(DBBookings.booking_date == parse_date(booking_date).isoformat())
    if status is not None:
        query = query.filter(DBBookings.status == status)
    else:
        query = query.filter(DBBookings.status != BookingStatus.CANCELLED.value)

    return query.order_by(DBBookings.booking_date, DBBookings.start_time, DBBookings.id).all()


def get_booking_history(db: Session, booking_id: int) -> list[DBBookingHistory]:
    get_booking(db, booking_id)
    return (
        db.query(DBBookingHistory)
        .filter(DBBookingHistory.booking_id == booking_id)
        .order_by(DBBookingHistory.id)
        .all()
    )


def list_staff_schedule(
    db: Session,
    staff_id: Optional[int] = None,
    booking_date=None,
    start_date=None,
    end_date=None,
    status: Optional[str] = None,
    limit: Optional[int] = None,
    offset: int = 0,
) -> list[DBBookings]:
    """
    Non-cancelled bookings with service, room and staff loaded, for the
    staff-facing schedule. A single date wins over a date range.
    """
    query = (
        db.query(DBBookings)
        .options(
            joinedload(DBBookings.service),
            joinedload(DBBookings.room),
            joinedload(DBBookings.staff),
        )
        .filter(DBBookings.status != BookingStatus.CANCELLED.value)
    )

    if booking_date is not None:
        query = query.filter(DBBookings.booking_date == parse_date(booking_date).isoformat())
    else:
        if start_date is not None:
            query = query.filter(DBBookings.booking_date >= parse_date(start_date).isoformat())
        if end_date is not None:
            query = query.filter(DBBookings.booking_date <= parse_date(end_date).isoformat())

    if staff_id is not None:
        query = query.filter(DBBookings.staff_id == staff_id)
    if status is not None:
        query = query.filter(DBBookings.status == status)

    query = query.order_by(DBBookings.booking_date, DBBookings.start_time, DBBookings.id)
    if offset:
        query = query.offset(offset)
    if limit is not None:
        query = query.limit(limit)
    return query.all()
