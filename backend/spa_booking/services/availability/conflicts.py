# backend/spa_booking/services/availability/conflicts.py
"""
Conflict detection for rooms and staff.

Intervals are half-open: [s1, e1) and [s2, e2) conflict iff
s1 < e2 and e1 > s2, so a booking ending at 10:00 and one starting
at 10:00 do not conflict. Cancelled and no-show bookings never count.

Times are zero-padded "HH:MM" strings, so string comparison equals
chronological comparison.
"""

from typing import Optional

from .types import BookingConflict, BookingInterval, ResourceKind, is_active_status


def overlaps(start_a: str, end_a: str, start_b: str, end_b: str) -> bool:
    return start_a < end_b and end_a > start_b


def conflicting_bookings(
    bookings,
    kind: ResourceKind,
    resource_id: int,
    start: str,
    end: str,
    exclude_booking_id: Optional[int] = None,
) -> list[BookingInterval]:
    """Filter already-fetched bookings down to those blocking the resource."""
    return [
        b for b in bookings
        if b.resource_id(kind) == resource_id
        and is_active_status(b.status)
        and b.id != exclude_booking_id
        and overlaps(b.start_time, b.end_time, start, end)
    ]


def has_conflict(
    store,
    kind: ResourceKind,
    resource_id: int,
    booking_date: str,
    start: str,
    end: str,
    exclude_booking_id: Optional[int] = None,
) -> bool:
    """True if an active booking holds the room/staff member within [start, end)."""
    return bool(
        store.find_conflicting(kind, resource_id, booking_date, start, end, exclude_booking_id)
    )


def find_conflicts(
    store,
    booking_date: str,
    start: str,
    end: str,
    room_id: Optional[int] = None,
    staff_id: Optional[int] = None,
    exclude_booking_id: Optional[int] = None,
) -> list[BookingConflict]:
    """
    List the bookings a proposed booking would collide with.

    A booking holding the requested room is a room_conflict; otherwise one
    holding the requested staff member is a staff_conflict. With neither
    filter, every overlapping booking is listed as general_conflict.
    """
    overlapping = [
        b for b in store.active_bookings_on(booking_date)
        if b.id != exclude_booking_id and overlaps(b.start_time, b.end_time, start, end)
    ]

    tagged: list[tuple[BookingInterval, str]] = []
    for booking in overlapping:
        if room_id is not None and booking.room_id == room_id:
            tagged.append((booking, "room_conflict"))
        elif staff_id is not None and booking.staff_id == staff_id:
            tagged.append((booking, "staff_conflict"))
        elif room_id is None and staff_id is None:
            tagged.append((booking, "general_conflict"))

    room_names = store.resource_names(
        ResourceKind.ROOM, [b.room_id for b, kind in tagged if kind == "room_conflict"]
    )
    staff_names = store.resource_names(
        ResourceKind.STAFF, [b.staff_id for b, kind in tagged if kind == "staff_conflict"]
    )

    conflicts = []
    for booking, conflict_type in tagged:
        if conflict_type == "room_conflict":
            resource_id, resource_name = booking.room_id, room_names.get(booking.room_id)
        elif conflict_type == "staff_conflict":
            resource_id, resource_name = booking.staff_id, staff_names.get(booking.staff_id)
        else:
            resource_id, resource_name = None, None

        conflicts.append(BookingConflict(
            booking_id=booking.id,
            conflict_type=conflict_type,
            resource_id=resource_id,
            resource_name=resource_name,
            existing_start_time=booking.start_time,
            existing_end_time=booking.end_time,
            customer_id=booking.customer_id,
        ))

    return conflicts
