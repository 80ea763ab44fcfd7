# backend/spa_booking/services/availability/store.py
"""
Query interface between the availability engine and the database.

One AvailabilityStore wraps one SQLAlchemy session, so every read and
write joins whatever transaction the caller has open. Rows are returned
as immutable snapshots from .types; overlap filtering is delegated to
conflicts.overlaps so the same predicate serves every caller.
"""

import json
import logging
from datetime import date
from typing import Iterable, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ...models.generated import (
    BookingHistory as DBBookingHistory,
    Bookings as DBBookings,
    Rooms as DBRooms,
    ServiceRooms as DBServiceRooms,
    Services as DBServices,
    StaffProfiles as DBStaff,
    StaffSchedules as DBSchedules,
    Users as DBUsers,
)
from .conflicts import overlaps
from .types import (
    INACTIVE_STATUSES,
    BookingInterval,
    DaySnapshot,
    ResourceKind,
    RoomInfo,
    ScheduleEntry,
    ScheduleStatus,
    ServiceInfo,
    StaffInfo,
)

logger = logging.getLogger(__name__)

_INACTIVE = sorted(INACTIVE_STATUSES)


class AvailabilityStore:
    """SQLAlchemy-backed store used by the slot generator and booking service."""

    def __init__(self, db: Session):
        self.db = db

    # ── Catalog ──────────────────────────────────────────────────────────

    def get_service(self, service_id: int, active_only: bool = True) -> Optional[ServiceInfo]:
        query = self.db.query(DBServices).filter(DBServices.id == service_id)
        if active_only:
            query = query.filter(DBServices.is_active == 1)
        row = query.first()
        if not row:
            return None

        allowed = (
            self.db.query(DBServiceRooms.room_id)
            .filter(
                DBServiceRooms.service_id == service_id,
                DBServiceRooms.is_active == 1,
            )
            .all()
        )
        return _to_service(row, frozenset(room_id for (room_id,) in allowed))

    def get_room(self, room_id: int) -> Optional[RoomInfo]:
        row = self.db.get(DBRooms, room_id)
        return _to_room(row) if row else None

    def get_staff(self, staff_id: int) -> Optional[StaffInfo]:
        row = self.db.get(DBStaff, staff_id)
        return _to_staff(row) if row else None

    def get_customer(self, customer_id: int) -> Optional[DBUsers]:
        return (
            self.db.query(DBUsers)
            .filter(DBUsers.id == customer_id, DBUsers.is_active == 1)
            .first()
        )

    def get_booking(self, booking_id: int) -> Optional[DBBookings]:
        return self.db.get(DBBookings, booking_id)

    def get_catalog(self, kind: str, item_id: int):
        """Generic lookup by kind: service / room / staff / customer / booking."""
        getters = {
            "service": self.get_service,
            "room": self.get_room,
            "staff": self.get_staff,
            "customer": self.get_customer,
            "booking": self.get_booking,
        }
        if kind not in getters:
            raise ValueError(f"Unknown catalog kind: {kind}")
        return getters[kind](item_id)

    def list_active_staff(self) -> list[StaffInfo]:
        rows = (
            self.db.query(DBStaff)
            .filter(DBStaff.is_active == 1)
            .order_by(DBStaff.id)
            .all()
        )
        return [_to_staff(row) for row in rows]

    def list_active_rooms(self) -> list[RoomInfo]:
        rows = (
            self.db.query(DBRooms)
            .filter(DBRooms.is_active == 1)
            .order_by(DBRooms.id)
            .all()
        )
        return [_to_room(row) for row in rows]

    def resource_names(self, kind: ResourceKind, ids: Iterable[int]) -> dict[int, str]:
        ids = set(ids)
        if not ids:
            return {}
        if kind is ResourceKind.ROOM:
            rows = self.db.query(DBRooms).filter(DBRooms.id.in_(ids)).all()
            return {row.id: row.name for row in rows}
        rows = self.db.query(DBStaff).filter(DBStaff.id.in_(ids)).all()
        return {row.id: staff_display_name(row) for row in rows}

    # ── Locking ──────────────────────────────────────────────────────────

    def lock_resources(self, room_id: int, staff_id: int) -> tuple[Optional[RoomInfo], Optional[StaffInfo]]:
        """
        Take row locks on the room, then the staff member.

        PostgreSQL: SELECT ... FOR UPDATE, always room first so two attempts
        can never wait on each other in a cycle. SQLite renders no FOR UPDATE;
        there the BEGIN IMMEDIATE that atomic() issues at transaction start holds the lock.
        """
        room = (
            self.db.query(DBRooms)
            .filter(DBRooms.id == room_id)
            .with_for_update()
            .first()
        )
        staff = (
            self.db.query(DBStaff)
            .filter(DBStaff.id == staff_id)
            .with_for_update()
            .first()
        )
        return (
            _to_room(room) if room else None,
            _to_staff(staff) if staff else None,
        )

    # ── Bookings ─────────────────────────────────────────────────────────

    def find_conflicting(
        self,
        kind: ResourceKind,
        resource_id: int,
        booking_date: str,
        start: str,
        end: str,
        exclude_id: Optional[int] = None,
    ) -> list[BookingInterval]:
        """Active bookings of one room or staff member overlapping [start, end)."""
        column = DBBookings.room_id if kind is ResourceKind.ROOM else DBBookings.staff_id
        query = self.db.query(DBBookings).filter(
            column == resource_id,
            DBBookings.booking_date == booking_date,
            DBBookings.status.notin_(_INACTIVE),
        )
        if exclude_id is not None:
            query = query.filter(DBBookings.id != exclude_id)

        bookings = [_to_interval(row) for row in query.order_by(DBBookings.start_time, DBBookings.id)]
        return [b for b in bookings if overlaps(b.start_time, b.end_time, start, end)]

    def active_bookings_on(self, booking_date: str) -> list[BookingInterval]:
        rows = (
            self.db.query(DBBookings)
            .filter(
                DBBookings.booking_date == booking_date,
                DBBookings.status.notin_(_INACTIVE),
            )
            .order_by(DBBookings.start_time, DBBookings.id)
            .all()
        )
        return [_to_interval(row) for row in rows]

    def count_active_bookings_between(self, start_date: date, end_date: date) -> dict[str, int]:
        rows = (
            self.db.query(DBBookings.booking_date, func.count(DBBookings.id))
            .filter(
                DBBookings.booking_date >= start_date.isoformat(),
                DBBookings.booking_date <= end_date.isoformat(),
                DBBookings.status.notin_(_INACTIVE),
            )
            .group_by(DBBookings.booking_date)
            .all()
        )
        return {booking_date: count for booking_date, count in rows}

    def insert_booking(self, **fields) -> DBBookings:
        booking = DBBookings(**fields)
        self.db.add(booking)
        self.db.flush()
        return booking

    def append_history(
        self,
        booking_id: int,
        old_status: Optional[str],
        new_status: str,
        changed_by: Optional[int] = None,
        reason: Optional[str] = None,
        details: Optional[dict] = None,
    ) -> DBBookingHistory:
        entry = DBBookingHistory(
            booking_id=booking_id,
            old_status=old_status,
            new_status=new_status,
            changed_by=changed_by,
            change_reason=reason,
            change_details=json.dumps(details or {}, default=str),
        )
        self.db.add(entry)
        self.db.flush()
        return entry

    # ── Schedules ────────────────────────────────────────────────────────

    def get_schedule_entries(self, staff_id: int, booking_date: str) -> list[ScheduleEntry]:
        rows = (
            self.db.query(DBSchedules)
            .filter(
                DBSchedules.staff_id == staff_id,
                DBSchedules.date == booking_date,
            )
            .order_by(DBSchedules.start_time)
            .all()
        )
        return [_to_schedule(row) for row in rows]

    def available_entries_between(self, start_date: date, end_date: date) -> list[ScheduleEntry]:
        """Available schedule entries of active staff within [start_date, end_date]."""
        rows = (
            self.db.query(DBSchedules)
            .join(DBStaff, DBStaff.id == DBSchedules.staff_id)
            .filter(
                DBSchedules.date >= start_date.isoformat(),
                DBSchedules.date <= end_date.isoformat(),
                DBSchedules.status == ScheduleStatus.AVAILABLE.value,
                DBStaff.is_active == 1,
            )
            .order_by(DBSchedules.date, DBSchedules.staff_id, DBSchedules.start_time)
            .all()
        )
        return [_to_schedule(row) for row in rows]

    def day_snapshot(self, booking_date: str) -> DaySnapshot:
        schedules = (
            self.db.query(DBSchedules)
            .filter(DBSchedules.date == booking_date)
            .order_by(DBSchedules.staff_id, DBSchedules.start_time)
            .all()
        )
        return DaySnapshot(
            date=booking_date,
            staff=tuple(self.list_active_staff()),
            rooms=tuple(self.list_active_rooms()),
            schedules=tuple(_to_schedule(row) for row in schedules),
            bookings=tuple(self.active_bookings_on(booking_date)),
        )


# ── Row → snapshot converters ────────────────────────────────────────────


def _to_service(row: DBServices, allowed_room_ids: frozenset[int]) -> ServiceInfo:
    return ServiceInfo(
        id=row.id,
        name=row.name,
        duration_minutes=row.duration_minutes,
        category=row.category,
        requires_specialized_drainage=bool(row.requires_specialized_drainage),
        min_room_capacity=row.min_room_capacity or 1,
        allowed_room_ids=allowed_room_ids,
        is_active=bool(row.is_active),
        price=row.price or 0.0,
    )


def _to_room(row: DBRooms) -> RoomInfo:
    return RoomInfo(
        id=row.id,
        name=row.name,
        bed_capacity=row.bed_capacity,
        has_specialized_drainage=bool(row.has_specialized_drainage),
        is_active=bool(row.is_active),
    )


def _to_staff(row: DBStaff) -> StaffInfo:
    try:
        specializations = json.loads(row.specializations) if row.specializations else []
    except json.JSONDecodeError:
        logger.warning(f"Staff {row.id} has malformed specializations: {row.specializations!r}")
        specializations = []
    return StaffInfo(
        id=row.id,
        name=staff_display_name(row),
        specializations=frozenset(specializations),
        is_active=bool(row.is_active),
    )


def staff_display_name(row: DBStaff) -> str:
    """Display name, else the linked user's full name, else "Staff {id}"."""
    if row.display_name:
        return row.display_name
    if row.user is not None:
        return " ".join(part for part in (row.user.first_name, row.user.last_name) if part)
    return f"Staff {row.id}"


def _to_schedule(row: DBSchedules) -> ScheduleEntry:
    return ScheduleEntry(
        staff_id=row.staff_id,
        date=row.date,
        start_time=row.start_time[:5],
        end_time=row.end_time[:5],
        status=row.status,
    )


def _to_interval(row: DBBookings) -> BookingInterval:
    return BookingInterval(
        id=row.id,
        room_id=row.room_id,
        staff_id=row.staff_id,
        customer_id=row.customer_id,
        date=row.booking_date,
        start_time=row.start_time[:5],
        end_time=row.end_time[:5],
        status=row.status,
    )
