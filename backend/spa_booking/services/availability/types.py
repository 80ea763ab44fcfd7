# backend/spa_booking/services/availability/types.py
"""
Immutable snapshots the availability engine computes over.

The store converts ORM rows into these, so every rule below works on
plain data and can be exercised without a database.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class ResourceKind(str, Enum):
    ROOM = "room"
    STAFF = "staff"


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


class ScheduleStatus(str, Enum):
    AVAILABLE = "available"
    BOOKED = "booked"
    BREAK = "break"
    UNAVAILABLE = "unavailable"


# Statuses that release the room and staff member
INACTIVE_STATUSES = frozenset({BookingStatus.CANCELLED.value, BookingStatus.NO_SHOW.value})

ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    "pending": frozenset({"confirmed", "in_progress", "cancelled", "no_show"}),
    "confirmed": frozenset({"in_progress", "cancelled", "no_show"}),
    "in_progress": frozenset({"completed"}),
    "completed": frozenset(),
    "cancelled": frozenset(),
    "no_show": frozenset(),
}


def is_active_status(status: str) -> bool:
    return status not in INACTIVE_STATUSES


@dataclass(frozen=True)
class ServiceInfo:
    id: int
    name: str
    duration_minutes: int
    category: str
    requires_specialized_drainage: bool = False
    min_room_capacity: int = 1
    allowed_room_ids: frozenset[int] = field(default_factory=frozenset)
    is_active: bool = True
    price: float = 0.0


@dataclass(frozen=True)
class RoomInfo:
    id: int
    name: str
    bed_capacity: int
    has_specialized_drainage: bool = False
    is_active: bool = True


@dataclass(frozen=True)
class StaffInfo:
    id: int
    name: str
    specializations: frozenset[str] = field(default_factory=frozenset)
    is_active: bool = True


@dataclass(frozen=True)
class ScheduleEntry:
    staff_id: int
    date: str
    start_time: str
    end_time: str
    status: str = ScheduleStatus.AVAILABLE.value

    def covers(self, start: str, end: str) -> bool:
        """Available entry spanning the whole [start, end) interval."""
        return (
            self.status == ScheduleStatus.AVAILABLE.value
            and self.start_time <= start
            and self.end_time >= end
        )


@dataclass(frozen=True)
class BookingInterval:
    id: int
    room_id: int
    staff_id: int
    customer_id: int
    date: str
    start_time: str
    end_time: str
    status: str

    def resource_id(self, kind: ResourceKind) -> int:
        return self.room_id if kind is ResourceKind.ROOM else self.staff_id


@dataclass(frozen=True)
class DaySnapshot:
    """Everything slot generation needs for one date, read in one pass."""
    date: str
    staff: tuple[StaffInfo, ...]
    rooms: tuple[RoomInfo, ...]
    schedules: tuple[ScheduleEntry, ...]
    bookings: tuple[BookingInterval, ...]


@dataclass(frozen=True)
class BookingConflict:
    booking_id: int
    conflict_type: str  # room_conflict / staff_conflict / general_conflict
    resource_id: Optional[int]
    resource_name: Optional[str]
    existing_start_time: str
    existing_end_time: str
    customer_id: int


@dataclass(frozen=True)
class SlotAvailability:
    time: str
    available_staff_count: int
    available_room_count: int
    is_available: bool
    suggested_staff_id: Optional[int] = None
    suggested_room_id: Optional[int] = None
