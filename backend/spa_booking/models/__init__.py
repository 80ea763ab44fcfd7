from .generated import (
    Base,
    BookingHistory,
    Bookings,
    Rooms,
    ServiceRooms,
    Services,
    StaffProfiles,
    StaffSchedules,
    Users,
)

__all__ = [
    "Base",
    "BookingHistory",
    "Bookings",
    "Rooms",
    "ServiceRooms",
    "Services",
    "StaffProfiles",
    "StaffSchedules",
    "Users",
]
