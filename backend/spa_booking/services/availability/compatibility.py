# backend/spa_booking/services/availability/compatibility.py
"""
Service ↔ room eligibility rules.

Rules run in order and stop at the first failure:
  1. room is active
  2. room.bed_capacity >= service.min_room_capacity
  3. drainage-requiring service needs a room with drainage
  4. non-empty allow-list must contain the room

Pure functions over snapshots: the caller fetches fresh rows and must
treat the answer as a point-in-time check.
"""

from typing import Optional

from .types import RoomInfo, ServiceInfo, StaffInfo


def incompatibility_reason(service: ServiceInfo, room: RoomInfo) -> Optional[str]:
    """Return why room cannot host service, or None when it can."""
    if not room.is_active:
        return f"Room {room.id} is not active"

    if room.bed_capacity < service.min_room_capacity:
        return (
            f"Room {room.id} has {room.bed_capacity} bed(s), "
            f"service {service.id} needs {service.min_room_capacity}"
        )

    if service.requires_specialized_drainage and not room.has_specialized_drainage:
        return f"Service {service.id} requires a room with specialized drainage"

    if service.allowed_room_ids and room.id not in service.allowed_room_ids:
        return f"Room {room.id} is not in the allowed rooms for service {service.id}"

    return None


def is_compatible(service: ServiceInfo, room: RoomInfo) -> bool:
    return incompatibility_reason(service, room) is None


def is_staff_qualified(service: ServiceInfo, staff: StaffInfo) -> bool:
    """Active staff member specialized in the service category."""
    return staff.is_active and service.category in staff.specializations
