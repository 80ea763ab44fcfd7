from spa_booking.services.availability.compatibility import (
    incompatibility_reason,
    is_compatible,
    is_staff_qualified,
)
from spa_booking.services.availability.types import RoomInfo, ServiceInfo, StaffInfo

SINGLE = RoomInfo(id=1, name="Serenity Suite", bed_capacity=1)
DOUBLE = RoomInfo(id=2, name="Harmony Haven", bed_capacity=2)
DRAINAGE = RoomInfo(id=3, name="Renewal Retreat", bed_capacity=2, has_specialized_drainage=True)

MASSAGE = ServiceInfo(id=1, name="Massage", duration_minutes=60, category="massage")
BODY_SCRUB = ServiceInfo(
    id=2, name="Body Scrub", duration_minutes=30, category="body_treatment",
    requires_specialized_drainage=True,
)
COUPLES = ServiceInfo(id=3, name="Couples", duration_minutes=60, category="massage", min_room_capacity=2)


def test_drainage_service_rejects_room_without_drainage():
    assert not is_compatible(BODY_SCRUB, DOUBLE)
    assert "drainage" in incompatibility_reason(BODY_SCRUB, DOUBLE)


def test_drainage_service_accepts_drainage_room():
    assert is_compatible(BODY_SCRUB, DRAINAGE)
    assert incompatibility_reason(BODY_SCRUB, DRAINAGE) is None


def test_capacity_rule():
    assert not is_compatible(COUPLES, SINGLE)
    assert is_compatible(COUPLES, DOUBLE)


def test_inactive_room_fails_first():
    closed = RoomInfo(id=1, name="Serenity Suite", bed_capacity=1, is_active=False)
    assert "not active" in incompatibility_reason(COUPLES, closed)


def test_allow_list_restricts_rooms():
    restricted = ServiceInfo(
        id=4, name="Hot Stone", duration_minutes=60, category="massage",
        allowed_room_ids=frozenset({3}),
    )
    assert is_compatible(restricted, DRAINAGE)
    assert not is_compatible(restricted, DOUBLE)
    assert "allowed rooms" in incompatibility_reason(restricted, DOUBLE)


def test_empty_allow_list_allows_any_room():
    assert all(is_compatible(MASSAGE, room) for room in (SINGLE, DOUBLE, DRAINAGE))


def test_is_compatible_is_deterministic():
    results = {is_compatible(BODY_SCRUB, DOUBLE) for _ in range(5)}
    assert results == {False}


def test_staff_qualification():
    therapist = StaffInfo(id=1, name="Selma", specializations=frozenset({"massage"}))
    assert is_staff_qualified(MASSAGE, therapist)
    assert not is_staff_qualified(BODY_SCRUB, therapist)

    inactive = StaffInfo(id=2, name="Idle", specializations=frozenset({"massage"}), is_active=False)
    assert not is_staff_qualified(MASSAGE, inactive)
