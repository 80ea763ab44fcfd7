import json
from datetime import date, timedelta
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from spa_booking.database import create_db_engine, get_db
from spa_booking.main import create_app
from spa_booking.models.generated import (
    Base,
    Bookings,
    Rooms,
    ServiceRooms,
    Services,
    StaffProfiles,
    StaffSchedules,
    Users,
)
from spa_booking.services.availability.cache import MemoryAvailabilityCache

# A working day far enough ahead that "past date" checks never trip
DAY = date.today() + timedelta(days=7)


def seed_catalog(db, day: date = DAY) -> SimpleNamespace:
    """
    Rooms:    1 Serenity (1 bed), 2 Harmony (2 beds), 3 Renewal (2 beds, drainage)
    Services: massage 60, back treatment 30 (drainage, room 3 only),
              couples massage 60 (2 beds), facial 30, inactive massage
    Staff:    1 Selma (massage/facial/body_treatment), 2 Robyn (massage/facial),
              3 inactive; 1 and 2 scheduled 09:00-17:00 on `day`
    """
    customer = Users(email="ana@example.com", first_name="Ana", last_name="Reyes")
    other_customer = Users(email="ben@example.com", first_name="Ben")
    db.add_all([customer, other_customer])

    rooms = [
        Rooms(name="Serenity Suite", number=1, bed_capacity=1),
        Rooms(name="Harmony Haven", number=2, bed_capacity=2, has_shower=1),
        Rooms(name="Renewal Retreat", number=3, bed_capacity=2, has_shower=1, has_specialized_drainage=1),
    ]
    db.add_all(rooms)
    db.flush()

    massage = Services(name="Deep Tissue Body Massage", category="massage", duration_minutes=60, price=90.0)
    back = Services(
        name="Back Treatment", category="body_treatment", duration_minutes=30, price=99.0,
        requires_specialized_drainage=1,
    )
    couples = Services(
        name="Couples Balinese Massage", category="massage", duration_minutes=60, price=160.0,
        min_room_capacity=2,
    )
    facial = Services(name="Basic Facial", category="facial", duration_minutes=30, price=65.0)
    retired = Services(name="Old Massage", category="massage", duration_minutes=60, is_active=0)
    db.add_all([massage, back, couples, facial, retired])
    db.flush()
    db.add(ServiceRooms(room_id=rooms[2].id, service_id=back.id))

    staff = []
    for i, (first, specs, active) in enumerate([
        ("Selma", ["massage", "facial", "body_treatment"], 1),
        ("Robyn", ["massage", "facial"], 1),
        ("Idle", ["massage"], 0),
    ]):
        user = Users(email=f"{first.lower()}@spa.local", first_name=first, role="staff")
        db.add(user)
        db.flush()
        profile = StaffProfiles(
            user_id=user.id,
            employee_id=f"EMP00{i + 1}",
            specializations=json.dumps(specs),
            display_name=first,
            is_active=active,
        )
        db.add(profile)
        staff.append(profile)
    db.flush()

    for profile in staff:
        db.add(StaffSchedules(staff_id=profile.id, date=day.isoformat(), start_time="09:00", end_time="17:00"))

    db.commit()

    return SimpleNamespace(
        day=day,
        customer_id=customer.id,
        other_customer_id=other_customer.id,
        room_single=rooms[0].id,
        room_double=rooms[1].id,
        room_drainage=rooms[2].id,
        massage=massage.id,
        back=back.id,
        couples=couples.id,
        facial=facial.id,
        retired=retired.id,
        selma=staff[0].id,
        robyn=staff[1].id,
        idle=staff[2].id,
    )


def insert_booking(db, catalog, **overrides) -> Bookings:
    """Write a booking row directly, bypassing the transaction manager."""
    fields = dict(
        customer_id=catalog.customer_id,
        service_id=catalog.massage,
        staff_id=catalog.selma,
        room_id=catalog.room_double,
        booking_date=catalog.day.isoformat(),
        start_time="10:00",
        end_time="11:00",
        status="confirmed",
        total_price=90.0,
    )
    fields.update(overrides)
    booking = Bookings(**fields)
    db.add(booking)
    db.commit()
    return booking


@pytest.fixture
def engine():
    engine = create_db_engine("sqlite://", lock_timeout_seconds=1, poolclass=StaticPool)
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def catalog(db):
    return seed_catalog(db)


@pytest.fixture
def cache():
    return MemoryAvailabilityCache()


@pytest.fixture
def client(db, catalog, cache):
    app = create_app(cache=cache)

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
