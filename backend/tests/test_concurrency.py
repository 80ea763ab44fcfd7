import threading

import pytest
from sqlalchemy.orm import sessionmaker

from spa_booking.database import atomic, create_db_engine
from spa_booking.models.generated import Base, Bookings
from spa_booking.services import booking_service
from spa_booking.services.availability.aggregator import AvailabilityAggregator
from spa_booking.services.availability.config import BookingConfig
from spa_booking.services.exceptions import (
    BookingError,
    ResourceLockedError,
    RoomUnavailableError,
    StaffUnavailableError,
)

from conftest import seed_catalog


@pytest.fixture
def file_engine(tmp_path):
    engine = create_db_engine(f"sqlite:///{tmp_path / 'spa.db'}", lock_timeout_seconds=10)
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


def test_identical_concurrent_requests_book_once(file_engine):
    Session = sessionmaker(bind=file_engine, autocommit=False, autoflush=False)

    with Session() as db:
        catalog = seed_catalog(db)

    barrier = threading.Barrier(2)
    outcomes = []
    lock = threading.Lock()

    def attempt():
        with Session() as db:
            barrier.wait()
            try:
                booking = booking_service.create_booking(
                    db,
                    customer_id=catalog.customer_id,
                    service_id=catalog.massage,
                    staff_id=catalog.selma,
                    room_id=catalog.room_double,
                    booking_date=catalog.day,
                    start_time="10:00",
                )
                result = ("ok", booking.id)
            except BookingError as exc:
                result = ("error", exc)
        with lock:
            outcomes.append(result)

    threads = [threading.Thread(target=attempt) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)

    assert len(outcomes) == 2
    successes = [o for o in outcomes if o[0] == "ok"]
    failures = [o[1] for o in outcomes if o[0] == "error"]

    assert len(successes) == 1
    assert len(failures) == 1
    assert isinstance(failures[0], (RoomUnavailableError, StaffUnavailableError))

    with Session() as db:
        assert db.query(Bookings).count() == 1


def test_different_rooms_and_staff_both_succeed(file_engine):
    Session = sessionmaker(bind=file_engine, autocommit=False, autoflush=False)

    with Session() as db:
        catalog = seed_catalog(db)

    barrier = threading.Barrier(2)
    errors = []

    def attempt(staff_id, room_id):
        with Session() as db:
            barrier.wait()
            try:
                booking_service.create_booking(
                    db, catalog.customer_id, catalog.massage, staff_id, room_id, catalog.day, "10:00",
                )
            except BookingError as exc:
                errors.append(exc)

    threads = [
        threading.Thread(target=attempt, args=(catalog.selma, catalog.room_single)),
        threading.Thread(target=attempt, args=(catalog.robyn, catalog.room_double)),
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)

    assert errors == []
    with Session() as db:
        assert db.query(Bookings).count() == 2


@pytest.fixture
def quick_engine(tmp_path):
    """File database whose writers give up on the lock after 0.2s."""
    engine = create_db_engine(f"sqlite:///{tmp_path / 'quick.db'}", lock_timeout_seconds=0.2)
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


def test_booking_readable_after_commit_with_reader_open(quick_engine):
    Session = sessionmaker(bind=quick_engine, autocommit=False, autoflush=False)

    with Session() as db:
        catalog = seed_catalog(db)

    with Session() as reader, Session() as writer:
        # Leaves a read transaction open on another connection
        assert reader.query(Bookings).count() == 0

        booking = booking_service.create_booking(
            writer, catalog.customer_id, catalog.massage, catalog.selma,
            catalog.room_double, catalog.day, "10:00",
        )
        assert booking.status == "pending"
        assert booking.created_at is not None
        assert booking.end_time == "11:00"

        # The reader keeps its snapshot until its transaction ends
        assert reader.query(Bookings).count() == 0
        reader.commit()
        assert reader.query(Bookings).count() == 1


def test_reads_do_not_block_booking(quick_engine):
    Session = sessionmaker(bind=quick_engine, autocommit=False, autoflush=False)

    with Session() as db:
        catalog = seed_catalog(db)

    with Session() as reader, Session() as writer:
        summary = AvailabilityAggregator(reader, config=BookingConfig()).summarize_range(catalog.day, 3)
        assert summary[0]["total_slots"] == 32
        booking_service.validate_booking(
            reader, catalog.room_double, catalog.selma, catalog.day, "10:00", "11:00",
        )

        booking = booking_service.create_booking(
            writer, catalog.customer_id, catalog.massage, catalog.selma,
            catalog.room_double, catalog.day, "10:00",
        )
        booking_service.update_booking(writer, booking.id, status="confirmed")

        assert booking_service.get_booking(writer, booking.id).status == "confirmed"


def test_second_writer_times_out_as_retryable(quick_engine):
    Session = sessionmaker(bind=quick_engine, autocommit=False, autoflush=False)

    with Session() as db:
        catalog = seed_catalog(db)

    with Session() as holder, Session() as other:
        with atomic(holder):
            insert = Bookings(
                customer_id=catalog.other_customer_id,
                service_id=catalog.facial,
                staff_id=catalog.robyn,
                room_id=catalog.room_single,
                booking_date=catalog.day.isoformat(),
                start_time="15:00",
                end_time="15:30",
                status="confirmed",
                total_price=65.0,
            )
            holder.add(insert)
            holder.flush()

            with pytest.raises(ResourceLockedError):
                booking_service.create_booking(
                    other, catalog.customer_id, catalog.massage, catalog.selma,
                    catalog.room_double, catalog.day, "10:00",
                )

            # Readers still get the last committed state
            assert other.query(Bookings).count() == 0
            summary = AvailabilityAggregator(other, config=BookingConfig()).summarize_range(catalog.day, 1)
            assert summary[0]["booked_slots"] == 0
            other.commit()

        booking = booking_service.create_booking(
            other, catalog.customer_id, catalog.massage, catalog.selma,
            catalog.room_double, catalog.day, "10:00",
        )
        assert booking.id is not None
        assert other.query(Bookings).count() == 2
