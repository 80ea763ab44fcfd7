import sqlite3
from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError

from spa_booking.models.generated import StaffSchedules
from spa_booking.services.availability.aggregator import AvailabilityAggregator
from spa_booking.services.availability.cache import (
    MemoryAvailabilityCache,
    NullAvailabilityCache,
    day_key,
    slots_key,
)
from spa_booking.services.availability.config import BookingConfig
from spa_booking.services.availability.invalidator import invalidate_dates
from spa_booking.services.exceptions import ResourceLockedError, ValidationError

from conftest import insert_booking


@pytest.fixture
def window(db, catalog):
    """Three days after the catalog day, Selma alone on 09:00-11:00 each day."""
    days = [catalog.day + timedelta(days=i) for i in range(1, 4)]
    for d in days:
        db.add(StaffSchedules(staff_id=catalog.selma, date=d.isoformat(), start_time="09:00", end_time="11:00"))
    db.commit()
    insert_booking(db, catalog, booking_date=days[1].isoformat(), start_time="09:00", end_time="10:00")
    return days


def test_three_day_summary(db, window):
    summary = AvailabilityAggregator(db, config=BookingConfig()).summarize_range(window[0], 3)

    assert [d["date"] for d in summary] == [d.isoformat() for d in window]
    assert [d["total_slots"] for d in summary] == [4, 4, 4]
    assert [d["booked_slots"] for d in summary] == [0, 1, 0]
    assert summary[1]["available_slots"] == 3
    assert all(d["has_availability"] for d in summary)


def test_legacy_fixed_capacity(db, window):
    config = BookingConfig(slots_per_schedule_entry=12)
    summary = AvailabilityAggregator(db, config=config).summarize_range(window[0], 3)
    assert summary[1]["total_slots"] == 12
    assert summary[1]["available_slots"] == 11


def test_inactive_staff_and_unscheduled_days(db, catalog):
    summary = AvailabilityAggregator(db, config=BookingConfig()).summarize_range(catalog.day, 2)

    # Selma and Robyn 09:00-17:00 = 16 slots each; the inactive member is ignored
    assert summary[0]["total_slots"] == 32
    assert summary[1] == {
        "date": (catalog.day + timedelta(days=1)).isoformat(),
        "total_slots": 0,
        "booked_slots": 0,
        "available_slots": 0,
        "has_availability": False,
    }


def test_cancelled_bookings_not_counted(db, catalog):
    insert_booking(db, catalog, status="cancelled")
    insert_booking(db, catalog, status="no_show", start_time="12:00", end_time="13:00")
    summary = AvailabilityAggregator(db, config=BookingConfig()).summarize_range(catalog.day, 1)
    assert summary[0]["booked_slots"] == 0


@pytest.mark.parametrize("days", [0, 61])
def test_range_bounds(db, catalog, days):
    with pytest.raises(ValidationError):
        AvailabilityAggregator(db, config=BookingConfig()).summarize_range(catalog.day, days)


def test_summary_served_from_cache_until_invalidated(db, catalog):
    cache = MemoryAvailabilityCache()
    aggregator = AvailabilityAggregator(db, cache, BookingConfig())

    first = aggregator.summarize_range(catalog.day, 1)
    assert cache.get(day_key(catalog.day.isoformat())) == first[0]

    # Direct write skips invalidation: the cached summary stays stale
    insert_booking(db, catalog)
    assert aggregator.summarize_range(catalog.day, 1) == first

    invalidate_dates(cache, [catalog.day])
    assert aggregator.summarize_range(catalog.day, 1)[0]["booked_slots"] == 1


def test_slots_idempotent_and_cached(db, catalog):
    cache = MemoryAvailabilityCache()
    aggregator = AvailabilityAggregator(db, cache, BookingConfig())

    first = aggregator.slots_for_date(catalog.day, service_id=catalog.massage)
    second = aggregator.slots_for_date(catalog.day, service_id=catalog.massage)

    assert first == second
    assert first[0] == {
        "time": "09:00",
        "available_staff_count": 2,
        "available_room_count": 3,
        "is_available": True,
        "suggested_staff_id": catalog.selma,
        "suggested_room_id": catalog.room_single,
    }
    assert cache.get(slots_key(catalog.day.isoformat(), catalog.massage)) == first


def test_zero_ttl_disables_caching(db, catalog):
    cache = MemoryAvailabilityCache()
    config = BookingConfig(summary_cache_ttl_seconds=0, slot_cache_ttl_seconds=0)
    aggregator = AvailabilityAggregator(db, cache, config)

    aggregator.summarize_range(catalog.day, 1)
    aggregator.slots_for_date(catalog.day)
    assert len(cache) == 0


class BrokenCache(NullAvailabilityCache):
    def get_many(self, keys):
        raise ConnectionError("cache down")

    def set(self, key, value, ttl_seconds):
        raise ConnectionError("cache down")


def test_cache_failures_fall_back_to_live(db, catalog):
    aggregator = AvailabilityAggregator(db, BrokenCache(), BookingConfig())
    assert aggregator.summarize_range(catalog.day, 1)[0]["total_slots"] == 32
    assert aggregator.slots_for_date(catalog.day)[0]["is_available"]


def test_memory_cache_ttl_and_date_invalidation():
    now = [1000.0]
    cache = MemoryAvailabilityCache(clock=lambda: now[0])

    cache.set(day_key("2030-01-07"), {"n": 1}, 300)
    cache.set(slots_key("2030-01-07", 4, [2, 1]), [], 120)
    cache.set(day_key("2030-01-08"), {"n": 2}, 300)

    assert slots_key("2030-01-07", 4, [2, 1]) == slots_key("2030-01-07", 4, [1, 2])
    assert cache.delete_dates(["2030-01-07"]) == 2
    assert cache.get(day_key("2030-01-08")) == {"n": 2}

    now[0] += 301
    assert cache.get(day_key("2030-01-08")) is None


def test_invalidate_swallows_cache_errors():
    class Exploding(NullAvailabilityCache):
        def delete_dates(self, dates):
            raise ConnectionError("cache down")

    assert invalidate_dates(Exploding(), ["2030-01-07"]) == 0
    assert invalidate_dates(None, ["2030-01-07"]) == 0


def test_memory_cache_sweeps_expired_entries_on_write():
    now = [1000.0]
    cache = MemoryAvailabilityCache(clock=lambda: now[0], purge_interval_seconds=60)

    cache.set(day_key("2030-01-07"), {"n": 1}, 30)
    cache.set(day_key("2030-01-08"), {"n": 2}, 300)
    assert len(cache) == 2

    # Expired but never read again; the next write past the interval drops it
    now[0] += 61
    cache.set(day_key("2030-01-09"), {"n": 3}, 300)
    assert len(cache) == 2
    assert cache.get(day_key("2030-01-08")) == {"n": 2}


def test_memory_cache_sweeps_at_most_once_per_interval():
    now = [1000.0]
    cache = MemoryAvailabilityCache(clock=lambda: now[0], purge_interval_seconds=60)

    cache.set(day_key("2030-01-07"), {"n": 1}, 10)
    now[0] += 20
    cache.set(day_key("2030-01-08"), {"n": 2}, 300)
    assert len(cache) == 2

    now[0] += 45
    cache.set(day_key("2030-01-09"), {"n": 3}, 300)
    assert len(cache) == 2


def _locked(*args, **kwargs):
    raise OperationalError("SELECT 1", {}, sqlite3.OperationalError("database is locked"))


def test_lock_timeouts_on_reads_are_retryable(db, catalog, monkeypatch):
    aggregator = AvailabilityAggregator(db, MemoryAvailabilityCache(), BookingConfig())
    monkeypatch.setattr(aggregator.store, "available_entries_between", _locked)
    monkeypatch.setattr(aggregator.store, "day_snapshot", _locked)

    with pytest.raises(ResourceLockedError):
        aggregator.summarize_range(catalog.day, 3)
    with pytest.raises(ResourceLockedError):
        aggregator.slots_for_date(catalog.day, service_id=catalog.massage)


def test_other_database_errors_propagate(db, catalog, monkeypatch):
    aggregator = AvailabilityAggregator(db, config=BookingConfig())

    def broken(*args, **kwargs):
        raise OperationalError("SELECT 1", {}, sqlite3.OperationalError("no such table: rooms"))

    monkeypatch.setattr(aggregator.store, "available_entries_between", broken)
    with pytest.raises(OperationalError):
        aggregator.summarize_range(catalog.day, 1)
