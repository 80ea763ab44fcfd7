import fakeredis
import pytest

from spa_booking.services.availability.aggregator import AvailabilityAggregator
from spa_booking.services.availability.cache import day_key, slots_key
from spa_booking.services.availability.config import BookingConfig
from spa_booking.services.availability.invalidator import invalidate_dates
from spa_booking.services.availability.redis_store import RedisAvailabilityCache

from conftest import insert_booking


@pytest.fixture(params=[True, False], ids=["str", "bytes"])
def redis(request):
    return fakeredis.FakeRedis(decode_responses=request.param)


@pytest.fixture
def redis_cache(redis):
    return RedisAvailabilityCache(redis)


def test_set_and_get_many(redis_cache, redis):
    summary = {"date": "2030-01-07", "total_slots": 32, "has_availability": True}
    redis_cache.set(day_key("2030-01-07"), summary, 300)
    redis_cache.set(slots_key("2030-01-07", 4), [{"time": "09:00", "is_available": False}], 120)

    assert redis_cache.get(day_key("2030-01-07")) == summary
    assert redis_cache.get_many([day_key("2030-01-07"), day_key("2030-01-08")]) == {
        day_key("2030-01-07"): summary,
        day_key("2030-01-08"): None,
    }
    assert redis_cache.get(slots_key("2030-01-07", 4)) == [{"time": "09:00", "is_available": False}]
    assert 0 < redis.ttl(day_key("2030-01-07")) <= 300
    assert redis_cache.get_many([]) == {}


def test_zero_ttl_is_not_stored(redis_cache, redis):
    redis_cache.set(day_key("2030-01-07"), {"n": 1}, 0)
    assert redis.exists(day_key("2030-01-07")) == 0


def test_delete_dates_leaves_other_dates(redis_cache, redis):
    redis_cache.set(day_key("2030-01-07"), {"n": 1}, 300)
    redis_cache.set(slots_key("2030-01-07"), [], 120)
    redis_cache.set(slots_key("2030-01-07", 4, [2, 1], [3]), [], 120)
    redis_cache.set(day_key("2030-01-08"), {"n": 2}, 300)
    redis_cache.set(slots_key("2030-01-08", 4), [], 120)
    redis.set("unrelated:2030-01-07", "keep")

    assert redis_cache.delete_dates(["2030-01-07", "2030-01-07"]) == 3

    assert redis_cache.get(day_key("2030-01-07")) is None
    assert redis_cache.get(slots_key("2030-01-07", 4, [1, 2], [3])) is None
    assert redis_cache.get(day_key("2030-01-08")) == {"n": 2}
    assert redis_cache.get(slots_key("2030-01-08", 4)) == []
    assert redis.exists("unrelated:2030-01-07") == 1

    assert redis_cache.delete_dates(["2030-01-09"]) == 0


def test_clear_only_touches_availability_keys(redis_cache, redis):
    redis_cache.set(day_key("2030-01-07"), {"n": 1}, 300)
    redis_cache.set(slots_key("2030-01-08"), [], 120)
    redis.set("sessions:abc", "keep")

    assert redis_cache.clear() == 2
    assert redis_cache.clear() == 0
    assert redis.exists("sessions:abc") == 1


def test_aggregator_over_redis(db, catalog, redis_cache):
    aggregator = AvailabilityAggregator(db, redis_cache, BookingConfig())

    first = aggregator.summarize_range(catalog.day, 2)
    assert redis_cache.get(day_key(catalog.day.isoformat())) == first[0]

    insert_booking(db, catalog)
    assert aggregator.summarize_range(catalog.day, 2) == first

    assert invalidate_dates(redis_cache, [catalog.day]) == 1
    refreshed = aggregator.summarize_range(catalog.day, 2)
    assert refreshed[0]["booked_slots"] == 1
    assert refreshed[1] == first[1]

    slots = aggregator.slots_for_date(catalog.day, service_id=catalog.massage)
    assert redis_cache.get(slots_key(catalog.day.isoformat(), catalog.massage)) == slots
