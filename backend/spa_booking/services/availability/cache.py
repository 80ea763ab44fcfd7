# backend/spa_booking/services/availability/cache.py
"""
Injectable cache for availability read models.

Key format:
  availability:day:{date}                              per-day summary
  availability:slots:{date}:{service}:{staff}:{room}   per-date slot detail

Every key carries its date as the third segment, so a booking change on
a date invalidates exactly that date's entries. The cache is an
optimization only: the booking transaction never reads it.
"""

import logging
import threading
import time
from typing import Any, Callable, Iterable, Optional

logger = logging.getLogger(__name__)

KEY_PREFIX = "availability"


def day_key(date_str: str) -> str:
    return f"{KEY_PREFIX}:day:{date_str}"


def slots_key(
    date_str: str,
    service_id: Optional[int] = None,
    staff_ids: Optional[Iterable[int]] = None,
    room_ids: Optional[Iterable[int]] = None,
) -> str:
    def ids(values):
        return ",".join(str(v) for v in sorted(set(values))) if values is not None else "*"

    service = str(service_id) if service_id is not None else "*"
    return f"{KEY_PREFIX}:slots:{date_str}:{service}:{ids(staff_ids)}:{ids(room_ids)}"


def key_date(key: str) -> Optional[str]:
    parts = key.split(":")
    return parts[2] if len(parts) > 2 else None


class AvailabilityCache:
    """Interface: JSON-serializable values with a per-entry TTL."""

    def get(self, key: str) -> Any | None:
        raise NotImplementedError

    def get_many(self, keys: list[str]) -> dict[str, Any | None]:
        return {key: self.get(key) for key in keys}

    def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        raise NotImplementedError

    def delete_dates(self, dates: Iterable[str]) -> int:
        """Drop every entry for the given ISO dates. Returns deleted count."""
        raise NotImplementedError

    def clear(self) -> int:
        raise NotImplementedError


class NullAvailabilityCache(AvailabilityCache):
    """Caching disabled: every read is a miss."""

    def get(self, key: str) -> Any | None:
        return None

    def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        return None

    def delete_dates(self, dates: Iterable[str]) -> int:
        return 0

    def clear(self) -> int:
        return 0


class MemoryAvailabilityCache(AvailabilityCache):
    """
    Per-process cache for single-worker deployments and tests.

    Expired entries are dropped when read, and swept from every write at
    most once per purge interval, so keys nobody asks for again still go.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        purge_interval_seconds: float = 60,
    ):
        self._clock = clock
        self._purge_interval = purge_interval_seconds
        self._next_purge = clock() + purge_interval_seconds
        self._entries: dict[str, tuple[float, Any]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        if ttl_seconds <= 0:
            return
        with self._lock:
            now = self._clock()
            if now >= self._next_purge:
                self._purge_expired(now)
            self._entries[key] = (now + ttl_seconds, value)

    def _purge_expired(self, now: float) -> None:
        expired = [k for k, (expires_at, _) in self._entries.items() if now >= expires_at]
        for key in expired:
            del self._entries[key]
        self._next_purge = now + self._purge_interval
        if expired:
            logger.debug(f"Purged {len(expired)} expired availability entries")

    def delete_dates(self, dates: Iterable[str]) -> int:
        targets = set(dates)
        with self._lock:
            doomed = [k for k in self._entries if key_date(k) in targets]
            for key in doomed:
                del self._entries[key]
        return len(doomed)

    def clear(self) -> int:
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        return count

    def __len__(self) -> int:
        return len(self._entries)
