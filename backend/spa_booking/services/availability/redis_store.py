# backend/spa_booking/services/availability/redis_store.py
"""
Redis storage for availability read models.

Values are JSON strings stored with SETEX so Redis expires them on its own.
Reads for a date window go through one MGET; invalidation scans the
date's keys and deletes them in one DEL.
"""

import json
from typing import Any, Iterable

from redis import Redis

from .cache import KEY_PREFIX, AvailabilityCache


class RedisAvailabilityCache(AvailabilityCache):
    """Redis-backed AvailabilityCache shared by every worker process."""

    def __init__(self, redis: Redis):
        self.redis = redis

    # ── Read ─────────────────────────────────────────────────────────────

    def get(self, key: str) -> Any | None:
        raw = self.redis.get(key)
        return _decode(raw)

    def get_many(self, keys: list[str]) -> dict[str, Any | None]:
        """Batch get via MGET. Missing keys map to None."""
        if not keys:
            return {}
        values = self.redis.mget(keys)
        return {key: _decode(raw) for key, raw in zip(keys, values)}

    # ── Write ────────────────────────────────────────────────────────────

    def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        if ttl_seconds <= 0:
            return
        self.redis.setex(key, ttl_seconds, json.dumps(value))

    # ── Delete ───────────────────────────────────────────────────────────

    def delete_dates(self, dates: Iterable[str]) -> int:
        keys = []
        for date_str in set(dates):
            for kind in ("day", "slots"):
                pattern = f"{KEY_PREFIX}:{kind}:{date_str}*"
                keys.extend(self.redis.scan_iter(match=pattern))

        if not keys:
            return 0
        return self.redis.delete(*keys)

    def clear(self) -> int:
        keys = list(self.redis.scan_iter(match=f"{KEY_PREFIX}:*"))
        if not keys:
            return 0
        return self.redis.delete(*keys)


def _decode(raw) -> Any | None:
    if raw is None:
        return None
    if isinstance(raw, bytes):
        raw = raw.decode()
    return json.loads(raw)
