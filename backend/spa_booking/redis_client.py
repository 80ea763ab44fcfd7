# backend/spa_booking/redis_client.py

from typing import Optional

from redis import Redis

from .config import settings


def create_redis_client(url: Optional[str] = None) -> Optional[Redis]:
    """Redis connection for the availability cache, or None when not configured."""
    url = url or settings.redis_url
    if not url:
        return None
    return Redis.from_url(url, decode_responses=True, socket_timeout=1.0)
