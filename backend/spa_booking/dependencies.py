# backend/spa_booking/dependencies.py

from fastapi import Request

from .services.availability.cache import AvailabilityCache, NullAvailabilityCache


def get_cache(request: Request) -> AvailabilityCache:
    """Availability cache selected at startup (see main.create_app)."""
    return getattr(request.app.state, "availability_cache", None) or NullAvailabilityCache()
