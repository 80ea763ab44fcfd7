# backend/spa_booking/main.py

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError

from .config import settings
from .database import is_lock_error
from .redis_client import create_redis_client
from .routers import availability, bookings, staff
from .services.availability.cache import AvailabilityCache, MemoryAvailabilityCache
from .services.availability.redis_store import RedisAvailabilityCache
from .services.exceptions import BookingError, ResourceLockedError

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def build_cache() -> AvailabilityCache:
    """Redis when REDIS_URL is set, otherwise a per-process memory cache."""
    redis = create_redis_client()
    if redis is not None:
        logger.info("Availability cache: redis")
        return RedisAvailabilityCache(redis)
    logger.info("Availability cache: memory")
    return MemoryAvailabilityCache()


async def booking_error_handler(request: Request, exc: BookingError):
    body = {"error": exc.code, "detail": exc.message}
    conflicts = getattr(exc, "conflicts", None)
    if conflicts:
        body["conflicts"] = conflicts

    headers = {"Retry-After": "1"} if exc.retryable else None
    if exc.status_code >= 500:
        logger.warning(f"{request.method} {request.url.path}: {exc.code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=body, headers=headers)


async def lock_timeout_handler(request: Request, exc: OperationalError):
    """Lock waits that escape the service layer become retryable 503s."""
    if not is_lock_error(exc):
        raise exc
    locked = ResourceLockedError("The booking store is busy, retry shortly")
    return await booking_error_handler(request, locked)


def create_app(cache: Optional[AvailabilityCache] = None) -> FastAPI:
    app = FastAPI(title="Spa Booking API")
    app.state.availability_cache = cache if cache is not None else build_cache()

    app.add_exception_handler(BookingError, booking_error_handler)
    app.add_exception_handler(OperationalError, lock_timeout_handler)

    app.include_router(availability.router)
    app.include_router(bookings.router)
    app.include_router(staff.router)

    @app.get("/health")
    def health():
        cache = app.state.availability_cache
        status = {"status": "ok", "cache": type(cache).__name__}
        if isinstance(cache, RedisAvailabilityCache):
            try:
                status["redis"] = cache.redis.ping()
            except Exception:
                status["redis"] = False
        return status

    return app


app = create_app()
