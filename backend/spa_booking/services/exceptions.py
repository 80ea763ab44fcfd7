"""
Booking engine error taxonomy.

Every rejected booking attempt raises one of these, never a bare
exception, so callers can render a specific message. Only
ResourceLockedError is retryable.
"""


class BookingError(Exception):
    """Base class for all booking engine errors."""

    code = "booking_error"
    status_code = 400
    retryable = False

    def __init__(self, message: str, **details):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(BookingError):
    """Malformed input: bad date/time format, bad range, illegal transition."""

    code = "validation_error"
    status_code = 400


class NotFoundError(BookingError):
    """Referenced service, room, staff member, customer or booking is missing."""

    code = "not_found"
    status_code = 404


class IncompatibleResourceError(BookingError):
    """Room (or staff member) cannot host the service."""

    code = "incompatible_resource"
    status_code = 422


class RoomUnavailableError(BookingError):
    code = "room_unavailable"
    status_code = 409

    def __init__(self, message: str, conflicts: list | None = None, **details):
        super().__init__(message, **details)
        self.conflicts = conflicts or []


class StaffUnavailableError(BookingError):
    code = "staff_unavailable"
    status_code = 409

    def __init__(self, message: str, conflicts: list | None = None, **details):
        super().__init__(message, **details)
        self.conflicts = conflicts or []


class StaffNotScheduledError(BookingError):
    """No available schedule entry covers the requested interval."""

    code = "staff_not_scheduled"
    status_code = 409


class ResourceLockedError(BookingError):
    """Timed out waiting on a store lock. Safe to retry with backoff."""

    code = "resource_locked"
    status_code = 503
    retryable = True
