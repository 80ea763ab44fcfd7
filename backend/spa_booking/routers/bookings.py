# backend/spa_booking/routers/bookings.py
# DELETE = soft cancel, rows are never removed

from datetime import date

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..dependencies import get_cache
from ..schemas.bookings import (
    BookingCancel,
    BookingCreate,
    BookingHistoryRead,
    BookingRead,
    BookingUpdate,
)
from ..services import booking_service
from ..services.availability.cache import AvailabilityCache

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.get("/", response_model=list[BookingRead])
def list_bookings(
    customer_id: int | None = None,
    staff_id: int | None = None,
    booking_date: date | None = None,
    status: str | None = None,
    db: Session = Depends(get_db),
):
    return booking_service.list_bookings(db, customer_id, staff_id, booking_date, status)


@router.get("/{id}", response_model=BookingRead)
def get_booking(id: int, db: Session = Depends(get_db)):
    return booking_service.get_booking(db, id)


@router.get("/{id}/history", response_model=list[BookingHistoryRead])
def get_booking_history(id: int, db: Session = Depends(get_db)):
    return booking_service.get_booking_history(db, id)


@router.post("/", response_model=BookingRead, status_code=status.HTTP_201_CREATED)
def create_booking(
    data: BookingCreate,
    db: Session = Depends(get_db),
    cache: AvailabilityCache = Depends(get_cache),
):
    return booking_service.create_booking(
        db,
        customer_id=data.customer_id,
        service_id=data.service_id,
        staff_id=data.staff_id,
        room_id=data.room_id,
        booking_date=data.booking_date,
        start_time=data.start_time,
        status=data.status,
        special_requests=data.special_requests,
        internal_notes=data.internal_notes,
        changed_by=data.changed_by,
        cache=cache,
    )


@router.patch("/{id}", response_model=BookingRead)
def update_booking(
    id: int,
    data: BookingUpdate,
    db: Session = Depends(get_db),
    cache: AvailabilityCache = Depends(get_cache),
):
    return booking_service.update_booking(
        db,
        id,
        **data.model_dump(exclude_unset=True),
        cache=cache,
    )


@router.delete("/{id}", response_model=BookingRead)
def cancel_booking(
    id: int,
    data: BookingCancel | None = None,
    db: Session = Depends(get_db),
    cache: AvailabilityCache = Depends(get_cache),
):
    data = data or BookingCancel()
    return booking_service.cancel_booking(
        db,
        id,
        reason=data.reason,
        changed_by=data.changed_by,
        cache=cache,
    )
