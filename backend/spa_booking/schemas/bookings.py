# backend/spa_booking/schemas/bookings.py

from datetime import date
from typing import Optional

from pydantic import BaseModel


class BookingCreate(BaseModel):
    customer_id: int
    service_id: int
    staff_id: int
    room_id: int

    booking_date: date
    start_time: str  # "HH:MM", "HH:MM:SS" or "9:30 AM"

    status: Optional[str] = None  # pending / confirmed; defaults from settings
    special_requests: Optional[str] = None
    internal_notes: Optional[str] = None
    changed_by: Optional[int] = None

    model_config = {"from_attributes": True}


class BookingUpdate(BaseModel):
    status: Optional[str] = None

    booking_date: Optional[date] = None
    start_time: Optional[str] = None
    room_id: Optional[int] = None
    staff_id: Optional[int] = None
    service_id: Optional[int] = None

    special_requests: Optional[str] = None
    internal_notes: Optional[str] = None

    reason: Optional[str] = None
    changed_by: Optional[int] = None


class BookingCancel(BaseModel):
    reason: Optional[str] = None
    changed_by: Optional[int] = None


class BookingRead(BaseModel):
    id: int

    customer_id: int
    service_id: int
    staff_id: int
    room_id: int

    booking_date: date
    start_time: str
    end_time: str

    status: str
    total_price: float
    special_requests: Optional[str] = None
    internal_notes: Optional[str] = None
    cancellation_reason: Optional[str] = None
    cancelled_at: Optional[str] = None

    created_at: str
    updated_at: str

    model_config = {"from_attributes": True}


class BookingHistoryRead(BaseModel):
    id: int
    booking_id: int
    old_status: Optional[str] = None
    new_status: str
    changed_by: Optional[int] = None
    change_reason: Optional[str] = None
    change_details: str
    created_at: str

    model_config = {"from_attributes": True}
