# backend/spa_booking/schemas/availability.py
"""
Pydantic schemas for availability API.
"""

from datetime import date
from typing import Optional

from pydantic import BaseModel, Field


class DaySummary(BaseModel):
    """Availability of a single day in a range."""
    date: date
    total_slots: int
    booked_slots: int
    available_slots: int
    has_availability: bool

    model_config = {"from_attributes": True}


class AvailabilitySummaryResponse(BaseModel):
    start_date: date
    days: list[DaySummary]

    # Metadata
    slot_step_minutes: int = Field(description="Grid step in minutes (15/30/60)")

    model_config = {"from_attributes": True}


class SlotInfo(BaseModel):
    """One start time on the grid."""
    time: str  # "HH:MM"
    available_staff_count: int
    available_room_count: int
    is_available: bool
    suggested_staff_id: Optional[int] = None
    suggested_room_id: Optional[int] = None

    model_config = {"from_attributes": True}


class SlotsDayResponse(BaseModel):
    date: date
    service_id: Optional[int] = None
    duration_minutes: int
    slots: list[SlotInfo]

    model_config = {"from_attributes": True}


class ConflictInfo(BaseModel):
    booking_id: int
    conflict_type: str  # room_conflict / staff_conflict / general_conflict
    resource_id: Optional[int] = None
    resource_name: Optional[str] = None
    existing_start_time: str
    existing_end_time: str
    customer_id: int

    model_config = {"from_attributes": True}


class ValidateRequest(BaseModel):
    room_id: int
    staff_id: int
    date: date
    start_time: str
    end_time: Optional[str] = None  # Defaults to start_time + duration_minutes
    duration_minutes: int = Field(default=60, gt=0)
    exclude_booking_id: Optional[int] = None


class ValidateResponse(BaseModel):
    is_valid: bool
    room_available: bool
    staff_available: bool
    conflicts: list[ConflictInfo]


class ConflictsResponse(BaseModel):
    date: date
    start_time: str
    end_time: str
    conflicts: list[ConflictInfo]


class InvalidateRequest(BaseModel):
    dates: list[date] = Field(default_factory=list)  # Empty = clear everything


class InvalidateResponse(BaseModel):
    deleted_keys: int
