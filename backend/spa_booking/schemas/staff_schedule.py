# backend/spa_booking/schemas/staff_schedule.py
"""
Staff-facing schedule rows. Customers appear only as a stable pseudonym.
"""

from datetime import date
from typing import Optional

from pydantic import BaseModel


class StaffScheduleEntry(BaseModel):
    booking_id: int
    booking_date: date
    start_time: str
    end_time: str
    status: str
    special_requests: Optional[str] = None
    total_price: float

    customer_reference: str  # "Customer #NNNN"

    service_name: str
    service_category: str
    duration_minutes: int

    room_name: str
    room_number: int
    bed_capacity: int

    staff_id: int
    staff_employee_id: str
    staff_name: str


class StaffScheduleResponse(BaseModel):
    total: int
    limit: Optional[int] = None
    offset: int = 0
    data: list[StaffScheduleEntry]
