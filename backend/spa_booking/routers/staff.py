# backend/spa_booking/routers/staff.py
"""
Staff-facing schedule. Customer identity is replaced by a stable
pseudonym here; the booking API still returns customer_id.
"""

from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..database import get_db
from ..schemas.staff_schedule import StaffScheduleEntry, StaffScheduleResponse
from ..services.availability.store import staff_display_name
from ..services.booking_service import list_staff_schedule
from ..utils.hashing import customer_reference

router = APIRouter(prefix="/staff", tags=["staff"])


@router.get("/schedule", response_model=StaffScheduleResponse)
def get_staff_schedule(
    staff_id: int | None = None,
    target_date: date | None = Query(None, alias="date"),
    start_date: date | None = None,
    end_date: date | None = None,
    status: str | None = None,
    limit: int | None = Query(None, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
):
    bookings = list_staff_schedule(
        db,
        staff_id=staff_id,
        booking_date=target_date,
        start_date=start_date,
        end_date=end_date,
        status=status,
        limit=limit,
        offset=offset,
    )

    rows = [
        StaffScheduleEntry(
            booking_id=b.id,
            booking_date=b.booking_date,
            start_time=b.start_time,
            end_time=b.end_time,
            status=b.status,
            special_requests=b.special_requests,
            total_price=b.total_price,
            customer_reference=customer_reference(b.customer_id),
            service_name=b.service.name,
            service_category=b.service.category,
            duration_minutes=b.service.duration_minutes,
            room_name=b.room.name,
            room_number=b.room.number,
            bed_capacity=b.room.bed_capacity,
            staff_id=b.staff_id,
            staff_employee_id=b.staff.employee_id,
            staff_name=staff_display_name(b.staff),
        )
        for b in bookings
    ]
    return StaffScheduleResponse(total=len(rows), limit=limit, offset=offset, data=rows)
