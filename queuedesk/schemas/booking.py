"""
Schemas for dated bookings
"""

from datetime import date, datetime, time
from typing import Optional
import uuid

from pydantic import BaseModel, Field

from queuedesk.models.booking import Booking, BookingStatus


class BookingCreate(BaseModel):
    name: str = Field(..., max_length=255)
    country_code: str = Field(default="966", max_length=4)
    local_number: str = Field(..., max_length=20)
    guests: int
    booking_date: date
    booking_time: time


class BookingStatusUpdate(BaseModel):
    status: BookingStatus


class BookingResponse(BaseModel):
    id: uuid.UUID
    branch_id: uuid.UUID
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    guests: int
    booking_date: date
    booking_time: time
    status: BookingStatus
    created_at: datetime
    updated_at: Optional[datetime] = None

    @classmethod
    def from_booking(cls, booking: Booking) -> "BookingResponse":
        customer = booking.customer
        return cls(
            id=booking.id,
            branch_id=booking.branch_id,
            customer_name=customer.name if customer else None,
            customer_phone=customer.phone if customer else None,
            guests=booking.guests,
            booking_date=booking.booking_date,
            booking_time=booking.booking_time,
            status=booking.status,
            created_at=booking.created_at,
            updated_at=booking.updated_at,
        )
