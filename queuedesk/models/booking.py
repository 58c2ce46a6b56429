"""
Booking model - a dated reservation, separate from the live queue
"""

from sqlmodel import Field, SQLModel, Relationship
from sqlalchemy import Column, Enum as SQLEnum
from datetime import date, datetime, time
from typing import Optional, TYPE_CHECKING
from enum import Enum
import uuid

if TYPE_CHECKING:
    from queuedesk.models.branch import Branch
    from queuedesk.models.customer import Customer


class BookingStatus(str, Enum):
    """Status of a booking"""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


BOOKING_TRANSITIONS = {
    BookingStatus.PENDING: {BookingStatus.CONFIRMED, BookingStatus.CANCELLED},
    BookingStatus.CONFIRMED: {BookingStatus.COMPLETED, BookingStatus.CANCELLED},
    BookingStatus.CANCELLED: set(),
    BookingStatus.COMPLETED: set(),
}


class Booking(SQLModel, table=True):
    """Reservation for a given date and time"""

    __tablename__ = "bookings"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    customer_id: uuid.UUID = Field(foreign_key="customers.id", index=True)
    branch_id: uuid.UUID = Field(foreign_key="branches.id", index=True)

    guests: int = Field(default=1)
    booking_date: date = Field(index=True)
    booking_time: time
    status: BookingStatus = Field(
        default=BookingStatus.PENDING,
        sa_column=Column(
            SQLEnum(
                BookingStatus,
                values_callable=lambda enum: [member.value for member in enum],
                native_enum=False,
                length=20,
            ),
            nullable=False,
            index=True,
        ),
    )

    # Timestamps
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = None

    # Relationships
    customer: Optional["Customer"] = Relationship(
        back_populates="bookings",
        sa_relationship_kwargs={"lazy": "selectin"},
    )
    branch: Optional["Branch"] = Relationship(
        back_populates="bookings",
        sa_relationship_kwargs={"lazy": "selectin"},
    )

    def can_transition_to(self, target: BookingStatus) -> bool:
        return target in BOOKING_TRANSITIONS[BookingStatus(self.status)]
