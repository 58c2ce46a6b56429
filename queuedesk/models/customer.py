"""
Customer model - identity keyed by phone number
"""

from sqlmodel import Field, SQLModel, Relationship
from datetime import datetime
from typing import Optional, TYPE_CHECKING
import uuid

if TYPE_CHECKING:
    from queuedesk.models.queue_entry import QueueEntry
    from queuedesk.models.booking import Booking


class Customer(SQLModel, table=True):
    """Customer identity, reused across visits through the same phone"""

    __tablename__ = "customers"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    name: str = Field(max_length=255)
    phone: str = Field(unique=True, index=True, max_length=20, description="E.164 phone number")

    # Timestamps
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = None

    # Relationships
    queue_entries: list["QueueEntry"] = Relationship(back_populates="customer")
    bookings: list["Booking"] = Relationship(back_populates="customer")
