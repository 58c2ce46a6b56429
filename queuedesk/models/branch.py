"""
Branch model - one restaurant location with its own rooms and queue
"""

from sqlmodel import Field, SQLModel, Relationship
from datetime import datetime
from typing import Optional, TYPE_CHECKING
import uuid

if TYPE_CHECKING:
    from queuedesk.models.queue_entry import QueueEntry
    from queuedesk.models.booking import Booking

MIN_ROOMS = 1
MIN_EXPECTED_WAIT = 5
MAX_EXPECTED_WAIT = 60
EXPECTED_WAIT_STEP = 5


class Branch(SQLModel, table=True):
    """Restaurant branch managed by the super-admin"""

    __tablename__ = "branches"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    name: str = Field(index=True, max_length=255)
    address: Optional[str] = Field(default=None, max_length=500)
    phone: Optional[str] = Field(default=None, max_length=50)

    # Capacity and pacing
    rooms_count: int = Field(default=10, description="Total bookable rooms (numbered 1..rooms_count)")
    expected_wait_time: int = Field(default=15, description="Baseline minutes between seatings")

    # Staff credential
    password_hash: Optional[str] = Field(default=None, description="Hashed branch staff password")

    # Timestamps
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = None
    is_active: bool = Field(default=True, index=True)

    # Relationships
    queue_entries: list["QueueEntry"] = Relationship(back_populates="branch")
    bookings: list["Booking"] = Relationship(back_populates="branch")

    def room_numbers(self) -> list[int]:
        """All room numbers of the branch in ascending order"""
        return list(range(1, self.rooms_count + 1))
