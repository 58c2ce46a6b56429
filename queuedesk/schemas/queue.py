"""
Schemas for queue intake, staff views and status boards
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
import uuid

from pydantic import BaseModel, Field

from queuedesk.models.queue_entry import QueueEntry, QueueEntryStatus


class IntakeRequest(BaseModel):
    """Customer's request to join a branch queue"""
    name: str = Field(..., max_length=255)
    country_code: str = Field(default="966", max_length=4)
    local_number: str = Field(..., max_length=20)
    guests: int


class AdmitRequest(IntakeRequest):
    """Intake request carrying the verification code the customer received"""
    code: str = Field(..., min_length=1, max_length=10)


class VerificationSent(BaseModel):
    phone: str
    expires_in_minutes: int


class TransitionRequest(BaseModel):
    """Staff request to move an entry to another status"""
    status: str
    room_number: Optional[int] = None


class QueueEntryResponse(BaseModel):
    """Queue entry as shown to staff"""
    id: uuid.UUID
    branch_id: uuid.UUID
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    guests: int
    wait_time: int
    status: QueueEntryStatus
    room_number: Optional[int] = None
    elapsed_minutes: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_entry(cls, entry: QueueEntry, now: Optional[datetime] = None) -> "QueueEntryResponse":
        customer = entry.customer
        return cls(
            id=entry.id,
            branch_id=entry.branch_id,
            customer_name=customer.name if customer else None,
            customer_phone=customer.phone if customer else None,
            guests=entry.guests,
            wait_time=entry.wait_time,
            status=entry.status,
            room_number=entry.room_number,
            elapsed_minutes=entry.elapsed_minutes(now),
            created_at=entry.created_at,
            updated_at=entry.updated_at,
        )


class StatusBoardEntry(BaseModel):
    """Public status line; the phone is never exposed"""
    id: uuid.UUID
    customer_name: Optional[str] = None
    guests: int
    status: QueueEntryStatus
    room_number: Optional[int] = None
    position: Optional[int] = None
    wait_time: int
    created_at: datetime


class StatusBoard(BaseModel):
    branch_id: uuid.UUID
    branch_name: str
    entries: List[StatusBoardEntry]
    refresh_seconds: int


class RoomSlot(BaseModel):
    """One room of a branch and who is in it"""
    room_number: int
    occupied: bool
    entry_id: Optional[uuid.UUID] = None
    customer_name: Optional[str] = None
    guests: Optional[int] = None
    seated_at: Optional[datetime] = None


class RoomBoard(BaseModel):
    branch_id: uuid.UUID
    rooms_count: int
    rooms: List[RoomSlot]
    available_rooms: List[int]


class Dashboard(BaseModel):
    """Staff dashboard snapshot"""
    branch_id: uuid.UUID
    active: List[QueueEntryResponse]
    rooms: RoomBoard
    refresh_seconds: int


def dump(model: BaseModel) -> Dict[str, Any]:
    """JSON-ready dict for WebSocket pushes"""
    return model.model_dump(mode="json")
