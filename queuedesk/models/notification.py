"""
Notification log - one row per out-of-band message attempt
"""

from sqlmodel import Field, SQLModel
from datetime import datetime
from typing import Optional
import uuid


class NotificationLog(SQLModel, table=True):
    """Record of a message sent (or attempted) to a customer phone"""

    __tablename__ = "notifications"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    phone: str = Field(index=True, max_length=20)
    message: str = Field(max_length=1000)
    status: str = Field(default="sent", max_length=20, description="sent or failed")
    message_id: Optional[str] = Field(default=None, max_length=100, description="Gateway message id")
    error: Optional[str] = Field(default=None, max_length=500)
    created_at: datetime = Field(default_factory=datetime.utcnow, index=True)
