"""
One-time verification codes for queue intake
"""

from sqlmodel import Field, SQLModel
from datetime import datetime, timedelta
from typing import Optional
import uuid


class OtpVerification(SQLModel, table=True):
    """Short numeric code sent to a phone before it may join a queue"""

    __tablename__ = "otp_verifications"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    phone: str = Field(index=True, max_length=20)
    code: str = Field(max_length=10)
    verified: bool = Field(default=False, index=True)
    attempts: int = Field(default=0)
    expires_at: datetime = Field(
        default_factory=lambda: datetime.utcnow() + timedelta(minutes=5),
        index=True,
    )
    created_at: datetime = Field(default_factory=datetime.utcnow)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or datetime.utcnow()) > self.expires_at

    def is_usable(self, max_attempts: int, now: Optional[datetime] = None) -> bool:
        return not self.verified and not self.is_expired(now) and self.attempts < max_attempts
