"""
Schemas for branch administration and settings
"""

from datetime import datetime
from typing import Optional
import uuid

from pydantic import BaseModel, Field

from queuedesk.models.branch import Branch


class BranchCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    address: Optional[str] = Field(default=None, max_length=500)
    phone: Optional[str] = Field(default=None, max_length=50)
    password: str = Field(..., min_length=4, max_length=100)
    rooms_count: int = 10
    expected_wait_time: int = 15


class BranchUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    address: Optional[str] = Field(default=None, max_length=500)
    phone: Optional[str] = Field(default=None, max_length=50)
    is_active: Optional[bool] = None


class BranchPasswordUpdate(BaseModel):
    password: str = Field(..., min_length=4, max_length=100)


class BranchSettingsUpdate(BaseModel):
    """Staff-editable branch settings; omitted fields are left as they are"""
    rooms_count: Optional[int] = None
    expected_wait_time: Optional[int] = None


class BranchResponse(BaseModel):
    id: uuid.UUID
    name: str
    address: Optional[str] = None
    phone: Optional[str] = None
    rooms_count: int
    expected_wait_time: int
    is_active: bool
    created_at: datetime
    updated_at: Optional[datetime] = None

    @classmethod
    def from_branch(cls, branch: Branch) -> "BranchResponse":
        return cls(
            id=branch.id,
            name=branch.name,
            address=branch.address,
            phone=branch.phone,
            rooms_count=branch.rooms_count,
            expected_wait_time=branch.expected_wait_time,
            is_active=branch.is_active,
            created_at=branch.created_at,
            updated_at=branch.updated_at,
        )


class PublicBranchResponse(BaseModel):
    """What a customer sees before joining"""
    id: uuid.UUID
    name: str
    address: Optional[str] = None
    expected_wait_time: int
