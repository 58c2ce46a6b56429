"""
Pydantic schemas for authentication and tokens
"""

from pydantic import BaseModel, Field
from typing import Optional
import uuid


class BranchLogin(BaseModel):
    """Branch staff login schema"""
    branch_id: uuid.UUID
    password: str = Field(..., min_length=1, max_length=100)


class AdminLogin(BaseModel):
    """Super-admin login schema"""
    password: str = Field(..., min_length=1, max_length=100)


class TokenResponse(BaseModel):
    """Token response"""
    access_token: str
    token_type: str = "bearer"
    role: str
    branch_id: Optional[uuid.UUID] = None
    branch_name: Optional[str] = None
