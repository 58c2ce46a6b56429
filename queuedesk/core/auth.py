"""
JWT authentication and password hashing utilities
"""

from datetime import datetime, timedelta
from jose import JWTError, jwt
from passlib.context import CryptContext
from typing import Dict, Optional
import uuid

from queuedesk.core.config import get_settings
from queuedesk.core.permissions import Role, StaffCapability

settings = get_settings()
pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    if not password_hash:
        return False
    return pwd_context.verify(password, password_hash)


def create_access_token(
    role: Role,
    branch_id: Optional[uuid.UUID] = None,
    subject: Optional[str] = None,
    expires_delta: Optional[timedelta] = None
) -> str:
    """Create JWT access token carrying the staff capability"""
    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode = {
        "sub": subject or (str(branch_id) if branch_id else role.value),
        "role": role.value,
        "branch_id": str(branch_id) if branch_id else None,
        "exp": expire,
        "iat": datetime.utcnow(),
    }

    encoded_jwt = jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)
    return encoded_jwt


def decode_access_token(token: str) -> Optional[Dict]:
    """Decode and validate JWT token"""
    try:
        payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
        return payload
    except JWTError:
        return None


def capability_from_token(token: str) -> Optional[StaffCapability]:
    """Verify token and return the capability it grants"""
    payload = decode_access_token(token)
    if payload is None:
        return None

    try:
        role = Role(payload.get("role"))
        branch_id = uuid.UUID(payload["branch_id"]) if payload.get("branch_id") else None
    except (ValueError, TypeError):
        return None

    if role == Role.BRANCH_STAFF and branch_id is None:
        return None

    return StaffCapability(role=role, branch_id=branch_id, subject=payload.get("sub"))
