"""
Authentication dependencies for FastAPI
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlmodel.ext.asyncio.session import AsyncSession
import structlog

from queuedesk.core.auth import capability_from_token
from queuedesk.core.database import get_session
from queuedesk.core.errors import QueueError
from queuedesk.core.permissions import Role, StaffCapability
from queuedesk.services.notifications import NotificationService, get_dispatcher
from queuedesk.services.verification import StoredCodeVerifier, Verifier

logger = structlog.get_logger(__name__)
security = HTTPBearer()


async def get_capability(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> StaffCapability:
    """Get the staff capability from the JWT token"""
    capability = capability_from_token(credentials.credentials)
    if capability is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    logger.debug(f"Staff authenticated: {capability.role.value} {capability.branch_id}")
    return capability


async def require_super_admin(
    capability: StaffCapability = Depends(get_capability)
) -> StaffCapability:
    """Only the super-admin may manage branches"""
    if capability.role != Role.SUPER_ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Super-admin access required",
        )
    return capability


def http_error(exc: QueueError) -> HTTPException:
    """Translate a domain error into an HTTPException with its context"""
    return HTTPException(status_code=exc.status_code, detail=exc.to_dict())


def get_notification_service() -> NotificationService:
    """Notification service backed by the configured dispatcher"""
    return NotificationService(get_dispatcher())


async def get_verifier(
    session: AsyncSession = Depends(get_session),
    notifications: NotificationService = Depends(get_notification_service),
) -> Verifier:
    return StoredCodeVerifier(session, notifications)
