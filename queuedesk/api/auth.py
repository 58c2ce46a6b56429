"""
Auth API endpoints - staff and super-admin login
"""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel.ext.asyncio.session import AsyncSession
import secrets
import structlog

from queuedesk.core.auth import create_access_token
from queuedesk.core.config import get_settings
from queuedesk.core.database import get_session
from queuedesk.core.dependencies import http_error
from queuedesk.core.errors import QueueError
from queuedesk.core.permissions import Role
from queuedesk.schemas.token import AdminLogin, BranchLogin, TokenResponse
from queuedesk.services.branch_settings import BranchSettingsService

logger = structlog.get_logger(__name__)
router = APIRouter()
settings = get_settings()


@router.post("/branch-login", response_model=TokenResponse)
async def branch_login(
    login_data: BranchLogin,
    session: AsyncSession = Depends(get_session)
):
    """Log in as staff of one branch"""
    try:
        branch = await BranchSettingsService(session).authenticate(login_data.branch_id, login_data.password)
    except QueueError as e:
        raise http_error(e)

    if branch is None:
        logger.warning(f"Failed branch login for {login_data.branch_id}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid branch or password"
        )

    logger.info(f"Branch staff logged in: {branch.id}")
    return TokenResponse(
        access_token=create_access_token(Role.BRANCH_STAFF, branch_id=branch.id),
        role=Role.BRANCH_STAFF.value,
        branch_id=branch.id,
        branch_name=branch.name,
    )


@router.post("/admin-login", response_model=TokenResponse)
async def admin_login(login_data: AdminLogin):
    """Log in as the super-admin"""
    if not secrets.compare_digest(login_data.password, settings.ADMIN_PASSWORD):
        logger.warning("Failed super-admin login")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid password"
        )

    logger.info("Super-admin logged in")
    return TokenResponse(
        access_token=create_access_token(Role.SUPER_ADMIN, subject="super_admin"),
        role=Role.SUPER_ADMIN.value,
    )
