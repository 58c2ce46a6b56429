"""
Branch API endpoints - staff settings and super-admin management
"""

from fastapi import APIRouter, Depends, status
from sqlmodel.ext.asyncio.session import AsyncSession
from typing import List
import structlog
import uuid

from queuedesk.core.database import get_session
from queuedesk.core.dependencies import get_capability, http_error, require_super_admin
from queuedesk.core.errors import QueueError
from queuedesk.core.permissions import StaffCapability
from queuedesk.schemas.branch import (
    BranchCreate,
    BranchPasswordUpdate,
    BranchResponse,
    BranchSettingsUpdate,
    BranchUpdate,
)
from queuedesk.services.branch_settings import BranchSettingsService

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.patch("/{branch_id}/settings", response_model=BranchResponse)
async def update_branch_settings(
    branch_id: uuid.UUID,
    settings_data: BranchSettingsUpdate,
    capability: StaffCapability = Depends(get_capability),
    session: AsyncSession = Depends(get_session)
):
    """Change rooms_count and expected_wait_time; returns the stored values"""
    try:
        branch = await BranchSettingsService(session).update_settings(
            branch_id,
            capability,
            rooms_count=settings_data.rooms_count,
            expected_wait_time=settings_data.expected_wait_time,
        )
    except QueueError as e:
        raise http_error(e)

    return BranchResponse.from_branch(branch)


@router.post("/{branch_id}/rooms/increment", response_model=BranchResponse)
async def add_room(
    branch_id: uuid.UUID,
    capability: StaffCapability = Depends(get_capability),
    session: AsyncSession = Depends(get_session)
):
    """Add one room to the branch"""
    try:
        branch = await BranchSettingsService(session).increment_rooms(branch_id, capability)
    except QueueError as e:
        raise http_error(e)

    return BranchResponse.from_branch(branch)


@router.post("/{branch_id}/rooms/decrement", response_model=BranchResponse)
async def remove_room(
    branch_id: uuid.UUID,
    capability: StaffCapability = Depends(get_capability),
    session: AsyncSession = Depends(get_session)
):
    """Remove the highest room; rejected while it is occupied or it is the last one"""
    try:
        branch = await BranchSettingsService(session).decrement_rooms(branch_id, capability)
    except QueueError as e:
        raise http_error(e)

    return BranchResponse.from_branch(branch)


@router.post("", response_model=BranchResponse, status_code=status.HTTP_201_CREATED)
async def create_branch(
    branch_data: BranchCreate,
    capability: StaffCapability = Depends(require_super_admin),
    session: AsyncSession = Depends(get_session)
):
    """Create a branch (super-admin only)"""
    try:
        branch = await BranchSettingsService(session).create_branch(
            capability,
            name=branch_data.name,
            password=branch_data.password,
            address=branch_data.address,
            phone=branch_data.phone,
            rooms_count=branch_data.rooms_count,
            expected_wait_time=branch_data.expected_wait_time,
        )
    except QueueError as e:
        raise http_error(e)

    return BranchResponse.from_branch(branch)


@router.get("", response_model=List[BranchResponse])
async def list_branches(
    capability: StaffCapability = Depends(require_super_admin),
    session: AsyncSession = Depends(get_session)
):
    """All branches, active or not (super-admin only)"""
    try:
        branches = await BranchSettingsService(session).list_branches()
    except QueueError as e:
        raise http_error(e)

    return [BranchResponse.from_branch(branch) for branch in branches]


@router.patch("/{branch_id}", response_model=BranchResponse)
async def update_branch(
    branch_id: uuid.UUID,
    branch_data: BranchUpdate,
    capability: StaffCapability = Depends(require_super_admin),
    session: AsyncSession = Depends(get_session)
):
    """Update branch profile or (de)activate it (super-admin only)"""
    try:
        branch = await BranchSettingsService(session).update_profile(
            branch_id,
            capability,
            name=branch_data.name,
            address=branch_data.address,
            phone=branch_data.phone,
            is_active=branch_data.is_active,
        )
    except QueueError as e:
        raise http_error(e)

    return BranchResponse.from_branch(branch)


@router.put("/{branch_id}/password", status_code=status.HTTP_204_NO_CONTENT)
async def set_branch_password(
    branch_id: uuid.UUID,
    password_data: BranchPasswordUpdate,
    capability: StaffCapability = Depends(require_super_admin),
    session: AsyncSession = Depends(get_session)
):
    """Replace the branch staff password (super-admin only)"""
    try:
        await BranchSettingsService(session).set_password(branch_id, capability, password_data.password)
    except QueueError as e:
        raise http_error(e)
