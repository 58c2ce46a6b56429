"""
Room API endpoints - occupancy and the room management board
"""

from fastapi import APIRouter, Depends
from sqlmodel.ext.asyncio.session import AsyncSession
import structlog
import uuid

from queuedesk.core.database import get_session
from queuedesk.core.dependencies import get_capability, http_error
from queuedesk.core.errors import QueueError
from queuedesk.core.permissions import Permission, StaffCapability, authorize
from queuedesk.schemas.queue import RoomBoard
from queuedesk.services.rooms import RoomAllocator

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.get("/branches/{branch_id}/rooms", response_model=RoomBoard)
async def get_rooms(
    branch_id: uuid.UUID,
    capability: StaffCapability = Depends(get_capability),
    session: AsyncSession = Depends(get_session)
):
    """Every room with its occupant; available_rooms lists the free ones"""
    try:
        authorize(capability, Permission.ROOMS_VIEW, branch_id)
        return await RoomAllocator(session).room_board(branch_id)
    except QueueError as e:
        raise http_error(e)
