"""
Staff queue API endpoints - views and status transitions
"""

from datetime import datetime
from fastapi import APIRouter, Depends, Query
from sqlmodel.ext.asyncio.session import AsyncSession
from typing import List, Optional
import structlog
import uuid

from queuedesk.core.database import get_session
from queuedesk.core.dependencies import get_capability, get_notification_service, http_error
from queuedesk.core.errors import QueueError
from queuedesk.core.permissions import Permission, StaffCapability, authorize
from queuedesk.schemas.queue import Dashboard, QueueEntryResponse, TransitionRequest
from queuedesk.services.notifications import NotificationService
from queuedesk.services.queue_engine import QueueLifecycleEngine

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.get("/branches/{branch_id}/queue", response_model=List[QueueEntryResponse])
async def list_queue(
    branch_id: uuid.UUID,
    view: str = Query("active", pattern="^(active|archive)$"),
    limit: Optional[int] = Query(None, ge=1, le=1000),
    capability: StaffCapability = Depends(get_capability),
    session: AsyncSession = Depends(get_session)
):
    """Today's board (view=active) or history (view=archive)"""
    try:
        authorize(capability, Permission.QUEUE_VIEW, branch_id)
        engine = QueueLifecycleEngine(session)
        now = datetime.utcnow()
        if view == "archive":
            entries = await engine.archive_view(branch_id, now, limit=limit)
        else:
            entries = await engine.active_view(branch_id, now)
    except QueueError as e:
        raise http_error(e)

    return [QueueEntryResponse.from_entry(entry, now) for entry in entries]


@router.get("/branches/{branch_id}/dashboard", response_model=Dashboard)
async def get_dashboard(
    branch_id: uuid.UUID,
    capability: StaffCapability = Depends(get_capability),
    session: AsyncSession = Depends(get_session)
):
    """Staff dashboard snapshot, the same payload the WebSocket pushes"""
    try:
        authorize(capability, Permission.QUEUE_VIEW, branch_id)
        return await QueueLifecycleEngine(session).dashboard(branch_id)
    except QueueError as e:
        raise http_error(e)


@router.post("/queue-entries/{entry_id}/transition", response_model=QueueEntryResponse)
async def transition_entry(
    entry_id: uuid.UUID,
    transition: TransitionRequest,
    capability: StaffCapability = Depends(get_capability),
    session: AsyncSession = Depends(get_session),
    notifications: NotificationService = Depends(get_notification_service),
):
    """Call, seat, cancel or complete a queue entry"""
    try:
        engine = QueueLifecycleEngine(session, notifications)
        entry = await engine.transition(
            entry_id,
            transition.status,
            capability,
            room_number=transition.room_number,
        )
    except QueueError as e:
        raise http_error(e)

    return QueueEntryResponse.from_entry(entry)
