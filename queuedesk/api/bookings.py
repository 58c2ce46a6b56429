"""
Staff booking API endpoints
"""

from fastapi import APIRouter, Depends
from sqlmodel.ext.asyncio.session import AsyncSession
from typing import List, Optional
import structlog
import uuid

from queuedesk.core.database import get_session
from queuedesk.core.dependencies import get_capability, http_error
from queuedesk.core.errors import QueueError
from queuedesk.core.permissions import StaffCapability
from queuedesk.models.booking import BookingStatus
from queuedesk.schemas.booking import BookingResponse, BookingStatusUpdate
from queuedesk.services.bookings import BookingService

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.get("/branches/{branch_id}/bookings", response_model=List[BookingResponse])
async def list_bookings(
    branch_id: uuid.UUID,
    status: Optional[BookingStatus] = None,
    capability: StaffCapability = Depends(get_capability),
    session: AsyncSession = Depends(get_session)
):
    """Bookings of a branch ordered by date and time"""
    try:
        bookings = await BookingService(session).list_bookings(branch_id, capability, status=status)
    except QueueError as e:
        raise http_error(e)

    return [BookingResponse.from_booking(booking) for booking in bookings]


@router.patch("/bookings/{booking_id}/status", response_model=BookingResponse)
async def update_booking_status(
    booking_id: uuid.UUID,
    update: BookingStatusUpdate,
    capability: StaffCapability = Depends(get_capability),
    session: AsyncSession = Depends(get_session)
):
    """Confirm, cancel or complete a booking"""
    try:
        booking = await BookingService(session).update_status(booking_id, update.status, capability)
    except QueueError as e:
        raise http_error(e)

    return BookingResponse.from_booking(booking)
