"""
Public API endpoints - what a customer reaches through the branch link
"""

from fastapi import APIRouter, Depends, status
from sqlmodel.ext.asyncio.session import AsyncSession
import structlog
import uuid

from queuedesk.core.config import get_settings
from queuedesk.core.database import get_session
from queuedesk.core.dependencies import get_notification_service, get_verifier, http_error
from queuedesk.core.errors import NotFoundError, QueueError
from queuedesk.schemas.booking import BookingCreate, BookingResponse
from queuedesk.schemas.branch import PublicBranchResponse
from queuedesk.schemas.queue import (
    AdmitRequest,
    IntakeRequest,
    QueueEntryResponse,
    StatusBoard,
    VerificationSent,
)
from queuedesk.services.bookings import BookingService
from queuedesk.services.branch_settings import BranchSettingsService
from queuedesk.services.intake import IntakeValidator
from queuedesk.services.notifications import NotificationService
from queuedesk.services.phone import normalize_phone
from queuedesk.services.queue_engine import QueueLifecycleEngine
from queuedesk.services.verification import Verifier

logger = structlog.get_logger(__name__)
router = APIRouter()
settings = get_settings()


@router.get("/branches/{branch_id}", response_model=PublicBranchResponse)
async def get_public_branch(
    branch_id: uuid.UUID,
    session: AsyncSession = Depends(get_session)
):
    """Branch details shown before joining"""
    try:
        branch = await BranchSettingsService(session).get_branch(branch_id)
        if not branch.is_active:
            raise NotFoundError(f"Branch {branch_id} not found", branch_id=str(branch_id))
    except QueueError as e:
        raise http_error(e)

    return PublicBranchResponse(
        id=branch.id,
        name=branch.name,
        address=branch.address,
        expected_wait_time=branch.expected_wait_time,
    )


@router.post(
    "/branches/{branch_id}/queue/verification",
    response_model=VerificationSent,
    status_code=status.HTTP_202_ACCEPTED,
)
async def request_queue_verification(
    branch_id: uuid.UUID,
    request: IntakeRequest,
    session: AsyncSession = Depends(get_session),
    verifier: Verifier = Depends(get_verifier),
    notifications: NotificationService = Depends(get_notification_service),
):
    """First step of joining: validate the request and send a code"""
    try:
        phone = await IntakeValidator(session, verifier, notifications).request_verification(branch_id, request)
    except QueueError as e:
        raise http_error(e)

    return VerificationSent(phone=phone, expires_in_minutes=settings.OTP_TTL_MINUTES)


@router.post(
    "/branches/{branch_id}/queue",
    response_model=QueueEntryResponse,
    status_code=status.HTTP_201_CREATED,
)
async def join_queue(
    branch_id: uuid.UUID,
    request: AdmitRequest,
    session: AsyncSession = Depends(get_session),
    verifier: Verifier = Depends(get_verifier),
    notifications: NotificationService = Depends(get_notification_service),
):
    """Second step of joining: verify the code and create the entry"""
    try:
        entry = await IntakeValidator(session, verifier, notifications).validate_and_admit(
            branch_id, request, request.code
        )
    except QueueError as e:
        raise http_error(e)

    return QueueEntryResponse.from_entry(entry)


@router.get("/branches/{branch_id}/status", response_model=StatusBoard)
async def get_status_board(
    branch_id: uuid.UUID,
    session: AsyncSession = Depends(get_session)
):
    """Customer status screen; clients poll every refresh_seconds without a socket"""
    try:
        return await QueueLifecycleEngine(session).status_board(branch_id)
    except QueueError as e:
        raise http_error(e)


@router.post(
    "/branches/{branch_id}/bookings",
    response_model=BookingResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_booking(
    branch_id: uuid.UUID,
    booking_data: BookingCreate,
    session: AsyncSession = Depends(get_session)
):
    """Book a table for a later date"""
    try:
        phone = normalize_phone(booking_data.country_code, booking_data.local_number)
        booking = await BookingService(session).create_booking(
            branch_id=branch_id,
            name=booking_data.name,
            phone=phone,
            guests=booking_data.guests,
            booking_date=booking_data.booking_date,
            booking_time=booking_data.booking_time,
        )
    except QueueError as e:
        raise http_error(e)

    return BookingResponse.from_booking(booking)
