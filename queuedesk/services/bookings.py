"""
Dated bookings, kept apart from the live queue
"""

from datetime import date, datetime, time
from typing import List, Optional, Union
import uuid

from sqlalchemy.orm import selectinload
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
import structlog

from queuedesk.core.config import get_settings
from queuedesk.core.errors import IllegalTransitionError, NotFoundError, ValidationError
from queuedesk.core.events import BookingChanged, EventBus, event_bus
from queuedesk.core.permissions import Permission, StaffCapability, authorize
from queuedesk.core.retry import retry_read
from queuedesk.models.booking import Booking, BookingStatus
from queuedesk.models.branch import Branch
from queuedesk.services.intake import upsert_customer

logger = structlog.get_logger(__name__)
settings = get_settings()


class BookingService:
    def __init__(self, session: AsyncSession, bus: EventBus = event_bus):
        self.session = session
        self.bus = bus

    async def get_booking(self, booking_id: uuid.UUID) -> Booking:
        async def _load():
            result = await self.session.exec(
                select(Booking)
                .where(Booking.id == booking_id)
                .options(selectinload(Booking.customer), selectinload(Booking.branch))
                .execution_options(populate_existing=True)
            )
            return result.first()

        booking = await retry_read(_load, description="booking read", session=self.session)
        if booking is None:
            raise NotFoundError(f"Booking {booking_id} not found", booking_id=str(booking_id))
        return booking

    async def create_booking(
        self,
        branch_id: uuid.UUID,
        name: str,
        phone: str,
        guests: int,
        booking_date: date,
        booking_time: time,
    ) -> Booking:
        """Record a pending booking for an E.164 phone"""
        name = (name or "").strip()
        if not name:
            raise ValidationError("Name is required", field="name")
        if guests < 1 or guests > settings.MAX_PARTY_SIZE:
            raise ValidationError(
                f"Party size must be between 1 and {settings.MAX_PARTY_SIZE}",
                field="guests",
            )

        branch = await self.session.get(Branch, branch_id)
        if branch is None or not branch.is_active:
            raise NotFoundError(f"Branch {branch_id} not found", branch_id=str(branch_id))

        try:
            customer = await upsert_customer(self.session, name, phone)
            booking = Booking(
                customer_id=customer.id,
                branch_id=branch_id,
                guests=guests,
                booking_date=booking_date,
                booking_time=booking_time,
            )
            self.session.add(booking)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        booking = await self.get_booking(booking.id)
        logger.info(f"Booking {booking.id} created for {phone} on {booking_date} {booking_time}")

        await self.bus.publish(BookingChanged(
            booking_id=booking.id,
            branch_id=booking.branch_id,
            status=BookingStatus.PENDING.value,
        ))
        return booking

    async def list_bookings(
        self,
        branch_id: uuid.UUID,
        capability: StaffCapability,
        status: Optional[BookingStatus] = None,
    ) -> List[Booking]:
        authorize(capability, Permission.BOOKINGS_VIEW, branch_id)

        async def _load():
            statement = (
                select(Booking)
                .where(Booking.branch_id == branch_id)
                .order_by(Booking.booking_date, Booking.booking_time)
            )
            if status is not None:
                statement = statement.where(Booking.status == status)
            result = await self.session.exec(statement)
            return list(result.all())

        return await retry_read(_load, description="booking list read", session=self.session)

    async def update_status(
        self,
        booking_id: uuid.UUID,
        target: Union[BookingStatus, str],
        capability: StaffCapability,
    ) -> Booking:
        try:
            target = BookingStatus(target)
        except ValueError:
            raise ValidationError(f"Unknown status: {target}", field="status")

        booking = await self.get_booking(booking_id)
        authorize(capability, Permission.BOOKINGS_MANAGE, booking.branch_id)

        if not booking.can_transition_to(target):
            current = BookingStatus(booking.status).value
            raise IllegalTransitionError(
                current_status=current,
                target_status=target.value,
                branch_name=booking.branch.name if booking.branch else None,
                reason=f"{current} bookings cannot become {target.value}",
            )

        booking.status = target
        booking.updated_at = datetime.utcnow()
        self.session.add(booking)
        await self.session.commit()
        booking = await self.get_booking(booking.id)

        logger.info(f"Booking {booking.id} is now {target.value}")
        await self.bus.publish(BookingChanged(
            booking_id=booking.id,
            branch_id=booking.branch_id,
            status=target.value,
        ))
        return booking
