"""
Customer intake: validate a join request and admit it into a branch queue
"""

from datetime import datetime
from typing import Optional, Tuple
import uuid

from sqlalchemy.exc import IntegrityError
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
import structlog

from queuedesk.core.config import get_settings
from queuedesk.core.errors import (
    DuplicateActiveRequestError,
    NotFoundError,
    ValidationError,
    VerificationError,
)
from queuedesk.core.events import EventBus, QueueEntryCreated, event_bus
from queuedesk.core.retry import retry_read
from queuedesk.models.branch import Branch
from queuedesk.models.customer import Customer
from queuedesk.models.queue_entry import ACTIVE_STATUSES, QueueEntry, QueueEntryStatus
from queuedesk.schemas.queue import IntakeRequest
from queuedesk.services.notifications import NotificationService
from queuedesk.services.phone import normalize_phone
from queuedesk.services.queue_engine import fetch_entry
from queuedesk.services.verification import Verifier
from queuedesk.services.wait_time import WaitTimeEstimator

logger = structlog.get_logger(__name__)
settings = get_settings()


async def upsert_customer(session: AsyncSession, name: str, phone: str, now: Optional[datetime] = None) -> Customer:
    """Find the customer by phone, refreshing the name, or create one"""
    now = now or datetime.utcnow()
    result = await session.exec(select(Customer).where(Customer.phone == phone))
    customer = result.first()
    if customer is None:
        customer = Customer(name=name, phone=phone, created_at=now)
    elif customer.name != name:
        customer.name = name
        customer.updated_at = now
    session.add(customer)
    await session.flush()
    return customer


class IntakeValidator:
    """Turns a customer's join request into a waiting queue entry"""

    def __init__(
        self,
        session: AsyncSession,
        verifier: Verifier,
        notifications: NotificationService,
        estimator: Optional[WaitTimeEstimator] = None,
        bus: EventBus = event_bus,
    ):
        self.session = session
        self.verifier = verifier
        self.notifications = notifications
        self.estimator = estimator or WaitTimeEstimator(session)
        self.bus = bus

    def validate(self, request: IntakeRequest) -> Tuple[str, str]:
        """Check the request fields; returns the cleaned name and E.164 phone"""
        name = (request.name or "").strip()
        if not name:
            raise ValidationError("Name is required", field="name")

        if request.guests < 1:
            raise ValidationError("Party size must be at least 1", field="guests")
        if request.guests > settings.MAX_PARTY_SIZE:
            raise ValidationError(
                f"Party size cannot exceed {settings.MAX_PARTY_SIZE}",
                field="guests",
            )

        phone = normalize_phone(request.country_code, request.local_number)
        return name, phone

    async def get_branch(self, branch_id: uuid.UUID) -> Branch:
        async def _load():
            return await self.session.get(Branch, branch_id)

        branch = await retry_read(_load, description="branch read", session=self.session)
        if branch is None or not branch.is_active:
            raise NotFoundError(f"Branch {branch_id} not found", branch_id=str(branch_id))
        return branch

    async def find_active_entry(self, phone: str) -> Optional[QueueEntry]:
        """Latest waiting/called/seated entry of the customer at any branch"""
        async def _load():
            result = await self.session.exec(
                select(QueueEntry)
                .join(Customer, Customer.id == QueueEntry.customer_id)
                .where(
                    Customer.phone == phone,
                    QueueEntry.status.in_(ACTIVE_STATUSES),
                )
                .order_by(QueueEntry.created_at.desc())
                .limit(1)
            )
            return result.first()

        return await retry_read(_load, description="active entry lookup", session=self.session)

    async def check_duplicate(self, phone: str) -> None:
        existing = await self.find_active_entry(phone)
        if existing is not None:
            raise DuplicateActiveRequestError(
                status=QueueEntryStatus(existing.status).value,
                branch_name=existing.branch.name if existing.branch else "another branch",
                entry_id=existing.id,
            )

    async def request_verification(self, branch_id: uuid.UUID, request: IntakeRequest) -> str:
        """Validate the request and send the customer a verification code"""
        name, phone = self.validate(request)
        await self.get_branch(branch_id)
        await self.check_duplicate(phone)
        await self.verifier.send_code(phone)
        logger.info(f"Verification requested for {phone} at branch {branch_id}")
        return phone

    async def validate_and_admit(
        self,
        branch_id: uuid.UUID,
        request: IntakeRequest,
        verification_code: str,
        now: Optional[datetime] = None,
    ) -> QueueEntry:
        """Admit a verified customer into the branch queue

        Raises a QueueError subclass on rejection; nothing is written then.
        """
        now = now or datetime.utcnow()
        name, phone = self.validate(request)
        branch = await self.get_branch(branch_id)
        await self.check_duplicate(phone)

        if not await self.verifier.verify(phone, verification_code):
            raise VerificationError("Verification code is invalid or expired", field="code")

        entry = await self._admit(branch, name, phone, request.guests, now)

        await self.bus.publish(QueueEntryCreated(
            entry_id=entry.id,
            branch_id=entry.branch_id,
            customer_id=entry.customer_id,
            guests=entry.guests,
            wait_time=entry.wait_time,
        ))
        await self.notifications.queue_joined(phone, branch.name, entry.wait_time)
        return entry

    async def _admit(self, branch: Branch, name: str, phone: str, guests: int, now: datetime) -> QueueEntry:
        branch_id = branch.id
        try:
            # Re-check inside the writing transaction; reads precede the first flush
            await self.check_duplicate(phone)
            wait_time = await self.estimator.estimate(branch_id, now)
            customer = await upsert_customer(self.session, name, phone, now)

            entry = QueueEntry(
                customer_id=customer.id,
                branch_id=branch_id,
                guests=guests,
                wait_time=wait_time,
                status=QueueEntryStatus.WAITING,
                created_at=now,
                updated_at=now,
            )
            self.session.add(entry)
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            logger.warning(f"Concurrent admission for {phone}: {e}")
            await self.check_duplicate(phone)
            raise
        except Exception:
            await self.session.rollback()
            raise

        logger.info(f"Customer {phone} joined branch {branch_id} queue, wait {wait_time} min")
        return await fetch_entry(self.session, entry.id)
