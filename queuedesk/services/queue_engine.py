"""
Queue lifecycle engine

Moves entries through the waitlist state machine with guarded writes,
publishes a change event after every commit and builds the read-time views
(today's board, archive, customer status board, staff dashboard).
"""

from datetime import datetime
from typing import List, Optional, Union
import uuid

from sqlalchemy import or_, update
from sqlalchemy.orm import selectinload
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
import structlog

from queuedesk.core.clock import business_day_bounds
from queuedesk.core.config import get_settings
from queuedesk.core.errors import IllegalTransitionError, NotFoundError, ValidationError
from queuedesk.core.events import EventBus, QueueEntryStatusChanged, event_bus
from queuedesk.core.permissions import Permission, StaffCapability, authorize
from queuedesk.core.retry import retry_read
from queuedesk.models.queue_entry import (
    ACTIVE_STATUSES,
    QueueEntry,
    QueueEntryStatus,
)
from queuedesk.schemas.queue import (
    Dashboard,
    QueueEntryResponse,
    StatusBoard,
    StatusBoardEntry,
)
from queuedesk.services.notifications import NotificationService
from queuedesk.services.rooms import RoomAllocator

logger = structlog.get_logger(__name__)
settings = get_settings()


async def fetch_entry(session: AsyncSession, entry_id: uuid.UUID) -> Optional[QueueEntry]:
    """Load an entry fresh from the store, with its customer and branch"""
    result = await session.exec(
        select(QueueEntry)
        .where(QueueEntry.id == entry_id)
        .options(selectinload(QueueEntry.customer), selectinload(QueueEntry.branch))
        .execution_options(populate_existing=True)
    )
    return result.first()


class QueueLifecycleEngine:
    """Staff-side operations on a branch queue"""

    def __init__(
        self,
        session: AsyncSession,
        notifications: Optional[NotificationService] = None,
        bus: EventBus = event_bus,
    ):
        self.session = session
        self.notifications = notifications
        self.bus = bus
        self.rooms = RoomAllocator(session)

    async def get_entry(self, entry_id: uuid.UUID) -> QueueEntry:
        entry = await retry_read(
            lambda: fetch_entry(self.session, entry_id),
            description="queue entry read",
            session=self.session,
        )
        if entry is None:
            raise NotFoundError(f"Queue entry {entry_id} not found", entry_id=str(entry_id))
        return entry

    async def transition(
        self,
        entry_id: uuid.UUID,
        target: Union[QueueEntryStatus, str],
        capability: StaffCapability,
        room_number: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> QueueEntry:
        """Move an entry to ``target``

        Seating goes through the room allocator. Every other change is a
        compare-and-set on the status the entry had when it was read.
        """
        try:
            target = QueueEntryStatus(target)
        except ValueError:
            raise ValidationError(f"Unknown status: {target}", field="status")

        now = now or datetime.utcnow()
        entry = await self.get_entry(entry_id)
        authorize(capability, Permission.QUEUE_TRANSITION, entry.branch_id)

        previous = QueueEntryStatus(entry.status)
        values = entry.transition_values(target, room_number, now)

        if target == QueueEntryStatus.SEATED:
            await self.rooms.assign_room(entry, room_number, now)
        else:
            await self._guarded_update(entry, previous, values)

        await self.session.commit()
        entry = await self.get_entry(entry_id)

        logger.info(
            f"Entry {entry.id} moved {previous.value} -> {target.value}",
            branch_id=str(entry.branch_id),
            room_number=entry.room_number,
        )

        await self.bus.publish(QueueEntryStatusChanged(
            entry_id=entry.id,
            branch_id=entry.branch_id,
            status=target.value,
            previous_status=previous.value,
            room_number=entry.room_number,
        ))

        await self._notify(entry, target, room_number)
        return entry

    async def _guarded_update(self, entry: QueueEntry, expected: QueueEntryStatus, values: dict) -> None:
        result = await self.session.execute(
            update(QueueEntry)
            .where(QueueEntry.id == entry.id, QueueEntry.status == expected)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            return

        entry_id = entry.id
        await self.session.rollback()
        fresh = await self.get_entry(entry_id)
        raise IllegalTransitionError(
            current_status=QueueEntryStatus(fresh.status).value,
            target_status=QueueEntryStatus(values["status"]).value,
            branch_name=fresh.branch.name if fresh.branch else None,
            room_number=fresh.room_number,
            reason="entry changed concurrently",
        )

    async def _notify(self, entry: QueueEntry, target: QueueEntryStatus, room_number: Optional[int]) -> None:
        if self.notifications is None or entry.customer is None:
            return

        phone = entry.customer.phone
        if target == QueueEntryStatus.SEATED:
            await self.notifications.table_ready(phone, room_number)
        elif target == QueueEntryStatus.CANCELLED:
            await self.notifications.request_cancelled(phone)
        elif target == QueueEntryStatus.COMPLETED:
            await self.notifications.visit_completed(phone)

    # Views
    async def active_view(self, branch_id: uuid.UUID, now: Optional[datetime] = None) -> List[QueueEntry]:
        """Today's entries that are not completed, oldest first"""
        start, end = business_day_bounds(now)

        async def _load():
            result = await self.session.exec(
                select(QueueEntry)
                .where(
                    QueueEntry.branch_id == branch_id,
                    QueueEntry.created_at >= start,
                    QueueEntry.created_at < end,
                    QueueEntry.status != QueueEntryStatus.COMPLETED,
                )
                .order_by(QueueEntry.created_at.asc())
            )
            return list(result.all())

        return await retry_read(_load, description="active view read", session=self.session)

    async def archive_view(
        self,
        branch_id: uuid.UUID,
        now: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[QueueEntry]:
        """Everything outside today's board, newest first"""
        start, end = business_day_bounds(now)

        async def _load():
            statement = (
                select(QueueEntry)
                .where(
                    QueueEntry.branch_id == branch_id,
                    or_(
                        QueueEntry.created_at < start,
                        QueueEntry.created_at >= end,
                        QueueEntry.status == QueueEntryStatus.COMPLETED,
                    ),
                )
                .order_by(QueueEntry.created_at.desc())
            )
            if limit:
                statement = statement.limit(limit)
            result = await self.session.exec(statement)
            return list(result.all())

        return await retry_read(_load, description="archive view read", session=self.session)

    async def status_board(self, branch_id: uuid.UUID) -> StatusBoard:
        """Customer-facing board of entries still in play"""
        branch = await self.rooms.get_branch(branch_id)

        async def _load():
            result = await self.session.exec(
                select(QueueEntry)
                .where(
                    QueueEntry.branch_id == branch_id,
                    QueueEntry.status.in_(ACTIVE_STATUSES),
                )
                .order_by(QueueEntry.created_at.asc())
            )
            return list(result.all())

        entries = await retry_read(_load, description="status board read", session=self.session)

        lines = []
        position = 0
        for entry in entries:
            line_position = None
            if entry.status == QueueEntryStatus.WAITING:
                position += 1
                line_position = position
            lines.append(StatusBoardEntry(
                id=entry.id,
                customer_name=entry.customer.name if entry.customer else None,
                guests=entry.guests,
                status=entry.status,
                room_number=entry.room_number,
                position=line_position,
                wait_time=entry.wait_time,
                created_at=entry.created_at,
            ))

        return StatusBoard(
            branch_id=branch.id,
            branch_name=branch.name,
            entries=lines,
            refresh_seconds=settings.STATUS_REFRESH_SECONDS,
        )

    async def dashboard(self, branch_id: uuid.UUID, now: Optional[datetime] = None) -> Dashboard:
        """Staff snapshot: today's board plus room occupancy"""
        now = now or datetime.utcnow()
        active = await self.active_view(branch_id, now)
        rooms = await self.rooms.room_board(branch_id)
        return Dashboard(
            branch_id=branch_id,
            active=[QueueEntryResponse.from_entry(entry, now) for entry in active],
            rooms=rooms,
            refresh_seconds=settings.DASHBOARD_REFRESH_SECONDS,
        )
