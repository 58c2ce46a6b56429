"""
Room allocation for seated parties

A room is occupied while some seated entry of the branch holds its number.
Seating goes through ``assign_room``, the only write that sets a room.
"""

from datetime import datetime
from typing import Dict, List, Optional, Set
import uuid

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import aliased
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
import structlog

from queuedesk.core.errors import IllegalTransitionError, NotFoundError, RoomConflictError
from queuedesk.core.retry import retry_read
from queuedesk.models.branch import Branch
from queuedesk.models.queue_entry import QueueEntry, QueueEntryStatus
from queuedesk.schemas.queue import RoomBoard, RoomSlot

logger = structlog.get_logger(__name__)


class RoomAllocator:
    """Tracks room occupancy and seats parties into free rooms"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_branch(self, branch_id: uuid.UUID) -> Branch:
        async def _load():
            return await self.session.get(Branch, branch_id)

        branch = await retry_read(_load, description="branch read", session=self.session)
        if branch is None:
            raise NotFoundError(f"Branch {branch_id} not found", branch_id=str(branch_id))
        return branch

    async def seated_entries(self, branch_id: uuid.UUID) -> List[QueueEntry]:
        async def _load():
            result = await self.session.exec(
                select(QueueEntry)
                .where(
                    QueueEntry.branch_id == branch_id,
                    QueueEntry.status == QueueEntryStatus.SEATED,
                    QueueEntry.room_number.is_not(None),
                )
                .order_by(QueueEntry.room_number)
            )
            return list(result.all())

        return await retry_read(_load, description="seated entries read", session=self.session)

    async def occupied_rooms(self, branch_id: uuid.UUID) -> Set[int]:
        return {entry.room_number for entry in await self.seated_entries(branch_id)}

    async def available_rooms(self, branch_id: uuid.UUID) -> List[int]:
        """Free rooms of the branch in ascending order"""
        branch = await self.get_branch(branch_id)
        occupied = await self.occupied_rooms(branch_id)
        return [room for room in branch.room_numbers() if room not in occupied]

    async def room_board(self, branch_id: uuid.UUID) -> RoomBoard:
        """Every room of the branch with its current occupant, if any"""
        branch = await self.get_branch(branch_id)
        occupants: Dict[int, QueueEntry] = {
            entry.room_number: entry for entry in await self.seated_entries(branch_id)
        }

        rooms = []
        for room in branch.room_numbers():
            entry = occupants.get(room)
            if entry is None:
                rooms.append(RoomSlot(room_number=room, occupied=False))
                continue
            rooms.append(RoomSlot(
                room_number=room,
                occupied=True,
                entry_id=entry.id,
                customer_name=entry.customer.name if entry.customer else None,
                guests=entry.guests,
                seated_at=entry.updated_at,
            ))

        return RoomBoard(
            branch_id=branch.id,
            rooms_count=branch.rooms_count,
            rooms=rooms,
            available_rooms=[slot.room_number for slot in rooms if not slot.occupied],
        )

    async def lock_branch(self, branch_id: uuid.UUID, exclusive: bool = False) -> None:
        """Row-lock the branch for the rest of the transaction

        Seats take a shared lock and rooms_count changes an exclusive one, so
        neither write can miss the other. SQLite renders no FOR clause; its
        single writer already serializes them.
        """
        await self.session.exec(
            select(Branch.id).where(Branch.id == branch_id).with_for_update(read=not exclusive)
        )

    async def assign_room(
        self,
        entry: QueueEntry,
        room_number: int,
        now: Optional[datetime] = None,
    ) -> None:
        """Seat a called entry in ``room_number`` with a single conditional write

        The UPDATE only matches while the entry is still called, the room is
        in range and no seated entry of the branch holds it. The caller
        commits.
        """
        now = now or datetime.utcnow()
        entry_id, branch_id = entry.id, entry.branch_id
        branch_name = entry.branch.name if entry.branch else None

        if room_number is None or room_number < 1:
            raise RoomConflictError(room_number, branch_name, reason=f"Room {room_number} does not exist")

        holder = aliased(QueueEntry)
        room_taken = (
            select(holder.id)
            .where(
                holder.branch_id == branch_id,
                holder.status == QueueEntryStatus.SEATED,
                holder.room_number == room_number,
            )
            .exists()
        )
        rooms_count = select(Branch.rooms_count).where(Branch.id == branch_id).scalar_subquery()

        statement = (
            update(QueueEntry)
            .where(
                QueueEntry.id == entry_id,
                QueueEntry.status == QueueEntryStatus.CALLED,
                rooms_count >= room_number,
                ~room_taken,
            )
            .values(status=QueueEntryStatus.SEATED, room_number=room_number, updated_at=now)
            .execution_options(synchronize_session=False)
        )

        try:
            await self.lock_branch(branch_id)
            result = await self.session.execute(statement)
        except IntegrityError as e:
            # Concurrent seat won the unique (branch, room) index
            await self.session.rollback()
            logger.warning(f"Room {room_number} taken concurrently at branch {branch_id}: {e}")
            raise RoomConflictError(room_number, branch_name) from e

        if result.rowcount == 1:
            logger.info(f"Seated entry {entry_id} in room {room_number}")
            return

        await self._explain_rejected_seat(entry, room_number, branch_name)

    async def _explain_rejected_seat(
        self,
        entry: QueueEntry,
        room_number: int,
        branch_name: Optional[str],
    ) -> None:
        result = await self.session.exec(
            select(QueueEntry)
            .where(QueueEntry.id == entry.id)
            .execution_options(populate_existing=True)
        )
        fresh = result.one()
        if fresh.status != QueueEntryStatus.CALLED:
            raise IllegalTransitionError(
                current_status=QueueEntryStatus(fresh.status).value,
                target_status=QueueEntryStatus.SEATED.value,
                branch_name=branch_name,
                room_number=fresh.room_number,
                reason="entry changed concurrently",
            )

        branch = await self.session.get(Branch, entry.branch_id, populate_existing=True)
        if branch is not None and room_number > branch.rooms_count:
            raise RoomConflictError(
                room_number,
                branch_name,
                reason=f"Room {room_number} does not exist at {branch_name} ({branch.rooms_count} rooms)",
            )

        logger.info(f"Room {room_number} already occupied at branch {entry.branch_id}")
        raise RoomConflictError(room_number, branch_name)
