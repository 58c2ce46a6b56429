"""
Branch settings and super-admin branch management
"""

from datetime import datetime
import math
from typing import List, Optional
import uuid

from sqlalchemy import literal, update
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
import structlog

from queuedesk.core.auth import hash_password, verify_password
from queuedesk.core.errors import NotFoundError, ValidationError
from queuedesk.core.events import BranchSettingsUpdated, EventBus, event_bus
from queuedesk.core.permissions import Permission, StaffCapability, authorize
from queuedesk.core.retry import retry_read
from queuedesk.models.branch import (
    EXPECTED_WAIT_STEP,
    MAX_EXPECTED_WAIT,
    MIN_EXPECTED_WAIT,
    MIN_ROOMS,
    Branch,
)
from queuedesk.models.queue_entry import QueueEntry, QueueEntryStatus
from queuedesk.services.rooms import RoomAllocator

logger = structlog.get_logger(__name__)


def normalize_expected_wait(minutes: int) -> int:
    """Snap to the nearest 5-minute step within [5, 60]"""
    snapped = EXPECTED_WAIT_STEP * math.floor(minutes / EXPECTED_WAIT_STEP + 0.5)
    return max(MIN_EXPECTED_WAIT, min(MAX_EXPECTED_WAIT, snapped))


class BranchSettingsService:
    """Reads and changes branch configuration"""

    def __init__(self, session: AsyncSession, bus: EventBus = event_bus):
        self.session = session
        self.bus = bus
        self.rooms = RoomAllocator(session)

    async def get_branch(self, branch_id: uuid.UUID, refresh: bool = False) -> Branch:
        async def _load():
            return await self.session.get(Branch, branch_id, populate_existing=refresh)

        branch = await retry_read(_load, description="branch read", session=self.session)
        if branch is None:
            raise NotFoundError(f"Branch {branch_id} not found", branch_id=str(branch_id))
        return branch

    async def list_branches(self, include_inactive: bool = True) -> List[Branch]:
        async def _load():
            statement = select(Branch).order_by(Branch.name)
            if not include_inactive:
                statement = statement.where(Branch.is_active == True)  # noqa: E712
            result = await self.session.exec(statement)
            return list(result.all())

        return await retry_read(_load, description="branch list read", session=self.session)

    async def update_settings(
        self,
        branch_id: uuid.UUID,
        capability: StaffCapability,
        rooms_count: Optional[int] = None,
        expected_wait_time: Optional[int] = None,
    ) -> Branch:
        """Change rooms_count and/or expected_wait_time

        The returned branch is re-read from the store after commit.
        """
        authorize(capability, Permission.BRANCH_SETTINGS_EDIT, branch_id)
        await self.get_branch(branch_id)

        values = {}
        if expected_wait_time is not None:
            values["expected_wait_time"] = normalize_expected_wait(expected_wait_time)
        if rooms_count is not None and rooms_count < MIN_ROOMS:
            raise ValidationError(f"A branch needs at least {MIN_ROOMS} room", field="rooms_count")

        rooms = literal(rooms_count) if rooms_count is not None else None
        return await self._write_settings(branch_id, values, rooms)

    async def increment_rooms(self, branch_id: uuid.UUID, capability: StaffCapability) -> Branch:
        authorize(capability, Permission.BRANCH_SETTINGS_EDIT, branch_id)
        await self.get_branch(branch_id)
        return await self._write_settings(branch_id, {}, Branch.rooms_count + 1)

    async def decrement_rooms(self, branch_id: uuid.UUID, capability: StaffCapability) -> Branch:
        authorize(capability, Permission.BRANCH_SETTINGS_EDIT, branch_id)
        await self.get_branch(branch_id)
        return await self._write_settings(branch_id, {}, Branch.rooms_count - 1)

    async def _write_settings(self, branch_id: uuid.UUID, values: dict, rooms=None) -> Branch:
        """Apply a settings change with a single conditional write

        ``rooms`` is the new rooms_count as a SQL expression, evaluated in the
        UPDATE itself. The write only matches while it stays >= 1 and no
        seated entry of the branch holds a room above it.
        """
        statement = update(Branch).where(Branch.id == branch_id)
        if rooms is not None:
            out_of_range = (
                select(QueueEntry.id)
                .where(
                    QueueEntry.branch_id == Branch.id,
                    QueueEntry.status == QueueEntryStatus.SEATED,
                    QueueEntry.room_number > rooms,
                )
                .correlate(Branch)
                .exists()
            )
            statement = statement.where(rooms >= MIN_ROOMS, ~out_of_range)
            values = {**values, "rooms_count": rooms}

        statement = statement.values(updated_at=datetime.utcnow(), **values).execution_options(
            synchronize_session=False
        )

        try:
            await self.rooms.lock_branch(branch_id, exclusive=True)
            result = await self.session.execute(statement)
            if result.rowcount != 1:
                await self._explain_rejected_rooms(branch_id, rooms)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        branch = await self.get_branch(branch_id, refresh=True)
        logger.info(
            f"Branch {branch.id} settings updated",
            rooms_count=branch.rooms_count,
            expected_wait_time=branch.expected_wait_time,
        )

        await self.bus.publish(BranchSettingsUpdated(
            branch_id=branch.id,
            rooms_count=branch.rooms_count,
            expected_wait_time=branch.expected_wait_time,
        ))
        return branch

    async def _explain_rejected_rooms(self, branch_id: uuid.UUID, rooms) -> None:
        branch = await self.session.get(Branch, branch_id, populate_existing=True)
        if branch is None:
            raise NotFoundError(f"Branch {branch_id} not found", branch_id=str(branch_id))

        requested = (await self.session.execute(
            select(rooms).select_from(Branch).where(Branch.id == branch_id)
        )).scalar_one()
        if requested < MIN_ROOMS:
            raise ValidationError(f"A branch needs at least {MIN_ROOMS} room", field="rooms_count")

        seated = await self.rooms.seated_entries(branch_id)
        occupied = [entry.room_number for entry in seated if entry.room_number > requested]
        if not occupied:
            raise ValidationError("Branch changed while updating; try again", field="rooms_count")

        highest = max(occupied)
        raise ValidationError(
            f"Room {highest} is occupied; cannot reduce rooms below {highest}",
            field="rooms_count",
            room_number=highest,
        )

    # Super-admin management
    async def create_branch(
        self,
        capability: StaffCapability,
        name: str,
        password: str,
        address: Optional[str] = None,
        phone: Optional[str] = None,
        rooms_count: int = 10,
        expected_wait_time: int = 15,
    ) -> Branch:
        authorize(capability, Permission.BRANCH_MANAGE)
        if not name.strip():
            raise ValidationError("Branch name is required", field="name")
        if rooms_count < MIN_ROOMS:
            raise ValidationError(f"A branch needs at least {MIN_ROOMS} room", field="rooms_count")

        branch = Branch(
            name=name.strip(),
            address=address,
            phone=phone,
            rooms_count=rooms_count,
            expected_wait_time=normalize_expected_wait(expected_wait_time),
            password_hash=hash_password(password),
        )
        self.session.add(branch)
        await self.session.commit()
        await self.session.refresh(branch)

        logger.info(f"Branch created: {branch.name} ({branch.id})")
        return branch

    async def update_profile(
        self,
        branch_id: uuid.UUID,
        capability: StaffCapability,
        name: Optional[str] = None,
        address: Optional[str] = None,
        phone: Optional[str] = None,
        is_active: Optional[bool] = None,
    ) -> Branch:
        authorize(capability, Permission.BRANCH_MANAGE)
        branch = await self.get_branch(branch_id)

        if name is not None:
            if not name.strip():
                raise ValidationError("Branch name is required", field="name")
            branch.name = name.strip()
        if address is not None:
            branch.address = address
        if phone is not None:
            branch.phone = phone
        if is_active is not None:
            branch.is_active = is_active

        branch.updated_at = datetime.utcnow()
        self.session.add(branch)
        await self.session.commit()
        logger.info(f"Branch {branch.id} profile updated")
        return await self.get_branch(branch_id, refresh=True)

    async def set_password(self, branch_id: uuid.UUID, capability: StaffCapability, password: str) -> Branch:
        authorize(capability, Permission.BRANCH_MANAGE)
        branch = await self.get_branch(branch_id)
        branch.password_hash = hash_password(password)
        branch.updated_at = datetime.utcnow()
        self.session.add(branch)
        await self.session.commit()
        logger.info(f"Branch {branch.id} staff password changed")
        return branch

    async def deactivate(self, branch_id: uuid.UUID, capability: StaffCapability) -> Branch:
        return await self.update_profile(branch_id, capability, is_active=False)

    async def authenticate(self, branch_id: uuid.UUID, password: str) -> Optional[Branch]:
        """Branch for a correct staff password, None otherwise"""
        async def _load():
            return await self.session.get(Branch, branch_id)

        branch = await retry_read(_load, description="branch read", session=self.session)
        if branch is None or not branch.is_active:
            return None
        if not verify_password(password, branch.password_hash):
            return None
        return branch
