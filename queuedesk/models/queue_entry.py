"""
Queue entry model with the waitlist state machine
"""

from sqlmodel import Field, SQLModel, Relationship
from sqlalchemy import Column, Enum as SQLEnum, Index, text
from datetime import datetime
from typing import Any, Dict, Optional, TYPE_CHECKING
from enum import Enum
import math
import uuid

from queuedesk.core.clock import is_same_business_day
from queuedesk.core.errors import IllegalTransitionError, RoomConflictError

if TYPE_CHECKING:
    from queuedesk.models.branch import Branch
    from queuedesk.models.customer import Customer


class QueueEntryStatus(str, Enum):
    """Status of a queue entry"""
    WAITING = "waiting"         # Joined the waitlist
    CALLED = "called"           # Staff called the party, room being prepared
    SEATED = "seated"           # Party is in a room
    CANCELLED = "cancelled"     # Terminal
    COMPLETED = "completed"     # Terminal, visit finished


ACTIVE_STATUSES = (
    QueueEntryStatus.WAITING,
    QueueEntryStatus.CALLED,
    QueueEntryStatus.SEATED,
)
TERMINAL_STATUSES = (QueueEntryStatus.CANCELLED, QueueEntryStatus.COMPLETED)

ALLOWED_TRANSITIONS = {
    QueueEntryStatus.WAITING: {QueueEntryStatus.CALLED, QueueEntryStatus.CANCELLED},
    QueueEntryStatus.CALLED: {QueueEntryStatus.SEATED, QueueEntryStatus.CANCELLED},
    QueueEntryStatus.SEATED: {QueueEntryStatus.COMPLETED},
    QueueEntryStatus.CANCELLED: set(),
    QueueEntryStatus.COMPLETED: set(),
}

# Customer is messaged when an entry lands in one of these
NOTIFYING_STATUSES = {
    QueueEntryStatus.SEATED,
    QueueEntryStatus.CANCELLED,
    QueueEntryStatus.COMPLETED,
}

_ACTIVE_SQL = "status IN ('waiting', 'called', 'seated')"
_SEATED_SQL = "status = 'seated'"


class QueueEntry(SQLModel, table=True):
    """A party's position in a branch waitlist"""

    __tablename__ = "queue_entries"
    __table_args__ = (
        # One active entry per customer, system-wide
        Index(
            "uq_queue_entry_active_customer",
            "customer_id",
            unique=True,
            sqlite_where=text(_ACTIVE_SQL),
            postgresql_where=text(_ACTIVE_SQL),
        ),
        # One seated party per room per branch
        Index(
            "uq_queue_entry_seated_room",
            "branch_id",
            "room_number",
            unique=True,
            sqlite_where=text(_SEATED_SQL),
            postgresql_where=text(_SEATED_SQL),
        ),
        Index("idx_queue_entry_branch_created", "branch_id", "created_at"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    customer_id: uuid.UUID = Field(foreign_key="customers.id", index=True)
    branch_id: uuid.UUID = Field(foreign_key="branches.id", index=True)

    guests: int = Field(default=1, description="Party size")
    wait_time: int = Field(default=0, description="Estimated wait in minutes, frozen at creation")

    status: QueueEntryStatus = Field(
        default=QueueEntryStatus.WAITING,
        sa_column=Column(
            SQLEnum(
                QueueEntryStatus,
                values_callable=lambda enum: [member.value for member in enum],
                native_enum=False,
                length=20,
            ),
            nullable=False,
            index=True,
        ),
    )
    room_number: Optional[int] = Field(default=None, description="Assigned room while seated")

    # Timestamps
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    # Relationships
    customer: Optional["Customer"] = Relationship(
        back_populates="queue_entries",
        sa_relationship_kwargs={"lazy": "selectin"},
    )
    branch: Optional["Branch"] = Relationship(
        back_populates="queue_entries",
        sa_relationship_kwargs={"lazy": "selectin"},
    )

    # State machine methods
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    def can_transition_to(self, target: QueueEntryStatus) -> tuple[bool, str]:
        """Check if the entry may move to ``target``"""
        current = QueueEntryStatus(self.status)
        if current in TERMINAL_STATUSES:
            return False, f"entry is already {current.value}"
        if target not in ALLOWED_TRANSITIONS[current]:
            return False, f"{current.value} entries cannot become {target.value}"
        return True, "Can transition"

    def transition_values(
        self,
        target: QueueEntryStatus,
        room_number: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """Column values produced by moving to ``target``

        Raises IllegalTransitionError when the move is not in the table, and
        RoomConflictError when seating without a usable room number.
        """
        ok, reason = self.can_transition_to(target)
        if not ok:
            raise IllegalTransitionError(
                current_status=QueueEntryStatus(self.status).value,
                target_status=target.value,
                branch_name=self.branch.name if self.branch else None,
                room_number=self.room_number,
                reason=reason,
            )

        values: Dict[str, Any] = {"status": target, "updated_at": now or datetime.utcnow()}
        if target == QueueEntryStatus.SEATED:
            if room_number is None:
                raise IllegalTransitionError(
                    current_status=QueueEntryStatus(self.status).value,
                    target_status=target.value,
                    branch_name=self.branch.name if self.branch else None,
                    reason="a room number is required to seat a party",
                )
            if room_number < 1:
                raise RoomConflictError(room_number, reason=f"Room {room_number} does not exist")
            values["room_number"] = room_number
        elif target in TERMINAL_STATUSES:
            values["room_number"] = None
        return values

    def transition_to(
        self,
        target: QueueEntryStatus,
        room_number: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> None:
        """Apply a transition in memory (no room occupancy check)"""
        for key, value in self.transition_values(target, room_number, now).items():
            setattr(self, key, value)

    # Read-time views
    def elapsed_minutes(self, now: Optional[datetime] = None) -> Optional[int]:
        """Minutes spent waiting; frozen at the last status change once called"""
        status = QueueEntryStatus(self.status)
        if status == QueueEntryStatus.CANCELLED:
            return None
        if status == QueueEntryStatus.WAITING:
            end = now or datetime.utcnow()
        else:
            end = self.updated_at
        return math.floor((end - self.created_at).total_seconds() / 60 + 0.5)

    def is_in_active_view(self, now: Optional[datetime] = None) -> bool:
        """Today's board: created today and not completed"""
        return (
            is_same_business_day(self.created_at, now)
            and self.status != QueueEntryStatus.COMPLETED
        )
