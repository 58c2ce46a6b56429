"""
Wait-time estimation for new queue entries

The estimate is the mean of the wait times quoted to the branch's recent
(non-cancelled) entries. It is frozen into each new entry, so the next
estimate is seeded by the previous ones.
"""

from datetime import datetime, timedelta
import math
from typing import Optional
import uuid

from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
import structlog

from queuedesk.core.config import get_settings
from queuedesk.core.retry import retry_read
from queuedesk.models.queue_entry import QueueEntry, QueueEntryStatus

logger = structlog.get_logger(__name__)
settings = get_settings()


def mean_wait_time(values: list[int], fallback: int) -> int:
    """Arithmetic mean rounded half up; the fallback stands in for an empty set"""
    if not values:
        return fallback
    return math.floor(sum(values) / len(values) + 0.5)


class WaitTimeEstimator:
    """Computes the expected wait for a party joining a branch queue"""

    def __init__(
        self,
        session: AsyncSession,
        window_hours: Optional[int] = None,
        fallback_minutes: Optional[int] = None,
    ):
        self.session = session
        self.window = timedelta(hours=window_hours or settings.WAIT_TIME_WINDOW_HOURS)
        self.fallback = settings.WAIT_TIME_FALLBACK_MINUTES if fallback_minutes is None else fallback_minutes

    async def recent_wait_times(self, branch_id: uuid.UUID, now: Optional[datetime] = None) -> list[int]:
        since = (now or datetime.utcnow()) - self.window

        async def _load():
            result = await self.session.exec(
                select(QueueEntry.wait_time).where(
                    QueueEntry.branch_id == branch_id,
                    QueueEntry.created_at >= since,
                    QueueEntry.status != QueueEntryStatus.CANCELLED,
                )
            )
            return list(result.all())

        return await retry_read(_load, description="wait-time history read", session=self.session)

    async def estimate(self, branch_id: uuid.UUID, now: Optional[datetime] = None) -> int:
        """Expected wait in minutes for a new entry at ``branch_id``"""
        values = await self.recent_wait_times(branch_id, now)
        estimate = mean_wait_time(values, self.fallback)
        logger.debug(f"Estimated wait for branch {branch_id}: {estimate} min from {len(values)} entries")
        return estimate
