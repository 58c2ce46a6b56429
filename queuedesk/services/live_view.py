"""
Live views: recompute queue snapshots on every change event and push them
to connected status screens and staff dashboards
"""

from typing import Callable, Optional
import uuid

from sqlmodel.ext.asyncio.session import AsyncSession
import structlog

from queuedesk.core.database import async_session_maker
from queuedesk.core.events import QUEUE_EVENT_TYPES, DomainEvent, EventBus, event_bus
from queuedesk.core.websocket_manager import ConnectionManager, manager
from queuedesk.schemas.queue import dump
from queuedesk.services.queue_engine import QueueLifecycleEngine

logger = structlog.get_logger(__name__)


class LiveQueueView:
    """Change-feed subscriber that keeps every viewer of a branch in sync"""

    def __init__(
        self,
        session_factory: Callable[[], AsyncSession] = async_session_maker,
        connections: ConnectionManager = manager,
        bus: EventBus = event_bus,
    ):
        self.session_factory = session_factory
        self.connections = connections
        self.bus = bus

    def start(self):
        for event_type in QUEUE_EVENT_TYPES:
            self.bus.subscribe(event_type, self.handle_change)
        logger.info("Live queue view subscribed to change feed")

    def stop(self):
        for event_type in QUEUE_EVENT_TYPES:
            self.bus.unsubscribe(event_type, self.handle_change)

    async def snapshot(self, branch_id: uuid.UUID) -> tuple[dict, dict]:
        """Fresh status board and staff dashboard for a branch"""
        async with self.session_factory() as session:
            engine = QueueLifecycleEngine(session)
            board = await engine.status_board(branch_id)
            dashboard = await engine.dashboard(branch_id)
        return dump(board), dump(dashboard)

    async def push(self, branch_id: uuid.UUID):
        board, dashboard = await self.snapshot(branch_id)
        await self.connections.send_snapshot(branch_id, board, dashboard)

    async def handle_change(self, event: DomainEvent):
        branch_id: Optional[uuid.UUID] = getattr(event, "branch_id", None)
        if branch_id is None or not self.connections.has_viewers(branch_id):
            return
        logger.debug(f"Pushing snapshot for branch {branch_id} after {event.__class__.__name__}")
        await self.push(branch_id)


live_view = LiveQueueView()
