"""
WebSocket connection manager for real-time updates

Manages WebSocket connections per branch and pushes queue snapshots to
connected viewers.
"""

from typing import Dict, Set
from fastapi import WebSocket
from datetime import datetime
from json import dumps
import structlog
import uuid

logger = structlog.get_logger(__name__)


class ConnectionManager:
    """Manages WebSocket connections"""

    def __init__(self):
        # Customer status screens by branch ID
        self.status_connections: Dict[uuid.UUID, Set[WebSocket]] = {}

        # Staff dashboards by branch ID
        self.staff_connections: Dict[uuid.UUID, Set[WebSocket]] = {}

        # WebSocket to branch mappings (for cleanup)
        self.connection_to_status: Dict[WebSocket, uuid.UUID] = {}
        self.connection_to_staff: Dict[WebSocket, uuid.UUID] = {}

    async def connect_status(self, websocket: WebSocket, branch_id: uuid.UUID):
        """Connect a customer status screen for a branch"""
        await websocket.accept()

        if branch_id not in self.status_connections:
            self.status_connections[branch_id] = set()

        self.status_connections[branch_id].add(websocket)
        self.connection_to_status[websocket] = branch_id

        logger.info(f"Connected status screen for branch {branch_id}")
        return f"Connected to branch {branch_id} status"

    async def connect_staff(self, websocket: WebSocket, branch_id: uuid.UUID):
        """Connect a staff dashboard for a branch"""
        await websocket.accept()

        if branch_id not in self.staff_connections:
            self.staff_connections[branch_id] = set()

        self.staff_connections[branch_id].add(websocket)
        self.connection_to_staff[websocket] = branch_id

        logger.info(f"Connected staff dashboard for branch {branch_id}")
        return f"Connected to branch {branch_id} dashboard"

    def disconnect(self, websocket: WebSocket):
        """Disconnect a WebSocket connection"""
        if websocket in self.connection_to_status:
            branch_id = self.connection_to_status.pop(websocket)
            connections = self.status_connections.get(branch_id)
            if connections is not None:
                connections.discard(websocket)
                if not connections:
                    del self.status_connections[branch_id]
            logger.info(f"Disconnected status screen for branch {branch_id}")

        elif websocket in self.connection_to_staff:
            branch_id = self.connection_to_staff.pop(websocket)
            connections = self.staff_connections.get(branch_id)
            if connections is not None:
                connections.discard(websocket)
                if not connections:
                    del self.staff_connections[branch_id]
            logger.info(f"Disconnected staff dashboard for branch {branch_id}")
        else:
            logger.warning("Attempted to disconnect unknown WebSocket")

    def has_viewers(self, branch_id: uuid.UUID) -> bool:
        return bool(self.status_connections.get(branch_id) or self.staff_connections.get(branch_id))

    async def _broadcast(self, connections: Set[WebSocket], message: dict) -> int:
        message_json = dumps(message, default=str)

        disconnected = []
        for connection in list(connections):
            try:
                await connection.send_text(message_json)
            except Exception as e:
                logger.error(f"Error sending to connection: {e}")
                disconnected.append(connection)

        # Clean up dead connections
        for connection in disconnected:
            self.disconnect(connection)

        return len(connections)

    async def broadcast_to_status(self, branch_id: uuid.UUID, message: dict):
        """Broadcast message to all customer status screens of a branch"""
        if branch_id not in self.status_connections:
            logger.debug(f"No status screens for branch {branch_id}")
            return

        count = await self._broadcast(self.status_connections[branch_id], message)
        logger.debug(f"Broadcasted to {count} status screens for branch {branch_id}")

    async def broadcast_to_staff(self, branch_id: uuid.UUID, message: dict):
        """Broadcast message to all staff dashboards of a branch"""
        if branch_id not in self.staff_connections:
            logger.debug(f"No staff dashboards for branch {branch_id}")
            return

        count = await self._broadcast(self.staff_connections[branch_id], message)
        logger.debug(f"Broadcasted to {count} staff dashboards for branch {branch_id}")

    async def send_snapshot(self, branch_id: uuid.UUID, status_board: dict, dashboard: dict):
        """Push freshly computed views to every viewer of a branch"""
        timestamp = datetime.utcnow().isoformat()
        await self.broadcast_to_status(branch_id, {
            "type": "queue_snapshot",
            "branch_id": str(branch_id),
            "timestamp": timestamp,
            **status_board,
        })
        await self.broadcast_to_staff(branch_id, {
            "type": "queue_snapshot",
            "branch_id": str(branch_id),
            "timestamp": timestamp,
            **dashboard,
        })


# Global connection manager instance
manager = ConnectionManager()
