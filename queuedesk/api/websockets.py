"""
WebSocket endpoints for real-time queue updates
"""

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status
from datetime import datetime
from typing import Optional
import structlog
import uuid

from queuedesk.core.auth import capability_from_token
from queuedesk.core.errors import QueueError
from queuedesk.core.permissions import Permission, can_act_on_branch, has_permission
from queuedesk.core.websocket_manager import manager
from queuedesk.services.live_view import live_view

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.websocket("/branches/{branch_id}")
async def websocket_branch(
    websocket: WebSocket,
    branch_id: uuid.UUID,
    token: Optional[str] = None
):
    """Queue snapshots for one branch

    Without a token the socket is a customer status screen. A staff token
    for the branch turns it into a dashboard feed.
    """
    is_staff = False
    if token:
        capability = capability_from_token(token)
        if capability is None or not (
            has_permission(Permission.QUEUE_VIEW, capability.permissions)
            and can_act_on_branch(capability, branch_id)
        ):
            logger.warning(f"Rejected dashboard socket for branch {branch_id}")
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return
        is_staff = True

    try:
        board, dashboard = await live_view.snapshot(branch_id)
    except QueueError as e:
        logger.warning(f"Rejected socket for branch {branch_id}: {e.message}")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    if is_staff:
        message = await manager.connect_staff(websocket, branch_id)
    else:
        message = await manager.connect_status(websocket, branch_id)

    try:
        await websocket.send_json({
            "type": "connection_confirmed",
            "branch_id": str(branch_id),
            "message": message
        })
        await websocket.send_json({
            "type": "queue_snapshot",
            "branch_id": str(branch_id),
            "timestamp": datetime.utcnow().isoformat(),
            **(dashboard if is_staff else board),
        })

        # Listen for incoming messages (client pings)
        while True:
            data = await websocket.receive_json()
            logger.debug(f"Received message on branch {branch_id} socket: {data}")

            if data.get("type") == "ping":
                await websocket.send_json({
                    "type": "pong",
                    "timestamp": datetime.utcnow().isoformat()
                })

    except WebSocketDisconnect:
        logger.info(f"Branch {branch_id} socket disconnected")
    except Exception as e:
        logger.error(f"Error in branch WebSocket: {e}", exc_info=True)
    finally:
        manager.disconnect(websocket)
