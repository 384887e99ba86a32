"""
WebSocket Handler

Live session updates via WebSocket connection.
The client sends taps and setup commands; the server pushes a snapshot after
every calibration change and after every new set of stance metrics.
"""

import json
import time
import asyncio
import logging
from typing import Optional
from fastapi import WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from .schemas import (
    WebSocketMessageType,
    TapRequest,
    SessionSnapshotSchema,
)
from core.errors import SetupError
from core.services import SetupCoordinator, SessionSnapshot

# Configure logging
logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


def _snapshot_message(message_type: str, snapshot: SessionSnapshot) -> dict:
    return {
        "type": message_type,
        "data": SessionSnapshotSchema.from_domain(snapshot).model_dump(mode="json"),
        "timestamp": _now_ms(),
    }


class ConnectionManager:
    """
    Manages WebSocket connections.

    Each connection gets its own update queue from the coordinator.
    """

    def __init__(self):
        self.active_connections: list[WebSocket] = []
        self.update_queues: dict[WebSocket, asyncio.Queue] = {}

    async def connect(self, websocket: WebSocket, coordinator: SetupCoordinator) -> None:
        """Accept new WebSocket connection and subscribe it to updates."""
        await websocket.accept()
        self.active_connections.append(websocket)
        self.update_queues[websocket] = coordinator.subscribe()

        logger.info(f"New WebSocket connection. Total: {len(self.active_connections)}")

    def disconnect(self, websocket: WebSocket, coordinator: SetupCoordinator) -> None:
        """Handle WebSocket disconnection."""
        if websocket in self.active_connections:
            self.active_connections.remove(websocket)

        queue = self.update_queues.pop(websocket, None)
        if queue is not None:
            coordinator.unsubscribe(queue)

        logger.info(f"WebSocket disconnected. Remaining: {len(self.active_connections)}")

    def get_updates(self, websocket: WebSocket) -> Optional[asyncio.Queue]:
        return self.update_queues.get(websocket)

    async def send_json(self, websocket: WebSocket, data: dict) -> None:
        """Send JSON data to a specific connection."""
        try:
            await websocket.send_json(data)
        except Exception as e:
            logger.error(f"Failed to send WebSocket message: {e}")

    async def send_error(self, websocket: WebSocket, error: str, detail: str = "") -> None:
        await self.send_json(websocket, {
            "type": WebSocketMessageType.ERROR.value,
            "data": {"error": error, "detail": detail},
            "timestamp": _now_ms()
        })


# Global connection manager
manager = ConnectionManager()


async def websocket_endpoint(websocket: WebSocket) -> None:
    """
    WebSocket endpoint for the live setup session.

    Protocol:
    1. Client connects, server sends `session_started` with a snapshot
    2. Client sends `tap`, `lock` or `reset`
    3. Server pushes `snapshot`, `metrics` and `pipeline` updates
    4. Client sends `end_session` (or just disconnects)

    Message format (client -> server):
    {
        "type": "tap",
        "data": {"position": {"x": 0.0, "y": -1.3, "z": -2.0}},
        "timestamp": 1704067200000
    }

    Message format (server -> client):
    {
        "type": "metrics",
        "data": {"calibration": {...}, "metrics": {...}, "pipeline": {...}},
        "timestamp": 1704067200025
    }
    """
    coordinator: SetupCoordinator = websocket.app.state.coordinator
    await manager.connect(websocket, coordinator)
    pusher: Optional[asyncio.Task] = None

    try:
        await manager.send_json(
            websocket,
            _snapshot_message(WebSocketMessageType.SESSION_STARTED.value, coordinator.snapshot()),
        )

        updates = manager.get_updates(websocket)
        if updates is not None:
            pusher = asyncio.create_task(push_updates(websocket, updates))

        # Main message loop
        while True:
            try:
                data = await websocket.receive_json()
            except json.JSONDecodeError:
                await manager.send_error(websocket, "Invalid JSON")
                continue

            msg_type = data.get("type")

            if msg_type == WebSocketMessageType.END_SESSION.value:
                await manager.send_json(websocket, {
                    "type": WebSocketMessageType.SESSION_ENDED.value,
                    "data": {"message": "Session ended"},
                    "timestamp": _now_ms()
                })
                break

            await handle_command(websocket, coordinator, msg_type, data.get("data") or {})

    except WebSocketDisconnect:
        logger.info("Client disconnected")
    except Exception as e:
        logger.error(f"WebSocket error: {e}")
    finally:
        if pusher is not None:
            pusher.cancel()
        manager.disconnect(websocket, coordinator)


async def handle_command(
    websocket: WebSocket,
    coordinator: SetupCoordinator,
    msg_type: Optional[str],
    payload: dict,
) -> None:
    """
    Apply a client command. Success is reported by the snapshot push that
    follows; failures are answered with an error message.
    """
    try:
        if msg_type == WebSocketMessageType.TAP.value:
            tap = TapRequest.model_validate(payload)
            position = tap.position.to_domain() if tap.position else None
            await coordinator.handle_tap(position)
        elif msg_type == WebSocketMessageType.LOCK.value:
            await coordinator.lock_setup()
        elif msg_type == WebSocketMessageType.RESET.value:
            await coordinator.reset()
        else:
            await manager.send_error(websocket, f"Unknown message type: {msg_type}")
    except ValidationError as e:
        await manager.send_error(websocket, "Invalid message", str(e))
    except SetupError as e:
        await manager.send_error(websocket, type(e).__name__, str(e))


async def push_updates(websocket: WebSocket, updates: asyncio.Queue) -> None:
    """Forward coordinator updates to the client until cancelled."""
    while True:
        event, snapshot = await updates.get()
        await manager.send_json(websocket, _snapshot_message(event, snapshot))
