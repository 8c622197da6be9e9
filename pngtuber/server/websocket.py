"""
WebSocket Handler - Pushes avatar events to browser overlays.

Handles:
- Talk state, volume and error events (server -> overlay)
- Threshold changes and microphone start (overlay -> server)

Message format (server -> overlay):
    {"type": "snapshot", "talking": bool, "volume": float, "threshold": int, ...}
    {"type": "talk_state", "talking": bool}
    {"type": "volume", "volume": float}
    {"type": "error", "kind": str, "message": str}
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from ..errors import ErrorKind
from ..presenter.base import BasePresenter
from ..session.session import AvatarSession

logger = logging.getLogger(__name__)

websocket_router = APIRouter()

# Per-client backlog before volume frames start being dropped
CLIENT_QUEUE_SIZE = 64


@dataclass
class ClientChannel:
    """Outbound queue and writer task for one connected overlay."""
    websocket: WebSocket
    queue: asyncio.Queue = field(default_factory=lambda: asyncio.Queue(maxsize=CLIENT_QUEUE_SIZE))
    writer: Optional[asyncio.Task] = None


class OverlayBroadcaster(BasePresenter):
    """
    Presenter that fans session events out to every connected overlay.

    Messages go through a bounded queue per client so a slow browser
    never blocks the audio pipeline.
    """

    def __init__(self):
        self.clients: dict[str, ClientChannel] = {}
        self.is_talking = False
        self.volume = 0.0
        self.last_error: Optional[dict] = None

    # ---------- BasePresenter ----------

    def on_talk_state_changed(self, is_talking: bool) -> None:
        self.is_talking = is_talking
        self.broadcast({"type": "talk_state", "talking": is_talking})

    def on_volume_level(self, percent: float) -> None:
        self.volume = percent
        self.broadcast({"type": "volume", "volume": round(percent, 1)}, droppable=True)

    def on_acquisition_error(self, kind: ErrorKind, message: str) -> None:
        self.last_error = {"type": "error", "kind": kind.value, "message": message}
        self.broadcast(self.last_error)

    # ---------- Connections ----------

    async def connect(self, websocket: WebSocket, client_id: str, snapshot: dict):
        """Accept a new overlay and send it the current state."""
        await websocket.accept()
        await websocket.send_json(snapshot)
        if self.last_error:
            await websocket.send_json(self.last_error)

        channel = ClientChannel(websocket=websocket)
        channel.writer = asyncio.create_task(self._writer(client_id, channel))
        self.clients[client_id] = channel
        logger.info(f"✅ Overlay connected: {client_id}")

    async def disconnect(self, client_id: str):
        """Forget a client and stop its writer."""
        channel = self.clients.pop(client_id, None)
        if channel is None:
            return
        if channel.writer:
            channel.writer.cancel()
            await asyncio.gather(channel.writer, return_exceptions=True)
        logger.info(f"👋 Overlay disconnected: {client_id}")

    def send(self, client_id: str, message: dict, droppable: bool = False) -> bool:
        """Queue a message for one client. Returns False if it was dropped."""
        channel = self.clients.get(client_id)
        if channel is None:
            return False
        try:
            channel.queue.put_nowait(message)
            return True
        except asyncio.QueueFull:
            if droppable:
                return False
            # State changes must get through; make room by dropping the oldest
            channel.queue.get_nowait()
            channel.queue.put_nowait(message)
            return True

    def broadcast(self, message: dict, droppable: bool = False):
        for client_id in list(self.clients):
            self.send(client_id, message, droppable=droppable)

    async def _writer(self, client_id: str, channel: ClientChannel):
        while True:
            message = await channel.queue.get()
            try:
                await channel.websocket.send_json(message)
            except Exception as e:
                logger.warning(f"⚠️ Failed to send to {client_id}: {e}")
                return


def session_snapshot(session: AvatarSession) -> dict:
    """Current state, sent to an overlay when it connects."""
    return {
        "type": "snapshot",
        "talking": session.is_talking,
        "volume": round(session.smoothed_volume, 1),
        "threshold": session.threshold,
        "source": session.selection.value,
        "capturing": session.arbiter.started,
    }


async def handle_client_message(session: AvatarSession, broadcaster: OverlayBroadcaster,
                                client_id: str, message: dict):
    """Handle one JSON message from an overlay."""
    msg_type = message.get("type")

    if msg_type == "set_threshold":
        try:
            value = session.set_threshold(int(message.get("value")))
        except (TypeError, ValueError):
            broadcaster.send(client_id, {"type": "error", "kind": "invalid_request",
                                         "message": "threshold must be an integer"})
            return
        broadcaster.broadcast({"type": "threshold", "value": value})

    elif msg_type == "enable_microphone":
        started = await session.enable_microphone()
        broadcaster.send(client_id, {"type": "capture", "started": started,
                                     "source": session.selection.value})

    else:
        logger.debug(f"Ignoring overlay message type: {msg_type}")


@websocket_router.websocket("/ws/{client_id}")
async def websocket_endpoint(websocket: WebSocket, client_id: str):
    """Overlay event stream."""
    session: AvatarSession = websocket.app.state.session
    broadcaster: OverlayBroadcaster = websocket.app.state.broadcaster

    await broadcaster.connect(websocket, client_id, session_snapshot(session))
    try:
        while True:
            data = await websocket.receive_json()
            if isinstance(data, dict):
                await handle_client_message(session, broadcaster, client_id, data)
    except WebSocketDisconnect:
        pass
    finally:
        await broadcaster.disconnect(client_id)
