from __future__ import annotations

from typing import Any, Dict

import socketio
from fastapi import WebSocket

from .lifecycle.alert_manager import EventSink, LifecycleEvent


class LiveUpdateHub:
    """Fans every store change out to WebSocket and Socket.IO subscribers.

    Payloads only say what changed; subscribers refetch the snapshot and
    recompute rankings or inflow views from it.
    """

    def __init__(self, sio_server: socketio.AsyncServer) -> None:
        self.sio = sio_server
        self.websockets: set[WebSocket] = set()

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        self.websockets.add(websocket)

    def disconnect(self, websocket: WebSocket) -> None:
        self.websockets.discard(websocket)

    async def notify(self, event: str, payload: Dict[str, Any]) -> None:
        message = {"event": event, "payload": payload}
        stale = []
        for connection in self.websockets:
            try:
                await connection.send_json(message)
            except Exception:
                stale.append(connection)
        for connection in stale:
            self.disconnect(connection)
        await self.sio.emit(event, payload)

    async def publish(self, event: LifecycleEvent) -> None:
        await self.notify(event.type, event.payload)


sio = socketio.AsyncServer(async_mode="asgi", cors_allowed_origins="*")
hub = LiveUpdateHub(sio)


def get_event_sink() -> EventSink:
    return hub.publish
