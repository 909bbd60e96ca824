import asyncio
import json
import logging
from queue import Queue, Empty
from typing import Set

from fastapi import WebSocket

log = logging.getLogger("ws")


class ConnectionManager:
    """Dashboard clients listening for new stove readings."""

    def __init__(self) -> None:
        self.active_connections: Set[WebSocket] = set()
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket):
        await websocket.accept()
        async with self._lock:
            self.active_connections.add(websocket)
        log.info("ws client connected (%d active)", len(self.active_connections))

    async def disconnect(self, websocket: WebSocket):
        async with self._lock:
            self.active_connections.discard(websocket)

    async def broadcast_text(self, message: str):
        async with self._lock:
            targets = list(self.active_connections)
        if targets:
            await asyncio.gather(*(self._safe_send(ws, message) for ws in targets))

    async def _safe_send(self, ws: WebSocket, message: str):
        try:
            await ws.send_text(message)
        except Exception as e:
            log.info("dropping ws client: %s", e)
            await self.disconnect(ws)


def publish(message_queue: Queue, kind: str, data: dict):
    """Hand a message from a (threadpool) request handler to the event loop."""
    message_queue.put(json.dumps({"kind": kind, "data": data}, default=str))


async def queue_forwarder(message_queue: Queue, manager: ConnectionManager):
    while True:
        try:
            msg = message_queue.get_nowait()
        except Empty:
            await asyncio.sleep(0.1)
            continue
        await manager.broadcast_text(msg)
