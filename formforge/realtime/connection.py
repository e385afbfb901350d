"""Subscriber connections for the notification hub."""

import asyncio
import logging
import uuid
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from fastapi import WebSocket
from starlette.websockets import WebSocketState

logger = logging.getLogger(__name__)


class Connection(ABC):
    """A subscriber endpoint. `send` must never block the caller."""

    def __init__(self, connection_id: Optional[str] = None):
        self.id = connection_id or uuid.uuid4().hex

    @abstractmethod
    def send(self, event: str, payload: Dict[str, Any]) -> None:
        ...

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.id})"


class WebSocketConnection(Connection):
    """Wraps a FastAPI WebSocket with an outbound queue and a writer task.

    Messages leave in enqueue order, so events published on one topic reach
    this connection in publish order. Delivery is best-effort: once the
    socket is gone, queued messages are dropped.
    """

    def __init__(self, websocket: WebSocket, connection_id: Optional[str] = None):
        super().__init__(connection_id)
        self._websocket = websocket
        self._outbox: asyncio.Queue = asyncio.Queue()
        self._writer: Optional[asyncio.Task] = None
        self._closed = False

    def start(self) -> None:
        self._writer = asyncio.create_task(self._write_loop(), name=f"ws-writer-{self.id}")

    def send(self, event: str, payload: Dict[str, Any]) -> None:
        if self._closed:
            return
        self._outbox.put_nowait({"event": event, "data": payload})

    async def _write_loop(self) -> None:
        while True:
            message = await self._outbox.get()
            if self._websocket.application_state != WebSocketState.CONNECTED:
                continue
            try:
                await self._websocket.send_json(message)
            except Exception as e:
                logger.info(
                    "Dropping message for closed connection",
                    extra={"connection_id": self.id, "event": message["event"], "error_msg": str(e)},
                )
                self._closed = True
                return

    async def close(self) -> None:
        self._closed = True
        if self._writer is not None:
            self._writer.cancel()
            try:
                await self._writer
            except asyncio.CancelledError:
                pass
