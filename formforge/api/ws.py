"""WebSocket endpoint for job topic subscriptions.

Client messages are ``{"event": <control event>, "data": <job id>}``; the
server pushes ``{"event": <name>, "data": <payload>}``.
"""

import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from formforge.jobs.models import topic_for
from formforge.realtime.connection import WebSocketConnection
from formforge.realtime.events import CONTROL_EVENTS

logger = logging.getLogger(__name__)

router = APIRouter()

_services = None


def set_services(services):
    global _services
    _services = services


def _handle_message(hub, connection: WebSocketConnection, raw: str) -> None:
    try:
        message = json.loads(raw)
    except json.JSONDecodeError:
        connection.send("error", {"message": "Message must be JSON"})
        return
    if not isinstance(message, dict):
        connection.send("error", {"message": "Message must be an object with an event name"})
        return

    event = message.get("event")
    if event == "ping":
        connection.send("pong", {})
        return

    control = CONTROL_EVENTS.get(event) if isinstance(event, str) else None
    if control is None:
        connection.send("error", {"message": f"Unknown event: {event}"})
        return

    job_id = message.get("data")
    if not isinstance(job_id, str) or not job_id:
        connection.send("error", {"message": f"{event} requires a job id"})
        return

    kind, join = control
    topic = topic_for(kind, job_id)
    if join:
        hub.subscribe(connection, topic)
    else:
        hub.unsubscribe(connection, topic)


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    if _services is None:
        await websocket.close(code=1013)
        return

    hub = _services.hub
    await websocket.accept()
    connection = WebSocketConnection(websocket)
    connection.start()
    logger.info("WebSocket connected", extra={"connection_id": connection.id})

    try:
        while True:
            frame = await websocket.receive()
            if frame["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(frame.get("code", 1000))
            raw = frame.get("text")
            if raw is None:
                connection.send("error", {"message": "Binary frames are not supported; send JSON text"})
                continue
            _handle_message(hub, connection, raw)
    except WebSocketDisconnect:
        logger.info("WebSocket disconnected", extra={"connection_id": connection.id})
    finally:
        hub.on_disconnect(connection)
        await connection.close()
