"""WebSocket push of session change notifications.

Devices treat every message as a hint to re-read; the payload only carries
enough to decide whether a re-read is worth it. Round content never leaves
the server through this channel.
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import TYPE_CHECKING

import structlog
from starlette.websockets import WebSocket, WebSocketDisconnect

from party.logic.codes import is_valid_code, normalize_code
from shared.dal import OBSERVATIONS, SEATS, SESSIONS
from shared.logging import bind_session_context

logger = structlog.get_logger()

if TYPE_CHECKING:
    from party.session.engine import GameEngine
    from shared.dal import ChangeEvent

_SECRET_FIELDS = ("content",)

# Notifications buffered per connection before a slow client is dropped.
OUTBOX_SIZE = 64
SLOW_CONSUMER_CLOSE_CODE = 4008


def change_payload(event: ChangeEvent) -> dict[str, object]:
    record = {k: v for k, v in event.record.items() if k not in _SECRET_FIELDS}
    return {"type": "change", "table": event.table, "kind": event.kind.value, "record": record}


async def websocket_endpoint(websocket: WebSocket, engine: GameEngine) -> None:
    code = normalize_code(websocket.path_params["code"])
    if not is_valid_code(code):
        await websocket.close(code=4000, reason="invalid_code")
        return
    if await engine.find_session(code) is None:
        await websocket.close(code=4004, reason="session_not_found")
        return

    await websocket.accept()
    bind_session_context(code)
    logger.info("websocket connected")

    outbox: asyncio.Queue[dict[str, object]] = asyncio.Queue(maxsize=OUTBOX_SIZE)
    overflowed = False

    async def on_change(event: ChangeEvent) -> None:
        nonlocal overflowed
        if overflowed:
            return
        try:
            outbox.put_nowait(change_payload(event))
        except asyncio.QueueFull:
            overflowed = True
            logger.warning("websocket outbox full, dropping connection", size=OUTBOX_SIZE)
            for subscription in subscriptions:
                subscription.close()
            sender.cancel()
            with contextlib.suppress(RuntimeError):
                await websocket.close(code=SLOW_CONSUMER_CLOSE_CODE, reason="slow_consumer")

    subscriptions = [
        engine.store.subscribe(table, {"code": code}, on_change) for table in (SESSIONS, SEATS, OBSERVATIONS)
    ]
    sender = asyncio.create_task(_pump(websocket, outbox))
    try:
        while True:
            # Incoming frames are ignored; receiving only detects the disconnect.
            await websocket.receive_text()
    except (WebSocketDisconnect, RuntimeError):
        pass
    finally:
        for subscription in subscriptions:
            subscription.close()
        sender.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sender
        logger.info("websocket disconnected")
        structlog.contextvars.clear_contextvars()


async def _pump(websocket: WebSocket, outbox: asyncio.Queue[dict[str, object]]) -> None:
    while True:
        payload = await outbox.get()
        try:
            await websocket.send_json(payload)
        except (WebSocketDisconnect, RuntimeError):
            return
