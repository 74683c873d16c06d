"""WebSocket push channel for job events.

Each connected socket gets its own event bus subscription. Messages are JSON
objects ``{"event": "<name>", "data": "<string>"}``. A client that stops
reading until its queue overflows is disconnected.
"""

import asyncio
import contextlib

import structlog
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status
from starlette.websockets import WebSocketState

from homedash.middleware.auth import get_auth
from homedash.models.job import event_to_message
from homedash.services.event_bus import EventBus, Subscription

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["events"])

WS_CLOSE_UNAUTHORIZED = 4401
WS_CLOSE_SLOW_CONSUMER = 4429


# Dependency placeholder (to be configured in main app)
async def get_event_bus() -> EventBus:
    """Get event bus instance."""
    raise NotImplementedError("Event bus dependency not configured")


async def _forward(websocket: WebSocket, subscription: Subscription) -> None:
    async for event in subscription:
        await websocket.send_json(event_to_message(event))


async def _drain(websocket: WebSocket) -> None:
    # Client frames, text or binary, are ignored; receiving is how a disconnect is noticed
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return


@router.websocket("/ws/events")
async def events_ws(
    websocket: WebSocket,
    event_bus: EventBus = Depends(get_event_bus),  # noqa: B008
) -> None:
    if not get_auth().authenticate_websocket(websocket):
        await websocket.close(code=WS_CLOSE_UNAUTHORIZED)
        return

    await websocket.accept()
    subscription = event_bus.subscribe()
    logger.info("event_stream_connected", subscriber_id=subscription.subscriber_id)

    sender = asyncio.create_task(_forward(websocket, subscription))
    receiver = asyncio.create_task(_drain(websocket))

    try:
        done, _ = await asyncio.wait({sender, receiver}, return_when=asyncio.FIRST_COMPLETED)
        for task in done:
            exc = task.exception()
            if exc is not None and not isinstance(exc, WebSocketDisconnect):
                logger.warning(
                    "event_stream_send_failed",
                    subscriber_id=subscription.subscriber_id,
                    error=type(exc).__name__,
                )
    finally:
        for task in (sender, receiver):
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError, Exception):
                await task
        event_bus.unsubscribe(subscription)

    if websocket.client_state == WebSocketState.CONNECTED:
        code = WS_CLOSE_SLOW_CONSUMER if subscription.overflowed else status.WS_1000_NORMAL_CLOSURE
        with contextlib.suppress(RuntimeError):
            await websocket.close(code=code)

    logger.info(
        "event_stream_disconnected",
        subscriber_id=subscription.subscriber_id,
        overflowed=subscription.overflowed,
    )
