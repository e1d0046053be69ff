"""
WebSocket /v1/ws/{device_id} live stream.

For the lifetime of a connection the socket is subscribed to the fetch
coordinator (series data and progress events) and to the polling scheduler
(latest readings). A non-forced fetch is started on connect; sending the
text ``refresh`` triggers a forced one. Messages are pushed as
``{"type": "data" | "progress" | "latest", "payload": ...}``.

Subscriber callbacks are synchronous, so they only enqueue; a sender task
drains the per-connection queue onto the socket.

Authentication uses ``Authorization: Bearer <token>`` or a ``token`` query
parameter. Rejected connections are closed with code 1008.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status
from fastapi.encoders import jsonable_encoder

from dashboard.src.clients.compute import ComputeError
from dashboard.src.devices import normalize_device_id
from dashboard.src.models import DEFAULT_TIME_RANGE, VALID_TIME_RANGES
from dashboard.src.services.coordinator import FetchCoordinator
from dashboard.src.services.registrations import has_access

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["stream"])

REFRESH_COMMAND = "refresh"


def _bearer_token(websocket: WebSocket) -> str | None:
    header = websocket.headers.get("authorization", "")
    scheme, _, credentials = header.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return websocket.query_params.get("token")


async def _authorize(websocket: WebSocket, device_id: str, time_range: str) -> str | None:
    """Return the user id if the connection may stream the device, else None."""
    state = websocket.app.state
    user_id = state.auth.resolve(_bearer_token(websocket))
    if user_id is None:
        logger.warning("Rejected stream for %s: invalid token", device_id)
        return None
    if time_range not in VALID_TIME_RANGES:
        logger.warning("Rejected stream for %s: invalid time range %s", device_id, time_range)
        return None

    controller_id = state.settings.controller_device_id
    try:
        normalize_device_id(device_id, controller_id)
    except ValueError:
        logger.warning("Rejected stream: malformed device id %s", device_id)
        return None

    async with state.session_factory() as db:
        if not await has_access(db, user_id, device_id, controller_id):
            logger.warning("Rejected stream for %s: not registered to %s", device_id, user_id)
            return None
    return user_id


async def _fetch(
    coordinator: FetchCoordinator, device_id: str, time_range: str, force: bool
) -> None:
    try:
        await coordinator.fetch_data(device_id, time_range, force=force)
    except ComputeError as exc:
        # Subscribers already received the error progress event.
        logger.info("Stream fetch for %s failed: %s", device_id, exc)


async def _send_loop(websocket: WebSocket, queue: asyncio.Queue[dict[str, Any]]) -> None:
    while True:
        message = await queue.get()
        await websocket.send_json(message)


@router.websocket("/ws/{device_id}")
async def device_stream(
    websocket: WebSocket,
    device_id: str,
    time_range: str = DEFAULT_TIME_RANGE,
) -> None:
    """Stream series data, progress and latest readings for a device."""
    user_id = await _authorize(websocket, device_id, time_range)
    if user_id is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    state = websocket.app.state
    coordinator: FetchCoordinator = state.coordinator
    queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue()

    def push(kind: str) -> Callable[[Any], None]:
        def enqueue(payload: Any) -> None:
            queue.put_nowait({"type": kind, "payload": jsonable_encoder(payload)})

        return enqueue

    unsubscribe_series = coordinator.subscribe(device_id, push("data"), push("progress"))
    unsubscribe_latest = state.scheduler.subscribe(device_id, push("latest"))
    logger.info("Stream opened for %s (%s) by %s", device_id, time_range, user_id)

    sender = asyncio.create_task(_send_loop(websocket, queue))
    fetches = {asyncio.create_task(_fetch(coordinator, device_id, time_range, False))}
    try:
        while True:
            message = await websocket.receive_text()
            if message.strip() == REFRESH_COMMAND:
                fetches.add(
                    asyncio.create_task(_fetch(coordinator, device_id, time_range, True))
                )
    except WebSocketDisconnect:
        logger.info("Stream closed for %s by %s", device_id, user_id)
    finally:
        unsubscribe_series()
        unsubscribe_latest()
        sender.cancel()
        for task in fetches:
            task.cancel()
        await asyncio.gather(sender, *fetches, return_exceptions=True)
