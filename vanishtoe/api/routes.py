from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect, status
from fastapi.concurrency import run_in_threadpool
from pydantic import ValidationError

from vanishtoe.api.deps import get_hub, get_registry
from vanishtoe.api.models import RoomListResponse, RoomState, RoomSummary
from vanishtoe.errors import RoomError
from vanishtoe.intents import (
    Intent,
    IntentOutcome,
    LeaveRoomIntent,
    dispatch_intent,
    parse_intent,
)
from vanishtoe.registry import RoomRegistry
from vanishtoe.websocket_hub import RoomWebSocketHub

logger = logging.getLogger(__name__)

router = APIRouter()


async def _dispatch(*, registry: RoomRegistry, ref: str, intent: Intent) -> IntentOutcome:
    # Registry calls may wait on a room lock; keep them off the event loop.
    return await run_in_threadpool(dispatch_intent, registry=registry, connection_ref=ref, intent=intent)


async def _give_up_seat(*, ref: str, code: str, registry: RoomRegistry, hub: RoomWebSocketHub) -> None:
    outcome = await _dispatch(registry=registry, ref=ref, intent=LeaveRoomIntent(room_code=code))
    await hub.deliver(outcome.events)


async def _leave_current_room(*, ref: str, registry: RoomRegistry, hub: RoomWebSocketHub) -> None:
    code = hub.room_of(ref)
    if code is None:
        return
    await hub.exit(ref)
    await _give_up_seat(ref=ref, code=code, registry=registry, hub=hub)


async def _handle_message(*, ref: str, text: str, registry: RoomRegistry, hub: RoomWebSocketHub) -> None:
    try:
        raw: Any = json.loads(text)
    except ValueError:
        await hub.send(ref, {"type": "error", "error": "Message is not valid JSON"})
        return

    request_id = raw.get("request_id") if isinstance(raw, dict) else None
    try:
        intent = parse_intent(raw)
    except ValidationError as e:
        errors = [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()]
        await hub.send(ref, {"type": "error", "error": "Invalid intent", "details": errors, "request_id": request_id})
        return

    previous = hub.room_of(ref)
    outcome = await _dispatch(registry=registry, ref=ref, intent=intent)

    if outcome.joined_room is not None:
        await hub.enter(ref, outcome.joined_room)
    elif outcome.left_room:
        await hub.exit(ref)

    await hub.deliver(outcome.events)

    # One seat per connection: the previous seat goes only once the new one is taken.
    if outcome.joined_room is not None and previous is not None and previous != outcome.joined_room:
        await _give_up_seat(ref=ref, code=previous, registry=registry, hub=hub)

    await hub.send(ref, {"type": "ack", "intent": intent.type, "request_id": request_id, **outcome.reply})


@router.websocket("/ws")
async def room_ws(
    websocket: WebSocket,
    registry: RoomRegistry = Depends(get_registry),
    hub: RoomWebSocketHub = Depends(get_hub),
) -> None:
    ref = await hub.connect(websocket)
    await hub.send(ref, {"type": "connected", "playerId": ref})

    try:
        while True:
            text = await websocket.receive_text()
            await _handle_message(ref=ref, text=text, registry=registry, hub=hub)
    except WebSocketDisconnect:
        pass
    finally:
        await _leave_current_room(ref=ref, registry=registry, hub=hub)
        await hub.disconnect(ref)


@router.get("/healthcheck")
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/rooms", response_model=RoomListResponse)
async def list_rooms_route(registry: RoomRegistry = Depends(get_registry)) -> RoomListResponse:
    return RoomListResponse(rooms=[RoomSummary.of(r) for r in registry.list_rooms()])


@router.get("/rooms/{code}", response_model=RoomState)
async def get_room_route(code: str, registry: RoomRegistry = Depends(get_registry)) -> RoomState:
    room = registry.get_room(code)
    if room is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Room not found")
    return room


@router.post("/rooms/sweep")
async def sweep_rooms_route(registry: RoomRegistry = Depends(get_registry)) -> dict[str, object]:
    """Dev endpoint: expire finished rooms now instead of waiting for the sweeper."""

    try:
        expired = await run_in_threadpool(registry.expire_finished)
    except RoomError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e
    return {"expired": expired}
