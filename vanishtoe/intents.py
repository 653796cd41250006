from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Annotated, Any, Literal, assert_never

from pydantic import BaseModel, Field, TypeAdapter

from vanishtoe.core.events import RoomEvent
from vanishtoe.errors import RoomError
from vanishtoe.registry import RoomRegistry

logger = logging.getLogger(__name__)


class CreateRoomIntent(BaseModel):
    type: Literal["createRoom"] = "createRoom"
    grid_size: int = Field(3, alias="gridSize")
    pair: list[str] | None = None
    # Creator's mark; defaults to the first of the pair.
    player_mark: str | None = Field(None, alias="playerImg")

    model_config = {"populate_by_name": True}


class JoinRoomIntent(BaseModel):
    type: Literal["joinRoom"] = "joinRoom"
    room_code: str = Field(..., alias="roomCode", min_length=1, max_length=32)

    model_config = {"populate_by_name": True}


class MakeMoveIntent(BaseModel):
    type: Literal["makeMove"] = "makeMove"
    room_code: str = Field(..., alias="roomCode", min_length=1, max_length=32)
    # Range is checked by the session so bad indexes are ignored, not rejected.
    index: int

    model_config = {"populate_by_name": True}


class LeaveRoomIntent(BaseModel):
    type: Literal["leaveRoom"] = "leaveRoom"
    room_code: str = Field(..., alias="roomCode", min_length=1, max_length=32)

    model_config = {"populate_by_name": True}


Intent = Annotated[
    CreateRoomIntent | JoinRoomIntent | MakeMoveIntent | LeaveRoomIntent,
    Field(discriminator="type"),
]

_INTENT_ADAPTER: TypeAdapter[Intent] = TypeAdapter(Intent)


def parse_intent(raw: Any) -> Intent:
    """Validate an untrusted client message. Raises pydantic.ValidationError."""
    return _INTENT_ADAPTER.validate_python(raw)


@dataclass(slots=True)
class IntentOutcome:
    """What the transport should do after an intent.

    - `reply`: acknowledgement for the sender only.
    - `events`: room events to fan out.
    - `joined_room`: room the sender now sits in, after a create or join.
    - `left_room`: the sender gave up its seat.
    """

    reply: dict[str, Any]
    events: list[RoomEvent] = field(default_factory=list)
    joined_room: str | None = None
    left_room: bool = False


def dispatch_intent(*, registry: RoomRegistry, connection_ref: str, intent: Intent) -> IntentOutcome:
    """Single entry point for every intent a connection can send."""

    try:
        match intent:
            case CreateRoomIntent():
                created = registry.create_room(
                    creator_ref=connection_ref,
                    size=intent.grid_size,
                    mark_pair=intent.pair,
                    creator_mark=intent.player_mark,
                )
                return IntentOutcome(
                    reply={
                        "roomCode": created.code,
                        "playerId": connection_ref,
                        "playerImg": created.assigned_mark,
                        "gridSize": created.room.size,
                    },
                    events=created.events,
                    joined_room=created.code,
                )

            case JoinRoomIntent():
                joined = registry.join_room(code=intent.room_code, joiner_ref=connection_ref)
                return IntentOutcome(
                    reply={
                        "success": True,
                        "playerImg": joined.assigned_mark,
                        "playerId": connection_ref,
                        "gridSize": joined.room.size,
                    },
                    events=joined.events,
                    joined_room=joined.room.code,
                )

            case MakeMoveIntent():
                moved = registry.dispatch_move(code=intent.room_code, mover_ref=connection_ref, index=intent.index)
                if moved is None:
                    return IntentOutcome(reply={"ignored": True})
                return IntentOutcome(reply={"ok": True, "kind": moved.kind}, events=moved.events)

            case LeaveRoomIntent():
                left = registry.leave_room(code=intent.room_code, leaver_ref=connection_ref)
                return IntentOutcome(
                    reply={"left": True, "roomDestroyed": left.now_empty},
                    events=left.events,
                    left_room=True,
                )

            case _:
                assert_never(intent)
    except RoomError as e:
        logger.info("Intent %s from %s rejected: %s", intent.type, connection_ref, e)
        return IntentOutcome(reply={"error": str(e)})
