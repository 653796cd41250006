from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Literal

EventType = Literal[
    "WAITING",
    "GAME_STARTED",
    "STATE_UPDATED",
    "GAME_OVER",
    "PLAYER_LEFT",
]

# Names the browser client listens for.
WIRE_NAMES: dict[str, str] = {
    "WAITING": "waiting",
    "GAME_STARTED": "startGame",
    "STATE_UPDATED": "update",
    "GAME_OVER": "gameOver",
    "PLAYER_LEFT": "playerLeft",
}


@dataclass(frozen=True, slots=True)
class RoomEvent:
    """Something the transport should deliver.

    `recipients` lists connection refs; `None` means everyone seated in the room.
    """

    type: EventType
    room_code: str
    payload: dict[str, Any]
    ts: datetime
    recipients: tuple[str, ...] | None = None

    @staticmethod
    def now(
        *,
        type: EventType,
        room_code: str,
        payload: dict[str, Any],
        recipients: tuple[str, ...] | None = None,
    ) -> "RoomEvent":
        return RoomEvent(
            type=type,
            room_code=room_code,
            payload=payload,
            ts=datetime.now(timezone.utc),
            recipients=recipients,
        )

    def to_wire(self) -> dict[str, Any]:
        return {"type": WIRE_NAMES[self.type], "room_code": self.room_code, **self.payload}
