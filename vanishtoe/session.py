from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Literal, TypeGuard

from vanishtoe.api.models import PlayerState, RoomPhase, RoomState, Seat
from vanishtoe.core.evaluator import DRAW, has_line, is_draw
from vanishtoe.core.events import RoomEvent
from vanishtoe.errors import AlreadySeated, InvalidConfig, PlayerNotInRoom, RoomFull
from vanishtoe.fsm import RoomFSM

logger = logging.getLogger(__name__)

MIN_GRID_SIZE = 3


def _now() -> datetime:
    return datetime.now(tz=UTC)


@dataclass(frozen=True, slots=True)
class JoinResult:
    assigned_mark: str
    room: RoomState
    events: list[RoomEvent]


@dataclass(frozen=True, slots=True)
class MoveResult:
    kind: Literal["update", "game_over"]
    room: RoomState
    events: list[RoomEvent]
    winner: str | None = None
    # Cell cleared by the vanishing rule on this move, if any.
    evicted: int | None = None


@dataclass(frozen=True, slots=True)
class LeaveResult:
    room: RoomState
    now_empty: bool
    events: list[RoomEvent] = field(default_factory=list)


def validate_room_config(
    *,
    size: int,
    mark_pair: tuple[str, ...] | list[str],
    creator_mark: str | None = None,
    max_size: int | None = None,
) -> tuple[str, str]:
    if isinstance(size, bool) or not isinstance(size, int):
        raise InvalidConfig("Grid size must be an integer")
    if size < MIN_GRID_SIZE:
        raise InvalidConfig(f"Grid size must be at least {MIN_GRID_SIZE}")
    if max_size is not None and size > max_size:
        raise InvalidConfig(f"Grid size must be at most {max_size}")

    pair = tuple(mark_pair)
    if len(pair) != 2:
        raise InvalidConfig("Mark pair must contain exactly two marks")
    if any(not isinstance(m, str) or not m for m in pair):
        raise InvalidConfig("Marks must be non-empty strings")
    if pair[0] == pair[1]:
        raise InvalidConfig("Marks must be distinct")
    if pair[0] == DRAW or pair[1] == DRAW:
        raise InvalidConfig(f"'{DRAW}' is reserved and cannot be used as a mark")
    if creator_mark is not None and creator_mark not in pair:
        raise InvalidConfig("Creator mark must be one of the pair")
    return pair[0], pair[1]


def create_room_state(
    *,
    code: str,
    size: int,
    mark_pair: tuple[str, ...] | list[str],
    creator_ref: str,
    creator_mark: str | None = None,
    max_size: int | None = None,
) -> tuple[RoomState, list[RoomEvent]]:
    pair = validate_room_config(size=size, mark_pair=mark_pair, creator_mark=creator_mark, max_size=max_size)

    now = _now()
    room = RoomState(
        code=code,
        size=size,
        mark_pair=pair,
        grid=[None] * (size * size),
        first=PlayerState(connection_ref=creator_ref, mark=creator_mark or pair[0]),
        second=None,
        turn_index=0,
        phase=RoomPhase.waiting_for_opponent,
        created_at=now,
        last_updated_at=now,
    )

    events = [
        RoomEvent.now(
            type="WAITING",
            room_code=code,
            payload={"message": "Waiting for opponent to join..."},
            recipients=(creator_ref,),
        )
    ]
    return room, events


def join(*, room: RoomState, joiner_ref: str) -> JoinResult:
    if room.seat_of(joiner_ref) is not None:
        raise AlreadySeated("Already in this room")
    if room.first is not None and room.second is not None:
        raise RoomFull("Room full")
    if room.phase != RoomPhase.waiting_for_opponent:
        raise RoomFull("Room is not accepting players")

    open_seat = Seat.second if room.second is None else Seat.first
    taken = {p.mark for _, p in room.seats()}
    assigned = next(m for m in room.mark_pair if m not in taken)

    fsm = RoomFSM(room)
    fsm.opponent_joined()

    room.set_player(open_seat, PlayerState(connection_ref=joiner_ref, mark=assigned))
    fsm.sync_phase_to_model()
    room.last_updated_at = _now()

    events = [RoomEvent.now(type="GAME_STARTED", room_code=room.code, payload=room.snapshot())]
    return JoinResult(assigned_mark=assigned, room=room, events=events)


def _is_valid_index(room: RoomState, index: object) -> TypeGuard[int]:
    if isinstance(index, bool) or not isinstance(index, int):
        return False
    return 0 <= index < room.size * room.size


def move(*, room: RoomState, mover_ref: str, index: object) -> MoveResult | None:
    """Apply one move, or return None and leave the room untouched.

    Rejected silently: room not in progress, not the mover's turn, index out of
    range, or the cell held by the opponent. Re-marking one of the mover's own
    cells is allowed.
    """

    if room.phase != RoomPhase.in_progress:
        logger.debug("room %s: move ignored, phase=%s", room.code, room.phase.value)
        return None

    seat = room.turn_seat
    player = room.player_at(seat)
    if player is None or player.connection_ref != mover_ref:
        logger.debug("room %s: move ignored, not %s's turn", room.code, mover_ref)
        return None

    if not _is_valid_index(room, index):
        logger.debug("room %s: move ignored, bad index %r", room.code, index)
        return None

    occupant = room.grid[index]
    if occupant is not None and occupant != player.mark:
        logger.debug("room %s: move ignored, cell %d taken", room.code, index)
        return None

    # Re-marking an own cell refreshes it to the newest position instead of holding it twice.
    if occupant == player.mark:
        player.move_history.remove(index)
    player.move_history.append(index)
    room.grid[index] = player.mark

    evicted: int | None = None
    if len(player.move_history) > room.size:
        evicted = player.move_history.pop(0)
        room.grid[evicted] = None

    room.last_updated_at = _now()

    if has_line(room.grid, room.size, player.mark):
        return _finish(room=room, winner=player.mark, reason="win", evicted=evicted)

    if is_draw(room.grid):
        return _finish(room=room, winner=DRAW, reason="draw", evicted=evicted)

    room.turn_index = 1 - room.turn_index
    payload = {
        "cells": list(room.grid),
        "turn": room.turn_index,
        "players": room.public_players(),
        "evicted": evicted,
    }
    events = [RoomEvent.now(type="STATE_UPDATED", room_code=room.code, payload=payload)]
    return MoveResult(kind="update", room=room, events=events, evicted=evicted)


def _finish(*, room: RoomState, winner: str, reason: Literal["win", "draw"], evicted: int | None) -> MoveResult:
    fsm = RoomFSM(room)
    fsm.game_decided()
    fsm.sync_phase_to_model()

    room.winner = winner
    room.finish_reason = reason
    logger.info("room %s: game over, winner=%s", room.code, winner)

    payload = {"winner": winner, "reason": reason, "cells": list(room.grid)}
    events = [RoomEvent.now(type="GAME_OVER", room_code=room.code, payload=payload)]
    return MoveResult(kind="game_over", room=room, events=events, winner=winner, evicted=evicted)


def leave(*, room: RoomState, leaver_ref: str) -> LeaveResult:
    seat = room.seat_of(leaver_ref)
    player = room.player_at(seat) if seat is not None else None
    if seat is None or player is None:
        raise PlayerNotInRoom("Player not in room")

    for idx in player.move_history:
        room.grid[idx] = None
    room.set_player(seat, None)
    room.last_updated_at = _now()

    events: list[RoomEvent] = []
    if room.phase == RoomPhase.in_progress:
        fsm = RoomFSM(room)
        fsm.abandoned()
        fsm.sync_phase_to_model()
        room.winner = None
        room.finish_reason = "abandoned"

        remaining = room.connection_refs()
        events.append(
            RoomEvent.now(
                type="PLAYER_LEFT",
                room_code=room.code,
                payload={"player": leaver_ref, "mark": player.mark},
                recipients=remaining,
            )
        )
        events.append(
            RoomEvent.now(
                type="GAME_OVER",
                room_code=room.code,
                payload={"winner": None, "reason": "abandoned", "cells": list(room.grid)},
                recipients=remaining,
            )
        )

    return LeaveResult(room=room, now_empty=room.is_empty, events=events)
