from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, Field


class RoomPhase(StrEnum):
    waiting_for_opponent = "waiting_for_opponent"
    in_progress = "in_progress"
    finished = "finished"


class Seat(StrEnum):
    first = "first"
    second = "second"

    @staticmethod
    def from_index(idx: int) -> "Seat":
        return Seat.first if idx == 0 else Seat.second


FinishReason = Literal["win", "draw", "abandoned"]


class PlayerState(BaseModel):
    # Opaque transport identity; only compared, never dereferenced.
    connection_ref: str
    mark: str

    # Cells currently held by this player, oldest first.
    move_history: list[int] = Field(default_factory=list)

    def public(self) -> dict[str, str]:
        return {"id": self.connection_ref, "mark": self.mark}


class RoomState(BaseModel):
    code: str
    size: int = Field(..., ge=3)
    mark_pair: tuple[str, str]

    # Row-major, None == empty.
    grid: list[str | None]

    first: PlayerState | None = None
    second: PlayerState | None = None

    turn_index: int = Field(0, ge=0, le=1)
    phase: RoomPhase = RoomPhase.waiting_for_opponent

    # A mark, "Draw", or None (undecided or abandoned).
    winner: str | None = None
    finish_reason: FinishReason | None = None

    created_at: datetime
    last_updated_at: datetime

    def player_at(self, seat: Seat) -> PlayerState | None:
        return self.first if seat is Seat.first else self.second

    def set_player(self, seat: Seat, player: PlayerState | None) -> None:
        if seat is Seat.first:
            self.first = player
        else:
            self.second = player

    def seats(self) -> list[tuple[Seat, PlayerState]]:
        """Occupied seats in turn order."""
        return [(s, p) for s in (Seat.first, Seat.second) if (p := self.player_at(s)) is not None]

    def seat_of(self, connection_ref: str) -> Seat | None:
        for seat, player in self.seats():
            if player.connection_ref == connection_ref:
                return seat
        return None

    @property
    def turn_seat(self) -> Seat:
        return Seat.from_index(self.turn_index)

    @property
    def is_empty(self) -> bool:
        return self.first is None and self.second is None

    def connection_refs(self) -> tuple[str, ...]:
        return tuple(p.connection_ref for _, p in self.seats())

    def public_players(self) -> list[dict[str, str]]:
        return [p.public() for _, p in self.seats()]

    def snapshot(self) -> dict[str, object]:
        return {
            "gridSize": self.size,
            "cells": list(self.grid),
            "turn": self.turn_index,
            "players": self.public_players(),
        }


class RoomSummary(BaseModel):
    code: str
    size: int
    phase: RoomPhase
    players: int
    winner: str | None = None
    created_at: datetime

    @staticmethod
    def of(room: RoomState) -> "RoomSummary":
        return RoomSummary(
            code=room.code,
            size=room.size,
            phase=room.phase,
            players=len(room.seats()),
            winner=room.winner,
            created_at=room.created_at,
        )


class RoomListResponse(BaseModel):
    rooms: list[RoomSummary]
