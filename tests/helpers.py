from __future__ import annotations

from vanishtoe.api.models import RoomState
from vanishtoe.session import create_room_state, join, move


def started_room(size: int = 3, pair: tuple[str, str] = ("X", "O")) -> RoomState:
    """A size x size room with p1 (first mark) and p2 seated, p1 to move."""

    room, _ = create_room_state(code="ABCDE", size=size, mark_pair=pair, creator_ref="p1")
    return join(room=room, joiner_ref="p2").room


def play(room: RoomState, *indexes: int) -> list:
    """Alternate p1/p2 moves starting with whoever holds the turn."""

    results = []
    for idx in indexes:
        mover = room.player_at(room.turn_seat)
        assert mover is not None
        results.append(move(room=room, mover_ref=mover.connection_ref, index=idx))
    return results


def assert_consistent(room: RoomState) -> None:
    occupied = {i: m for i, m in enumerate(room.grid) if m is not None}
    from_history: dict[int, str] = {}
    for _, player in room.seats():
        assert len(player.move_history) <= room.size
        assert len(set(player.move_history)) == len(player.move_history)
        for idx in player.move_history:
            from_history[idx] = player.mark
    assert occupied == from_history
    assert sum(len(p.move_history) for _, p in room.seats()) == len(occupied)
