from __future__ import annotations

import pytest

from helpers import assert_consistent, play, started_room
from vanishtoe.api.models import RoomPhase, Seat
from vanishtoe.errors import AlreadySeated, InvalidConfig, PlayerNotInRoom, RoomFull
from vanishtoe.session import create_room_state, join, leave, move


def test_create_room_waits_for_opponent() -> None:
    room, events = create_room_state(code="ABCDE", size=4, mark_pair=["X", "O"], creator_ref="p1")

    assert room.phase == RoomPhase.waiting_for_opponent
    assert room.grid == [None] * 16
    assert room.first is not None and room.first.mark == "X"
    assert room.second is None
    assert room.turn_index == 0

    assert [e.type for e in events] == ["WAITING"]
    assert events[0].recipients == ("p1",)


@pytest.mark.parametrize(
    "size, pair, creator_mark",
    [
        (2, ["X", "O"], None),
        (3, ["X"], None),
        (3, ["X", "O", "Z"], None),
        (3, ["X", "X"], None),
        (3, ["X", ""], None),
        (3, ["X", "Draw"], None),
        (3, ["X", "O"], "Z"),
    ],
)
def test_create_room_rejects_bad_config(size: int, pair: list[str], creator_mark: str | None) -> None:
    with pytest.raises(InvalidConfig):
        create_room_state(code="ABCDE", size=size, mark_pair=pair, creator_ref="p1", creator_mark=creator_mark)


def test_create_room_respects_max_size() -> None:
    with pytest.raises(InvalidConfig):
        create_room_state(code="ABCDE", size=11, mark_pair=["X", "O"], creator_ref="p1", max_size=10)


def test_join_assigns_remaining_mark_and_starts_game() -> None:
    room, _ = create_room_state(code="ABCDE", size=3, mark_pair=["🐱", "🐶"], creator_ref="p1", creator_mark="🐶")
    result = join(room=room, joiner_ref="p2")

    assert result.assigned_mark == "🐱"
    assert room.phase == RoomPhase.in_progress
    assert room.seat_of("p2") is Seat.second

    [event] = result.events
    assert event.type == "GAME_STARTED"
    assert event.recipients is None
    assert event.payload["gridSize"] == 3
    assert event.payload["turn"] == 0
    assert event.payload["cells"] == [None] * 9
    assert event.payload["players"] == [{"id": "p1", "mark": "🐶"}, {"id": "p2", "mark": "🐱"}]


def test_join_rejects_full_room_and_self_join() -> None:
    room = started_room()

    with pytest.raises(RoomFull):
        join(room=room, joiner_ref="p3")
    with pytest.raises(AlreadySeated):
        join(room=room, joiner_ref="p1")
    assert len(room.seats()) == 2


def test_scenario_a_diagonal_win() -> None:
    room = started_room()

    results = play(room, 0, 1, 4, 2, 8)

    assert [r.kind for r in results[:-1]] == ["update"] * 4
    final = results[-1]
    assert final.kind == "game_over"
    assert final.winner == "X"
    assert room.phase == RoomPhase.finished
    assert room.winner == "X"
    assert room.finish_reason == "win"
    # Turn is not advanced by the winning move.
    assert room.turn_index == 0
    [event] = final.events
    assert event.type == "GAME_OVER"
    assert event.payload["winner"] == "X"


def test_turn_alternates_after_non_terminal_moves() -> None:
    room = started_room()

    r1 = move(room=room, mover_ref="p1", index=0)
    assert r1 is not None and r1.kind == "update"
    assert room.turn_index == 1
    assert r1.events[0].payload["turn"] == 1

    r2 = move(room=room, mover_ref="p2", index=4)
    assert r2 is not None
    assert room.turn_index == 0


def test_fourth_move_vanishes_first_mark() -> None:
    room = started_room()

    play(room, 0, 1, 4, 2, 5, 6)
    assert room.first is not None
    assert room.first.move_history == [0, 4, 5]

    [result] = play(room, 7)

    assert result.kind == "update"
    assert result.evicted == 0
    assert room.grid[0] is None
    assert room.grid[7] == "X"
    assert room.first.move_history == [4, 5, 7]
    assert sum(1 for c in room.grid if c == "X") == 3
    assert_consistent(room)


def test_eviction_happens_before_win_check() -> None:
    room = started_room()

    # X holds 0, 1, 5; placing 2 would complete the top row, but 0 vanishes first.
    play(room, 0, 3, 1, 4, 5, 6)
    [result] = play(room, 2)

    assert result.kind == "update"
    assert result.evicted == 0
    assert room.grid[:3] == [None, "X", "X"]
    assert room.phase == RoomPhase.in_progress


def test_scenario_b_vanishing_rule_keeps_grid_from_filling() -> None:
    room = started_room()

    results = play(room, 0, 2, 1, 3, 5, 4, 6, 7, 8)

    assert all(r is not None and r.kind == "update" for r in results)
    assert room.first is not None and room.second is not None
    assert sorted(room.first.move_history) == [5, 6, 8]
    assert sorted(room.second.move_history) == [3, 4, 7]
    # With at most `size` live marks each, 2 * size < size ** 2 cells are ever held.
    assert sum(1 for c in room.grid if c is not None) == 6
    assert room.phase == RoomPhase.in_progress
    assert_consistent(room)


def test_remarking_own_cell_is_allowed() -> None:
    room = started_room()

    play(room, 0, 1)
    result = move(room=room, mover_ref="p1", index=0)

    assert result is not None and result.kind == "update"
    assert room.first is not None
    assert room.first.move_history == [0]
    assert room.grid[0] == "X"
    assert room.turn_index == 1
    assert_consistent(room)


def test_remarked_cell_is_refreshed_not_evicted_first() -> None:
    room = started_room()

    play(room, 0, 3, 1, 4, 0, 6)
    assert room.first is not None
    assert room.first.move_history == [1, 0]

    play(room, 8, 7, 5)

    assert room.first.move_history == [0, 8, 5]
    assert room.grid[1] is None
    assert room.grid[0] == "X"
    assert_consistent(room)


@pytest.mark.parametrize(
    "mover, index",
    [
        ("p2", 3),  # out of turn
        ("p1", 1),  # opponent's cell
        ("p1", -1),
        ("p1", 9),
        ("p1", True),
        ("p1", "4"),
        ("stranger", 3),
    ],
)
def test_rejected_moves_leave_state_untouched(mover: str, index: object) -> None:
    room = started_room()
    play(room, 0, 1)
    before = room.model_dump()

    assert move(room=room, mover_ref=mover, index=index) is None
    assert room.model_dump() == before


def test_finished_room_ignores_moves() -> None:
    room = started_room()
    play(room, 0, 1, 4, 2, 8)
    before = room.model_dump()

    assert move(room=room, mover_ref="p2", index=3) is None
    assert move(room=room, mover_ref="p1", index=3) is None
    assert room.model_dump() == before


def test_waiting_room_ignores_moves() -> None:
    room, _ = create_room_state(code="ABCDE", size=3, mark_pair=["X", "O"], creator_ref="p1")
    assert move(room=room, mover_ref="p1", index=0) is None
    assert room.grid == [None] * 9


def test_invariants_hold_over_long_game_on_larger_grid() -> None:
    room = started_room(size=5)
    # Rows 0-1 alternate owners so no line completes for a long stretch.
    sequence = [0, 6, 2, 8, 4, 11, 13, 15, 17, 19, 21, 23, 1, 3, 5, 7, 9, 10, 12, 14]
    for idx in sequence:
        [result] = play(room, idx)
        assert_consistent(room)
        if result is not None and result.kind == "game_over":
            break


def test_leave_mid_game_finishes_without_winner() -> None:
    room = started_room()
    play(room, 0, 4, 1)

    result = leave(room=room, leaver_ref="p1")

    assert result.now_empty is False
    assert room.phase == RoomPhase.finished
    assert room.winner is None
    assert room.finish_reason == "abandoned"
    assert room.first is None
    assert room.grid[0] is None and room.grid[1] is None
    assert room.grid[4] == "O"
    assert_consistent(room)

    assert [e.type for e in result.events] == ["PLAYER_LEFT", "GAME_OVER"]
    assert all(e.recipients == ("p2",) for e in result.events)
    assert result.events[1].payload["winner"] is None

    last = leave(room=room, leaver_ref="p2")
    assert last.now_empty is True
    assert last.events == []


def test_creator_leaving_waiting_room_empties_it() -> None:
    room, _ = create_room_state(code="ABCDE", size=3, mark_pair=["X", "O"], creator_ref="p1")
    result = leave(room=room, leaver_ref="p1")
    assert result.now_empty is True
    assert result.events == []


def test_leave_by_stranger_is_rejected() -> None:
    room = started_room()
    with pytest.raises(PlayerNotInRoom):
        leave(room=room, leaver_ref="nobody")
    assert len(room.seats()) == 2


def test_finished_room_cannot_be_rejoined() -> None:
    room = started_room()
    leave(room=room, leaver_ref="p1")
    with pytest.raises(RoomFull):
        join(room=room, joiner_ref="p3")
