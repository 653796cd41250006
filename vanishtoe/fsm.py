from __future__ import annotations

from statemachine import State, StateMachine

from vanishtoe.api.models import RoomPhase, RoomState


class RoomFSM(StateMachine):
    """FSM wrapper around RoomState.

    - phases: waiting for opponent -> in progress -> finished
    - the session mutates the grid and seats; the FSM only guards phase transitions.
    """

    waiting_for_opponent = State(
        RoomPhase.waiting_for_opponent.value,
        value=RoomPhase.waiting_for_opponent.value,
        initial=True,
    )
    in_progress = State(RoomPhase.in_progress.value, value=RoomPhase.in_progress.value)
    finished = State(RoomPhase.finished.value, value=RoomPhase.finished.value, final=True)

    opponent_joined = waiting_for_opponent.to(in_progress)
    game_decided = in_progress.to(finished)
    abandoned = in_progress.to(finished)

    def __init__(self, room: RoomState):
        self.room = room
        super().__init__(start_value=room.phase.value)

    def sync_phase_to_model(self) -> None:
        self.room.phase = RoomPhase(str(self.current_state.value))
