from __future__ import annotations


class RoomError(ValueError):
    """A rejected intent. Never leaves a room in a partially mutated state."""


class InvalidConfig(RoomError):
    pass


class RoomNotFound(RoomError):
    def __init__(self, code: str) -> None:
        super().__init__("Room not found")
        self.code = code


class RoomFull(RoomError):
    pass


class AlreadySeated(RoomFull):
    pass


class PlayerNotInRoom(RoomError):
    pass


class CodeSpaceExhausted(RoomError):
    pass


class RoomBusy(RoomError):
    pass
