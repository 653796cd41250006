from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import AbstractContextManager

import redis

from vanishtoe.api.models import RoomState
from vanishtoe.lock import RoomLocks, room_lock


ROOMS_SET_KEY = "vanishtoe:rooms"
ROOM_KEY_PREFIX = "vanishtoe:room:"  # + {code}


def _room_key(code: str) -> str:
    return f"{ROOM_KEY_PREFIX}{code}"


class RoomStore(ABC):
    """Storage for live rooms, keyed by room code.

    Reads return copies: a room only changes through `insert`/`save`, and callers
    hold `lock(code)` across load-mutate-save.
    """

    @abstractmethod
    def insert(self, room: RoomState) -> bool:
        """Store a new room; False if the code is already live."""

    @abstractmethod
    def get(self, code: str) -> RoomState | None:
        raise NotImplementedError

    @abstractmethod
    def save(self, room: RoomState) -> None:
        raise NotImplementedError

    @abstractmethod
    def delete(self, code: str) -> bool:
        raise NotImplementedError

    @abstractmethod
    def codes(self) -> list[str]:
        raise NotImplementedError

    @abstractmethod
    def lock(self, code: str) -> AbstractContextManager[None]:
        raise NotImplementedError

    def exists(self, code: str) -> bool:
        return self.get(code) is not None

    def iter_rooms(self) -> Iterator[RoomState]:
        for code in self.codes():
            room = self.get(code)
            if room is not None:
                yield room


class MemoryRoomStore(RoomStore):
    """In-process dict store. Process lifetime == data lifetime."""

    def __init__(self, *, lock_timeout_ms: int = 2_000) -> None:
        self._rooms: dict[str, RoomState] = {}
        self._guard = threading.Lock()
        self._locks = RoomLocks()
        self._lock_timeout_s = lock_timeout_ms / 1000

    def insert(self, room: RoomState) -> bool:
        with self._guard:
            if room.code in self._rooms:
                return False
            self._rooms[room.code] = room.model_copy(deep=True)
            return True

    def get(self, code: str) -> RoomState | None:
        with self._guard:
            room = self._rooms.get(code)
        return room.model_copy(deep=True) if room is not None else None

    def save(self, room: RoomState) -> None:
        with self._guard:
            self._rooms[room.code] = room.model_copy(deep=True)

    def delete(self, code: str) -> bool:
        with self._guard:
            return self._rooms.pop(code, None) is not None

    def codes(self) -> list[str]:
        with self._guard:
            return sorted(self._rooms)

    def lock(self, code: str) -> AbstractContextManager[None]:
        return self._locks.hold(code, timeout_s=self._lock_timeout_s)


class RedisRoomStore(RoomStore):
    """Rooms as JSON documents in Redis, so several API workers can share them."""

    def __init__(self, *, r: redis.Redis, lock_timeout_ms: int = 2_000) -> None:
        self._r = r
        self._lock_timeout_ms = lock_timeout_ms

    def insert(self, room: RoomState) -> bool:
        created = self._r.set(_room_key(room.code), room.model_dump_json(), nx=True)
        if not created:
            return False
        self._r.sadd(ROOMS_SET_KEY, room.code)
        return True

    def get(self, code: str) -> RoomState | None:
        raw = self._r.get(_room_key(code))
        if not raw:
            return None
        return RoomState.model_validate_json(raw)

    def save(self, room: RoomState) -> None:
        self._r.set(_room_key(room.code), room.model_dump_json())

    def delete(self, code: str) -> bool:
        removed = bool(self._r.delete(_room_key(code)))
        self._r.srem(ROOMS_SET_KEY, code)
        return removed

    def codes(self) -> list[str]:
        return sorted(self._r.smembers(ROOMS_SET_KEY))

    def lock(self, code: str) -> AbstractContextManager[None]:
        return room_lock(r=self._r, code=code, timeout_ms=self._lock_timeout_ms)
