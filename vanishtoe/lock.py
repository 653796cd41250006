from __future__ import annotations

import threading
import time
import uuid
from collections.abc import Iterator
from contextlib import contextmanager

import redis

from vanishtoe.errors import RoomBusy


class RoomLocks:
    """One exclusive thread lock per room code.

    A code's entry lives only while some caller holds or waits on it. The guard
    only protects the table; it is never held while a room transition runs.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        # code -> (lock, holders + waiters)
        self._locks: dict[str, tuple[threading.Lock, int]] = {}

    def _checkout(self, code: str) -> threading.Lock:
        with self._guard:
            entry = self._locks.get(code)
            lock, users = entry if entry is not None else (threading.Lock(), 0)
            self._locks[code] = (lock, users + 1)
            return lock

    def _checkin(self, code: str) -> None:
        with self._guard:
            lock, users = self._locks[code]
            if users <= 1:
                del self._locks[code]
            else:
                self._locks[code] = (lock, users - 1)

    @contextmanager
    def hold(self, code: str, *, timeout_s: float = -1) -> Iterator[None]:
        lock = self._checkout(code)
        try:
            if not lock.acquire(timeout=timeout_s):
                raise RoomBusy("Room is busy")
            try:
                yield
            finally:
                lock.release()
        finally:
            self._checkin(code)

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


@contextmanager
def room_lock(
    *,
    r: redis.Redis,
    code: str,
    ttl_ms: int = 5_000,
    timeout_ms: int = 2_000,
    retry_ms: int = 10,
) -> Iterator[None]:
    """Per-room Redis lock.

    Acquired with SET NX PX under a unique token, retried with capped backoff until
    `timeout_ms`, and released only if the token still matches.
    """

    key = f"lock:room:{code}"
    token = uuid.uuid4().hex
    deadline = time.monotonic() + timeout_ms / 1000
    delay = retry_ms / 1000

    while not r.set(key, token, nx=True, px=ttl_ms):
        if time.monotonic() >= deadline:
            raise RoomBusy("Room is busy")
        time.sleep(delay)
        delay = min(delay * 2, 0.2)

    try:
        yield
    finally:
        # Not atomic without Lua, but only our own token is ever deleted.
        if r.get(key) == token:
            r.delete(key)
