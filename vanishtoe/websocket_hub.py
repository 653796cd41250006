from __future__ import annotations

import asyncio
import logging
import uuid
from collections import defaultdict
from collections.abc import Iterable

from fastapi import WebSocket

from vanishtoe.core.events import RoomEvent

logger = logging.getLogger(__name__)


class RoomWebSocketHub:
    """In-process WebSocket fan-out keyed by connection ref and room code.

    Contract:
      - `connect(websocket)` accepts the socket and hands out its connection ref.
      - `enter(ref, code)` / `exit(ref)` track which room a connection sits in.
      - `deliver(events)` sends each event to its recipients, or to the whole room.

    Payloads should be JSON-serializable dicts.
    """

    def __init__(self) -> None:
        self._conns: dict[str, WebSocket] = {}
        self._by_room: dict[str, set[str]] = defaultdict(set)
        self._room_of: dict[str, str] = {}
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket) -> str:
        await websocket.accept()
        ref = uuid.uuid4().hex
        async with self._lock:
            self._conns[ref] = websocket
        logger.info("User connected: %s", ref)
        return ref

    async def disconnect(self, ref: str) -> None:
        async with self._lock:
            self._conns.pop(ref, None)
            self._exit_locked(ref)
        logger.info("User disconnected: %s", ref)

    async def enter(self, ref: str, code: str) -> None:
        async with self._lock:
            self._exit_locked(ref)
            self._room_of[ref] = code
            self._by_room[code].add(ref)

    async def exit(self, ref: str) -> None:
        async with self._lock:
            self._exit_locked(ref)

    def room_of(self, ref: str) -> str | None:
        return self._room_of.get(ref)

    def _exit_locked(self, ref: str) -> None:
        code = self._room_of.pop(ref, None)
        if code is None:
            return
        members = self._by_room.get(code)
        if members is not None:
            members.discard(ref)
            if not members:
                self._by_room.pop(code, None)

    async def send(self, ref: str, payload: dict[str, object]) -> bool:
        async with self._lock:
            ws = self._conns.get(ref)
        if ws is None:
            return False
        try:
            await ws.send_json(payload)
        except Exception:
            logger.warning("Dropping dead connection %s", ref)
            async with self._lock:
                self._conns.pop(ref, None)
            return False
        return True

    async def deliver(self, events: Iterable[RoomEvent]) -> None:
        for event in events:
            if event.recipients is not None:
                targets = list(event.recipients)
            else:
                async with self._lock:
                    targets = list(self._by_room.get(event.room_code, set()))

            payload = event.to_wire()
            for ref in targets:
                await self.send(ref, payload)
