from __future__ import annotations

import logging
import secrets
import string
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from vanishtoe.api.models import RoomPhase, RoomState
from vanishtoe.config import Settings
from vanishtoe.core.events import RoomEvent
from vanishtoe.errors import CodeSpaceExhausted, RoomNotFound
from vanishtoe.room_store import RoomStore
from vanishtoe.session import (
    JoinResult,
    LeaveResult,
    MoveResult,
    create_room_state,
    join,
    leave,
    move,
    validate_room_config,
)

logger = logging.getLogger(__name__)

CODE_ALPHABET = string.ascii_uppercase + string.digits


@dataclass(frozen=True, slots=True)
class CreateResult:
    code: str
    assigned_mark: str
    room: RoomState
    events: list[RoomEvent]


def normalize_code(code: str) -> str:
    return code.strip().upper()


class RoomRegistry:
    """Owns the code -> room mapping and routes intents to the right room.

    Every per-room operation holds that room's lock from load to save.
    """

    def __init__(self, *, store: RoomStore, settings: Settings | None = None) -> None:
        self._store = store
        self._settings = settings or Settings()

    @property
    def settings(self) -> Settings:
        return self._settings

    def generate_code(self) -> str:
        return "".join(secrets.choice(CODE_ALPHABET) for _ in range(self._settings.code_length))

    def create_room(
        self,
        *,
        creator_ref: str,
        size: int,
        mark_pair: tuple[str, ...] | list[str] | None = None,
        creator_mark: str | None = None,
    ) -> CreateResult:
        pair = mark_pair if mark_pair is not None else self._settings.default_marks
        # Reject bad config before burning codes on it.
        validate_room_config(
            size=size,
            mark_pair=pair,
            creator_mark=creator_mark,
            max_size=self._settings.max_grid_size,
        )

        for attempt in range(1, self._settings.code_max_attempts + 1):
            code = self.generate_code()
            room, events = create_room_state(
                code=code,
                size=size,
                mark_pair=pair,
                creator_ref=creator_ref,
                creator_mark=creator_mark,
                max_size=self._settings.max_grid_size,
            )
            if self._store.insert(room):
                logger.info("Room %s created by %s (size=%d)", code, creator_ref, size)
                _, creator = room.seats()[0]
                return CreateResult(code=code, assigned_mark=creator.mark, room=room, events=events)
            logger.debug("Room code collision on %s (attempt %d)", code, attempt)

        raise CodeSpaceExhausted("Could not allocate a free room code")

    def get_room(self, code: str) -> RoomState | None:
        return self._store.get(normalize_code(code))

    def list_rooms(self) -> list[RoomState]:
        rooms = list(self._store.iter_rooms())
        rooms.sort(key=lambda r: r.created_at, reverse=True)
        return rooms

    def join_room(self, *, code: str, joiner_ref: str) -> JoinResult:
        code = normalize_code(code)
        if not self._store.exists(code):
            raise RoomNotFound(code)
        with self._store.lock(code):
            room = self._store.get(code)
            if room is None:
                raise RoomNotFound(code)
            result = join(room=room, joiner_ref=joiner_ref)
            self._store.save(result.room)

        logger.info("Player %s joined room %s as %s", joiner_ref, code, result.assigned_mark)
        return result

    def dispatch_move(self, *, code: str, mover_ref: str, index: object) -> MoveResult | None:
        code = normalize_code(code)
        if not self._store.exists(code):
            logger.debug("Move for unknown room %s ignored", code)
            return None
        with self._store.lock(code):
            room = self._store.get(code)
            if room is None:
                logger.debug("Move for unknown room %s ignored", code)
                return None
            result = move(room=room, mover_ref=mover_ref, index=index)
            if result is not None:
                self._store.save(result.room)
        return result

    def leave_room(self, *, code: str, leaver_ref: str) -> LeaveResult:
        code = normalize_code(code)
        if not self._store.exists(code):
            raise RoomNotFound(code)
        with self._store.lock(code):
            room = self._store.get(code)
            if room is None:
                raise RoomNotFound(code)
            result = leave(room=room, leaver_ref=leaver_ref)
            self._store.save(result.room)
            self._remove_if_empty_locked(code)

        logger.info("Player %s left room %s", leaver_ref, code)
        return result

    def remove_if_empty(self, code: str) -> bool:
        code = normalize_code(code)
        with self._store.lock(code):
            return self._remove_if_empty_locked(code)

    def _remove_if_empty_locked(self, code: str) -> bool:
        room = self._store.get(code)
        if room is None or not room.is_empty:
            return False
        self._store.delete(code)
        logger.info("Room %s deleted (empty)", code)
        return True

    def expire_finished(self, *, now: datetime | None = None) -> list[str]:
        ttl = self._settings.finished_room_ttl_s
        if ttl is None:
            return []

        cutoff = (now or datetime.now(tz=UTC)) - timedelta(seconds=ttl)
        expired: list[str] = []
        for code in self._store.codes():
            with self._store.lock(code):
                room = self._store.get(code)
                if room is None or room.phase != RoomPhase.finished:
                    continue
                if room.last_updated_at <= cutoff:
                    self._store.delete(code)
                    expired.append(code)

        if expired:
            logger.info("Expired %d finished room(s): %s", len(expired), ",".join(expired))
        return expired
