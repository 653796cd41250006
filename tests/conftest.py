from __future__ import annotations

from collections.abc import Generator

import fakeredis
import pytest
from fastapi.testclient import TestClient

from vanishtoe.config import Settings
from vanishtoe.registry import RoomRegistry
from vanishtoe.room_store import MemoryRoomStore, RedisRoomStore


@pytest.fixture()
def settings() -> Settings:
    return Settings()


@pytest.fixture()
def registry(settings: Settings) -> RoomRegistry:
    return RoomRegistry(store=MemoryRoomStore(), settings=settings)


@pytest.fixture()
def fake_redis() -> fakeredis.FakeRedis:
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture()
def redis_registry(fake_redis: fakeredis.FakeRedis, settings: Settings) -> RoomRegistry:
    return RoomRegistry(store=RedisRoomStore(r=fake_redis), settings=settings)


@pytest.fixture()
def client() -> Generator[TestClient, None, None]:
    from vanishtoe.main import create_app

    app = create_app(settings=Settings(), store=MemoryRoomStore())
    with TestClient(app) as c:
        yield c
