from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.concurrency import run_in_threadpool

from vanishtoe.api.routes import router
from vanishtoe.config import Settings, settings_from_env
from vanishtoe.infra.redis_client import create_redis
from vanishtoe.registry import RoomRegistry
from vanishtoe.room_store import MemoryRoomStore, RedisRoomStore, RoomStore
from vanishtoe.websocket_hub import RoomWebSocketHub

logger = logging.getLogger(__name__)

VERSION = "0.1.0"


def build_store(settings: Settings) -> RoomStore:
    if settings.store == "redis":
        return RedisRoomStore(r=create_redis(settings.redis_url), lock_timeout_ms=settings.lock_timeout_ms)
    return MemoryRoomStore(lock_timeout_ms=settings.lock_timeout_ms)


async def _sweep_forever(registry: RoomRegistry, interval_s: float) -> None:
    while True:
        await asyncio.sleep(interval_s)
        try:
            await run_in_threadpool(registry.expire_finished)
        except Exception:
            logger.exception("Room sweep failed")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings: Settings = app.state.registry.settings
    sweeper: asyncio.Task[None] | None = None
    if settings.sweep_interval_s:
        sweeper = asyncio.create_task(_sweep_forever(app.state.registry, settings.sweep_interval_s))
    logger.info("Server ready (store=%s)", settings.store)
    try:
        yield
    finally:
        if sweeper is not None:
            sweeper.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await sweeper
        logger.info("Stop Server")


def create_app(*, settings: Settings | None = None, store: RoomStore | None = None) -> FastAPI:
    settings = settings or settings_from_env()

    application = FastAPI(title="vanishtoe", version=VERSION, lifespan=lifespan)
    application.state.registry = RoomRegistry(store=store or build_store(settings), settings=settings)
    application.state.hub = RoomWebSocketHub()
    application.include_router(router)

    @application.get("/info")
    async def info() -> dict[str, str]:
        return {"name": "vanishtoe", "version": VERSION}

    return application


_settings = settings_from_env()
logging.basicConfig(level=_settings.log_level)

app = create_app(settings=_settings)


def run() -> None:
    import uvicorn

    uvicorn.run("vanishtoe.main:app", host="0.0.0.0", port=3000)
