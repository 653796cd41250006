from __future__ import annotations

from fastapi.requests import HTTPConnection

from vanishtoe.registry import RoomRegistry
from vanishtoe.websocket_hub import RoomWebSocketHub


def get_registry(conn: HTTPConnection) -> RoomRegistry:
    return conn.app.state.registry


def get_hub(conn: HTTPConnection) -> RoomWebSocketHub:
    return conn.app.state.hub
