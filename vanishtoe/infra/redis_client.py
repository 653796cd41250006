from __future__ import annotations

import redis


def create_redis(url: str) -> redis.Redis:
    """Client for the shared room store.

    decode_responses=True: room documents come back as str, and the room lock compares its token as str.
    """

    return redis.Redis.from_url(url, decode_responses=True)
