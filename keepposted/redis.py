"""Redis pub/sub: change notifications between the API and live listeners.

Two kinds of notification travel over Redis, one channel per user each:
saved-place writes (so open place lists refresh) and a device's first
OwnTracks check-in (so a pending location permission resolves).
"""

from __future__ import annotations

import redis.asyncio as aioredis

from keepposted.config import get_settings


def saved_places_channel(user_id: str) -> str:
    return f"saved_places:{user_id}"


def device_paired_channel(user_id: str) -> str:
    return f"owntracks_paired:{user_id}"


_client: aioredis.Redis | None = None


async def get_redis() -> aioredis.Redis:
    """Shared client; messages arrive as ``str``."""
    global _client
    if _client is None:
        _client = aioredis.Redis.from_url(get_settings().redis_url, decode_responses=True)
    return _client


async def close_redis() -> None:
    global _client
    client, _client = _client, None
    if client is not None:
        await client.aclose()
