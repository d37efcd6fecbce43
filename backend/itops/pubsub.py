from __future__ import annotations

import json
import os
from datetime import date, datetime
from typing import Any
from uuid import UUID

import redis
import redis.asyncio as aioredis

REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
BROADCAST_CHANNEL = "notifications:broadcast"
_redis = None
_sync_redis = None
_fake_server = None


def _get_fake_server():
    # sync and async fake clients share one in-memory server under TESTING
    global _fake_server
    if _fake_server is None:
        import fakeredis
        _fake_server = fakeredis.FakeServer()
    return _fake_server


async def get_redis():
    global _redis
    if _redis is None:
        if os.getenv("TESTING") == "1":
            from fakeredis import aioredis as fake_aioredis
            _redis = fake_aioredis.FakeRedis(server=_get_fake_server())
        else:
            _redis = aioredis.from_url(REDIS_URL)
    return _redis


def get_sync_redis():
    global _sync_redis
    if _sync_redis is None:
        if os.getenv("TESTING") == "1":
            import fakeredis
            _sync_redis = fakeredis.FakeRedis(server=_get_fake_server())
        else:
            _sync_redis = redis.Redis.from_url(REDIS_URL)
    return _sync_redis


def _json_default(value: Any) -> Any:
    # purpose: convert datetimes and identifiers to strings for event payloads
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    raise TypeError(f"{type(value).__name__} is not JSON serializable")


def _serialize_event(event: dict[str, Any]) -> str:
    return json.dumps(event, default=_json_default)


def publish_broadcast_event(event: dict[str, Any]) -> int:
    """Publish a notification event to every connected client; returns receiver count."""

    r = get_sync_redis()
    return r.publish(BROADCAST_CHANNEL, _serialize_event(event))
