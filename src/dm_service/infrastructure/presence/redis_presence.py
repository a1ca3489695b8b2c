"""Presence tracking backed by expiring Redis keys."""
from __future__ import annotations

import redis.asyncio as aioredis

KEY_PREFIX = "presence:"


class RedisPresenceTracker:
    """Implements application.ports.presence.PresenceTracker."""

    def __init__(self, redis: aioredis.Redis, ttl_seconds: int) -> None:
        self._redis = redis
        self._ttl = ttl_seconds

    async def touch(self, participant_id: str) -> None:
        await self._redis.set(f"{KEY_PREFIX}{participant_id}", "1", ex=self._ttl)

    async def is_online(self, participant_id: str) -> bool:
        ttl = await self._redis.ttl(f"{KEY_PREFIX}{participant_id}")
        return bool(ttl and ttl > 0)
