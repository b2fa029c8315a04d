"""
Redis cache backend (redis.asyncio).
"""

from __future__ import annotations

import json
from typing import Any

import redis.asyncio as redis
import structlog

logger = structlog.get_logger(__name__)


class RedisCacheBackend:
    """
    Shares cached usage reports between API workers and CLI runs.

    The client is created on first use, so building the backend does no
    network I/O. Values are JSON; an entry that does not decode is treated
    as a miss and removed.

    Usage:
        cache = RedisCacheBackend("redis://localhost:6379/0", prefix="multicloud:")
        await cache.set("usage:aws", report.to_dict(), ttl=300)
        value = await cache.get("usage:aws")
        await cache.close()
    """

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379/0",
        prefix: str = "",
        default_ttl: int = 3600,
    ):
        self.redis_url = redis_url
        self.prefix = prefix
        self.default_ttl = default_ttl
        self._client: redis.Redis | None = None

    @property
    def client(self) -> redis.Redis:
        if self._client is None:
            self._client = redis.from_url(self.redis_url, decode_responses=True)
        return self._client

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    async def get(self, key: str) -> Any | None:
        payload = await self.client.get(self._key(key))
        if payload is None:
            return None
        try:
            return json.loads(payload)
        except json.JSONDecodeError:
            logger.warning("Dropping undecodable cache entry", key=self._key(key))
            await self.client.delete(self._key(key))
            return None

    async def set(self, key: str, value: Any, ttl: int | None = None) -> bool:
        seconds = self.default_ttl if ttl is None else ttl
        return bool(await self.client.set(self._key(key), json.dumps(value), ex=seconds or None))

    async def delete(self, key: str) -> bool:
        return await self.client.delete(self._key(key)) > 0

    async def clear(self) -> None:
        """Delete every key under the prefix."""
        keys = [key async for key in self.client.scan_iter(match=self._key("*"))]
        if keys:
            await self.client.delete(*keys)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
