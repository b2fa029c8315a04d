"""
In-process cache backend (single worker, development and tests).
"""

from __future__ import annotations

import json
import time
from typing import Any


class MemoryCacheBackend:
    """
    TTL cache held in a dict.

    Values are stored as JSON text, like the Redis backend, so a cached
    usage report never aliases the dict a caller keeps mutating and
    non-serializable values fail on `set` in both backends.

    Usage:
        cache = MemoryCacheBackend(prefix="multicloud:")
        await cache.set("usage:aws", report.to_dict(), ttl=60)
        value = await cache.get("usage:aws")
    """

    def __init__(self, prefix: str = "", default_ttl: int = 3600):
        self.prefix = prefix
        self.default_ttl = default_ttl
        # key -> (monotonic deadline or None, JSON text)
        self._store: dict[str, tuple[float | None, str]] = {}

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    async def get(self, key: str) -> Any | None:
        entry = self._store.get(self._key(key))
        if entry is None:
            return None
        deadline, payload = entry
        if deadline is not None and time.monotonic() >= deadline:
            self._store.pop(self._key(key), None)
            return None
        return json.loads(payload)

    async def set(self, key: str, value: Any, ttl: int | None = None) -> bool:
        seconds = self.default_ttl if ttl is None else ttl
        deadline = time.monotonic() + seconds if seconds else None
        self._store[self._key(key)] = (deadline, json.dumps(value))
        return True

    async def delete(self, key: str) -> bool:
        return self._store.pop(self._key(key), None) is not None

    async def clear(self) -> None:
        self._store.clear()

    async def close(self) -> None:
        self._store.clear()
