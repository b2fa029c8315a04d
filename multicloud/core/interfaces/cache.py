"""
Cache backend protocol.
Implementations: RedisCacheBackend, MemoryCacheBackend
"""
from __future__ import annotations

from typing import Protocol, Any


class CacheBackend(Protocol):
    """
    Protocol for cache backends.

    Used to keep usage reports between aggregations, so a dashboard
    refresh does not hit every cloud vendor again.

    Example implementations:
    - RedisCacheBackend: Redis-based caching (shared across workers)
    - MemoryCacheBackend: In-process TTL cache (single worker, tests)
    """

    async def get(self, key: str) -> Any | None:
        """Get value by key. Returns None if not found or expired."""
        ...

    async def set(
        self,
        key: str,
        value: Any,
        ttl: int | None = None,
    ) -> bool:
        """Set a JSON-serializable value. ttl is in seconds; 0 means no expiry."""
        ...

    async def delete(self, key: str) -> bool:
        """Delete key. Returns True if deleted."""
        ...

    async def clear(self) -> None:
        """Drop every key under this backend's prefix."""
        ...

    async def close(self) -> None:
        """Release connections."""
        ...
