"""Cache backend implementations."""

from multicloud.implementations.cache.redis import RedisCacheBackend
from multicloud.implementations.cache.memory import MemoryCacheBackend

__all__ = ["RedisCacheBackend", "MemoryCacheBackend"]
