"""
Backend implementations for core interfaces.
"""

from multicloud.implementations.cache.redis import RedisCacheBackend
from multicloud.implementations.cache.memory import MemoryCacheBackend
from multicloud.implementations.storage import (
    CloudinaryAdapter,
    LibcloudAdapter,
    LocalAdapter,
    S3Adapter,
)

__all__ = [
    "RedisCacheBackend",
    "MemoryCacheBackend",
    "CloudinaryAdapter",
    "LibcloudAdapter",
    "LocalAdapter",
    "S3Adapter",
]
