"""
Core interfaces (protocols) for extensibility.
All backends must implement these protocols to be swappable.
"""

from .storage import (
    StorageProvider,
    OperationResult,
    OperationStatus,
    ErrorKind,
    FileMetadata,
    UsageReport,
    SignedUrl,
)
from .cache import CacheBackend

__all__ = [
    "StorageProvider",
    "OperationResult",
    "OperationStatus",
    "ErrorKind",
    "FileMetadata",
    "UsageReport",
    "SignedUrl",
    "CacheBackend",
]
