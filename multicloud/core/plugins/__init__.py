"""
Backend registry.
Resolves backend names to cached, connected storage adapters.
"""

from .registry import DriverRegistry, DriverHandle, BackendInfo

__all__ = [
    "DriverRegistry",
    "DriverHandle",
    "BackendInfo",
]
