"""Middleware package."""

from multicloud.api.middleware.logging import LoggingMiddleware
from multicloud.utils.context import RequestContextMiddleware, get_request_id

__all__ = [
    "LoggingMiddleware",
    "RequestContextMiddleware",
    "get_request_id",
]
