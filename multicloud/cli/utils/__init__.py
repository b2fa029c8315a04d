"""CLI utilities for running async operations and formatting output."""

from multicloud.cli.utils.async_runner import coro
from multicloud.cli.utils.formatters import (
    error,
    format_bytes,
    format_cost,
    header,
    info,
    section,
    success,
    table,
    warning,
)
from multicloud.cli.utils.gateway import open_gateway, require_provider

__all__ = [
    "coro",
    "error",
    "info",
    "success",
    "warning",
    "header",
    "section",
    "table",
    "format_bytes",
    "format_cost",
    "open_gateway",
    "require_provider",
]
