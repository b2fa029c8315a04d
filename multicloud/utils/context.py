"""
Per-request log context.

Each request gets a request id (the caller's X-Request-ID when it is a
sane token, otherwise a fresh one) and a correlation id. Both, plus the
`provider` the caller asked for, are bound into structlog's contextvars so
every adapter, fallback and usage event logged while serving the request
carries them.
"""

from __future__ import annotations

import re
import uuid
from typing import Callable, Optional

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"
CORRELATION_ID_HEADER = "X-Correlation-ID"

_SAFE_ID = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")


def _incoming_id(value: Optional[str]) -> Optional[str]:
    if value and _SAFE_ID.match(value):
        return value
    return None


def get_request_id() -> Optional[str]:
    """Request id bound for the current request, or None outside one."""
    return structlog.contextvars.get_contextvars().get("request_id")


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Bind request/correlation ids (and the requested provider) for logging."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = _incoming_id(request.headers.get(REQUEST_ID_HEADER)) or uuid.uuid4().hex
        correlation_id = _incoming_id(request.headers.get(CORRELATION_ID_HEADER)) or request_id

        context = {"request_id": request_id, "correlation_id": correlation_id}
        provider = request.query_params.get("provider")
        if provider:
            context["provider"] = provider

        tokens = structlog.contextvars.bind_contextvars(**context)
        request.state.request_id = request_id
        try:
            response = await call_next(request)
        finally:
            structlog.contextvars.reset_contextvars(**tokens)

        response.headers[REQUEST_ID_HEADER] = request_id
        response.headers[CORRELATION_ID_HEADER] = correlation_id
        return response
