"""
Gateway error taxonomy.

- ValidationError: bad path/ttl/options. Never retried, never falls back.
- BackendConnectionError: adapter construction or connect() failed.
- UnknownBackend: name not in the registry (or disabled).
- ProviderError: backend-reported failure. The only kind that drives retry/fallback.
- SigningFailed: backend could not produce a signed URL.
- FallbackExhausted: every backend in the chain failed; carries each failure in order.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from multicloud.core.interfaces.storage import ErrorKind


class GatewayError(Exception):
    """Base exception for gateway operations."""

    kind: ErrorKind = ErrorKind.PROVIDER

    def __init__(self, message: str, *, provider: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.provider = provider

    def __str__(self) -> str:
        if self.provider:
            return f"{self.message} (provider={self.provider})"
        return self.message

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": "error",
            "error_kind": self.kind.value,
            "message": self.message,
            "provider": self.provider,
        }


class ValidationError(GatewayError):
    kind = ErrorKind.VALIDATION


class BackendConnectionError(GatewayError):
    kind = ErrorKind.CONNECTION


class UnknownBackend(GatewayError):
    kind = ErrorKind.UNKNOWN_BACKEND

    def __init__(self, name: str | None, available: list[str] | None = None) -> None:
        message = f"Unknown storage backend: {name}"
        if available:
            message += f". Available: {', '.join(available)}"
        super().__init__(message, provider=name)
        self.available = available or []


class ProviderError(GatewayError):
    kind = ErrorKind.PROVIDER


class SigningFailed(GatewayError):
    kind = ErrorKind.SIGNING_FAILED


@dataclass
class BackendFailure:
    """Errors collected from one backend during an orchestrated operation."""
    backend: str
    attempts: int
    errors: list[str] = field(default_factory=list)

    @property
    def last_error(self) -> str | None:
        return self.errors[-1] if self.errors else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "backend": self.backend,
            "attempts": self.attempts,
            "errors": list(self.errors),
        }


class FallbackExhausted(GatewayError):
    kind = ErrorKind.FALLBACK_EXHAUSTED

    def __init__(
        self,
        operation: str,
        requested: str,
        failures: list[BackendFailure],
    ) -> None:
        summary = "; ".join(
            f"{f.backend} ({f.attempts} attempts): {f.last_error}" for f in failures
        )
        super().__init__(
            f"All backends failed for {operation}: {summary}",
            provider=requested,
        )
        self.operation = operation
        self.requested = requested
        self.failures = failures

    @property
    def tried(self) -> list[str]:
        return [f.backend for f in self.failures]

    def to_dict(self) -> dict[str, Any]:
        return {
            **super().to_dict(),
            "operation": self.operation,
            "tried": self.tried,
            "failures": [f.to_dict() for f in self.failures],
        }
