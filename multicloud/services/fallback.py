"""
Fallback orchestration for storage operations.

One logical operation walks the requested backend and then its fallback
chain, strictly one attempt at a time:

    A(try 1) -> A(try 2) -> B(try 1) -> B(try 2) -> C(try 1) ... -> FallbackExhausted

Only provider failures are retried or handed to the next backend; a
fallback that answers with a connection error is skipped. Validation
problems and unknown backends surface immediately. An error result that is
returned instead of raised lists every backend tried, in order.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Awaitable, Callable, Mapping

import structlog

from multicloud.core.config import FallbackSettings
from multicloud.core.exceptions import (
    BackendConnectionError,
    BackendFailure,
    FallbackExhausted,
    GatewayError,
    ProviderError,
    UnknownBackend,
)
from multicloud.core.interfaces.storage import ErrorKind, OperationResult, StorageProvider
from multicloud.core.plugins.registry import DriverHandle, DriverRegistry

logger = structlog.get_logger(__name__)

ProviderCall = Callable[[StorageProvider], Awaitable[OperationResult]]
Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class FallbackPolicy:
    """
    Read-only retry/fallback configuration.

    `retry_delay` is the backoff unit in seconds; the wait after try N on a
    backend is `retry_delay * N`.
    """
    enabled: bool = True
    chains: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    max_retries: int = 3
    retry_delay: float = 1.0

    def __post_init__(self) -> None:
        if self.max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        if self.retry_delay < 0:
            raise ValueError("retry_delay must not be negative")

        chains: dict[str, tuple[str, ...]] = {}
        for name, chain in dict(self.chains).items():
            if name in chain:
                raise ValueError(f"backend {name} lists itself as a fallback")
            chains[name] = tuple(chain)
        object.__setattr__(self, "chains", MappingProxyType(chains))

    @classmethod
    def from_settings(cls, settings: FallbackSettings) -> "FallbackPolicy":
        return cls(
            enabled=settings.enabled,
            chains=settings.providers,
            max_retries=settings.max_retries,
            retry_delay=settings.retry_delay_ms / 1000,
        )

    def chain_for(self, name: str) -> tuple[str, ...]:
        return self.chains.get(name, ())


@dataclass
class _BackendRun:
    result: OperationResult
    attempts: int
    errors: list[str]

    def failure(self, backend: str) -> BackendFailure:
        return BackendFailure(backend, self.attempts, list(self.errors))


class FallbackOrchestrator:
    """
    Runs a provider call against a backend and its fallbacks.

    Usage:
        orchestrator = FallbackOrchestrator(registry, FallbackPolicy(chains={"aws": ("azure",)}))
        result = await orchestrator.execute(
            "upload",
            lambda adapter: adapter.upload("a.txt", b"hello"),
            provider="aws",
        )
        result.served_by  # "aws", or "azure" if aws kept failing
    """

    def __init__(
        self,
        registry: DriverRegistry,
        policy: FallbackPolicy | None = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.registry = registry
        self.policy = policy or FallbackPolicy()
        self._sleep = sleep

    async def execute(
        self,
        operation: str,
        call: ProviderCall,
        provider: str | None = None,
    ) -> OperationResult:
        """
        Run `call` with retry and fallback.

        Raises:
            UnknownBackend / BackendConnectionError: the requested backend
                cannot be resolved
            ValidationError: raised by the call itself
            FallbackExhausted: the requested backend and every fallback failed
        """
        primary = await self.registry.resolve(provider)
        requested = primary.name

        if not self.policy.enabled:
            run = await self._run_backend(operation, primary, call, tries=1)
            return self._finish(run.result, requested, run.attempts, [run.failure(requested)])

        run = await self._run_backend(operation, primary, call, tries=self.policy.max_retries)
        total_attempts = run.attempts
        failures = [run.failure(requested)]
        if run.result.ok or run.result.error_kind is not ErrorKind.PROVIDER:
            return self._finish(run.result, requested, total_attempts, failures)

        chain = self.policy.chain_for(requested)
        if not chain:
            return self._finish(run.result, requested, total_attempts, failures)

        attempted = {requested}

        for name in chain:
            if name in attempted:
                logger.debug("Skipping already attempted backend", operation=operation, backend=name)
                continue
            attempted.add(name)

            logger.warning(
                "Falling back to next backend",
                operation=operation,
                requested=requested,
                backend=name,
            )
            try:
                handle = await self.registry.resolve(name)
            except (UnknownBackend, BackendConnectionError) as e:
                logger.warning("Fallback backend unavailable", operation=operation, backend=name, error=str(e))
                failures.append(BackendFailure(name, 0, [str(e)]))
                continue

            run = await self._run_backend(operation, handle, call, tries=self.policy.max_retries)
            total_attempts += run.attempts
            if run.result.ok:
                return self._finish(run.result, requested, total_attempts, failures)
            failures.append(run.failure(name))
            # An unreachable fallback is skipped like one that cannot be resolved
            if run.result.error_kind not in (ErrorKind.PROVIDER, ErrorKind.CONNECTION):
                return self._finish(run.result, requested, total_attempts, failures)

        logger.error(
            "All backends failed",
            operation=operation,
            requested=requested,
            tried=[f.backend for f in failures],
        )
        raise FallbackExhausted(operation, requested, failures)

    async def _run_backend(
        self,
        operation: str,
        handle: DriverHandle,
        call: ProviderCall,
        tries: int,
    ) -> _BackendRun:
        errors: list[str] = []
        result: OperationResult | None = None

        for attempt in range(1, tries + 1):
            result = await self._invoke(operation, handle, call, attempt)
            if result.ok:
                return _BackendRun(result, attempt, errors)

            errors.append(result.message or "unknown error")
            if result.error_kind is not ErrorKind.PROVIDER:
                return _BackendRun(result, attempt, errors)
            if attempt < tries:
                delay = self.policy.retry_delay * attempt
                logger.info(
                    "Retrying storage operation",
                    operation=operation,
                    backend=handle.name,
                    attempt=attempt,
                    delay=delay,
                )
                await self._sleep(delay)

        return _BackendRun(result, tries, errors)

    async def _invoke(
        self,
        operation: str,
        handle: DriverHandle,
        call: ProviderCall,
        attempt: int,
    ) -> OperationResult:
        logger.debug("Storage attempt", operation=operation, backend=handle.name, attempt=attempt)
        try:
            result = await call(handle.adapter)
        except ProviderError as e:
            return OperationResult.failure(handle.name, e.message)
        except GatewayError:
            raise
        except Exception as e:
            logger.exception("Adapter raised", operation=operation, backend=handle.name)
            return OperationResult.failure(handle.name, f"{type(e).__name__}: {e}")
        return result

    def _finish(
        self,
        result: OperationResult,
        requested: str,
        attempts: int,
        failures: list[BackendFailure],
    ) -> OperationResult:
        result.requested = requested
        result.attempts = attempts
        if not result.ok:
            result.failures = [f.to_dict() for f in failures]
        else:
            result.served_by = result.provider
            if result.provider != requested:
                logger.info("Served by fallback backend", requested=requested, served_by=result.provider)
        return result
