"""
Usage aggregation across backends.

Fans out `get_usage()` to several backends with bounded concurrency and a
per-backend deadline, normalizes whatever each vendor reports into a
UsageReport, and keeps one slow or broken backend from failing the rest.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Iterable, Mapping

import structlog

from multicloud.core.exceptions import GatewayError, UnknownBackend
from multicloud.core.interfaces.cache import CacheBackend
from multicloud.core.interfaces.storage import ErrorKind, UsageReport
from multicloud.core.plugins.registry import DriverRegistry

logger = structlog.get_logger(__name__)


# ============================================================
# NORMALIZATION
# ============================================================

def _first(mapping: Mapping[str, Any], *keys: str, default: Any = 0) -> Any:
    for key in keys:
        if key in mapping and mapping[key] is not None:
            return mapping[key]
    return default


def normalize_usage(provider: str, raw: UsageReport | Mapping[str, Any]) -> UsageReport:
    """
    Convert a backend's usage payload into a UsageReport.

    Accepts either a UsageReport or a mapping shaped like

        {"storage": {"total_objects": 10, "total_size_bytes": 2048},
         "requests": {"get_requests": 5, "put_requests": 2},
         "costs": {"storage_cost": 0.1, "total_cost": 0.12},
         ...anything else...}

    `object_count`/`total_bytes`, bare request names and a `total` cost are
    accepted too. Keys outside storage/requests/costs land in `extra`. When
    no total cost is reported it is the sum of the breakdown.
    """
    if isinstance(raw, UsageReport):
        return raw

    storage = raw.get("storage") or {}
    requests_raw = raw.get("requests") or {}
    costs_raw = dict(raw.get("costs") or {})

    requests = {}
    for key, value in requests_raw.items():
        name = key.removesuffix("_requests")
        requests[name] = int(value)

    total = costs_raw.pop("total_cost", None)
    if total is None:
        total = costs_raw.pop("total", None)
    else:
        costs_raw.pop("total", None)
    costs = {key.removesuffix("_cost"): float(value) for key, value in costs_raw.items()}
    if total is None:
        total = sum(costs.values())

    extra = {
        key: value for key, value in raw.items()
        if key not in {"storage", "requests", "costs", "provider"}
    }

    return UsageReport(
        provider=provider,
        object_count=int(_first(storage, "total_objects", "object_count")),
        total_bytes=int(_first(storage, "total_size_bytes", "total_bytes", "size_bytes")),
        requests=requests,
        costs=costs,
        total_cost=float(total),
        extra=extra,
    )


# ============================================================
# RESULTS
# ============================================================

@dataclass
class UsageEntry:
    """Usage outcome for one backend: a report, or an error."""
    provider: str
    report: UsageReport | None = None
    error: str | None = None
    error_kind: ErrorKind | None = None
    cached: bool = False

    @property
    def ok(self) -> bool:
        return self.report is not None

    def to_dict(self) -> dict[str, Any]:
        if self.report is not None:
            return {"status": "success", "cached": self.cached, **self.report.to_dict()}
        return {
            "status": "error",
            "provider": self.provider,
            "message": self.error,
            "error_kind": self.error_kind.value if self.error_kind else None,
        }


# ============================================================
# AGGREGATOR
# ============================================================

class UsageAggregator:
    """
    Collect usage from many backends concurrently.

    Usage:
        aggregator = UsageAggregator(registry, max_concurrency=4, timeout=10.0)
        entries = await aggregator.collect(["aws", "azure"])
        for name, entry in entries.items():
            print(name, entry.report.total_cost if entry.ok else entry.error)
    """

    def __init__(
        self,
        registry: DriverRegistry,
        max_concurrency: int = 4,
        timeout: float = 10.0,
        cache: CacheBackend | None = None,
        cache_ttl: int = 3600,
    ):
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.registry = registry
        self.max_concurrency = max_concurrency
        self.timeout = timeout
        self.cache = cache
        self.cache_ttl = cache_ttl

    def _targets(self, names: Iterable[str] | None) -> list[str]:
        if names is None:
            return self.registry.names()

        targets: list[str] = []
        for name in names:
            if not self.registry.has(name) or not self.registry.is_enabled(name):
                raise UnknownBackend(name, self.registry.names())
            if name not in targets:
                targets.append(name)
        return targets

    async def collect(
        self,
        names: Iterable[str] | None = None,
        *,
        refresh: bool = False,
    ) -> dict[str, UsageEntry]:
        """
        Collect usage for the given backends (all enabled ones by default).

        The returned mapping preserves request order regardless of which
        backend answers first.

        Raises:
            UnknownBackend: an explicitly named backend is not available
        """
        targets = self._targets(names)
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def bounded(name: str) -> UsageEntry:
            async with semaphore:
                return await self._collect_one(name, refresh)

        entries = await asyncio.gather(*(bounded(name) for name in targets))
        return dict(zip(targets, entries))

    async def collect_one(self, name: str | None = None, *, refresh: bool = False) -> UsageEntry:
        """Usage for a single backend (default backend if name is None)."""
        target = name or self.registry.default
        self._targets([target])
        return await self._collect_one(target, refresh)

    async def _collect_one(self, name: str, refresh: bool) -> UsageEntry:
        if self.cache is not None and not refresh:
            cached = await self._cache_get(name)
            if cached is not None:
                return UsageEntry(name, report=cached, cached=True)

        try:
            report = await asyncio.wait_for(self._fetch(name), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning("Usage collection timed out", backend=name, timeout=self.timeout)
            return UsageEntry(
                name,
                error=f"Timed out after {self.timeout}s",
                error_kind=ErrorKind.PROVIDER,
            )
        except GatewayError as e:
            logger.warning("Usage collection failed", backend=name, error=e.message)
            return UsageEntry(name, error=e.message, error_kind=e.kind)
        except Exception as e:
            logger.exception("Usage collection raised", backend=name)
            return UsageEntry(name, error=f"{type(e).__name__}: {e}", error_kind=ErrorKind.PROVIDER)

        if self.cache is not None:
            await self._cache_set(name, report)
        return UsageEntry(name, report=report)

    async def _fetch(self, name: str) -> UsageReport:
        handle = await self.registry.resolve(name)
        result = await handle.adapter.get_usage()
        if not result.ok:
            raise _UsageFailed(result.message or "usage collection failed", result.error_kind)
        raw = result.data.get("usage")
        if raw is None:
            raw = {k: v for k, v in result.data.items() if k != "usage"}
        return normalize_usage(name, raw)

    async def _cache_get(self, name: str) -> UsageReport | None:
        try:
            cached = await self.cache.get(self._cache_key(name))
            return UsageReport.from_dict(cached) if cached else None
        except Exception as e:
            logger.warning("Usage cache read failed", backend=name, error=str(e))
            return None

    async def _cache_set(self, name: str, report: UsageReport) -> None:
        try:
            await self.cache.set(self._cache_key(name), report.to_dict(), ttl=self.cache_ttl)
        except Exception as e:
            logger.warning("Usage cache write failed", backend=name, error=str(e))

    @staticmethod
    def _cache_key(name: str) -> str:
        return f"usage:{name}"


class _UsageFailed(GatewayError):
    def __init__(self, message: str, kind: ErrorKind | None):
        super().__init__(message)
        self.kind = kind or ErrorKind.PROVIDER
