"""
Shared plumbing for storage adapters.
"""

from __future__ import annotations

import mimetypes
from collections import Counter
from typing import Any, Mapping

import structlog

from multicloud.core.interfaces.storage import OperationResult, UsageReport
from multicloud.implementations.storage.pricing import PriceTable, estimate_costs, price_table

logger = structlog.get_logger(__name__)


class BaseAdapter:
    """
    Base class with request accounting and result helpers.

    Subclasses implement the StorageProvider operations; counters are
    per-process and feed the usage report's request/cost breakdown.
    """

    name: str = ""
    display_name: str = ""
    version: str = "1.0.0"

    def __init__(self, name: str | None = None, display_name: str | None = None):
        if name:
            self.name = name
        if display_name:
            self.display_name = display_name
        self.config: Mapping[str, Any] = {}
        self.prices: PriceTable = price_table(self.name)
        self.requests: Counter[str] = Counter()

    def _configure(self, config: Mapping[str, Any]) -> None:
        self.config = config
        self.prices = price_table(self.name, config.get("pricing"))

    def _count(self, kind: str, n: int = 1) -> None:
        self.requests[kind] += n

    def _ok(self, **data: Any) -> OperationResult:
        return OperationResult.success(self.name, **data)

    def _fail(self, action: str, error: Exception | str) -> OperationResult:
        logger.warning("Storage operation failed", provider=self.name, action=action, error=str(error))
        return OperationResult.failure(self.name, f"{action} failed: {error}")

    def _usage_report(
        self,
        object_count: int,
        total_bytes: int,
        extra: dict[str, Any] | None = None,
    ) -> UsageReport:
        requests = dict(self.requests)
        costs, total = estimate_costs(self.prices, total_bytes, requests)
        return UsageReport(
            provider=self.name,
            object_count=object_count,
            total_bytes=total_bytes,
            requests=requests,
            costs=costs,
            total_cost=total,
            extra=extra or {},
        )

    @staticmethod
    def _content_type(path: str, options: Mapping[str, Any]) -> str:
        if options.get("content_type"):
            return options["content_type"]
        guessed, _ = mimetypes.guess_type(path)
        return guessed or "application/octet-stream"

    @staticmethod
    def _string_metadata(options: Mapping[str, Any]) -> dict[str, str]:
        return {str(k): str(v) for k, v in (options.get("metadata") or {}).items()}

    async def close(self) -> None:
        pass
