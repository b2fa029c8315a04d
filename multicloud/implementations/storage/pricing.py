"""
List-price estimates for usage reports.

Object stores do not expose billing through their data-plane APIs, so usage
costs are estimated from stored bytes and the requests this process issued.
Prices are USD: per GB-month of storage and per 1,000 requests.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Mapping

GB = 1024 ** 3


@dataclass(frozen=True)
class PriceTable:
    storage_gb_month: float = 0.0
    get_per_1000: float = 0.0
    put_per_1000: float = 0.0
    delete_per_1000: float = 0.0

    def with_overrides(self, overrides: Mapping[str, Any] | None) -> "PriceTable":
        if not overrides:
            return self
        known = {k: float(v) for k, v in overrides.items() if k in self.__dataclass_fields__}
        return replace(self, **known)


DEFAULT_PRICES: dict[str, PriceTable] = {
    "aws": PriceTable(storage_gb_month=0.023, get_per_1000=0.0004, put_per_1000=0.005),
    "azure": PriceTable(storage_gb_month=0.0184, get_per_1000=0.0004, put_per_1000=0.0065),
    "gcp": PriceTable(storage_gb_month=0.020, get_per_1000=0.0004, put_per_1000=0.005),
    "alibaba": PriceTable(storage_gb_month=0.0173, get_per_1000=0.00002, put_per_1000=0.00002),
    "ibm": PriceTable(storage_gb_month=0.022, get_per_1000=0.0004, put_per_1000=0.005),
    "digitalocean": PriceTable(storage_gb_month=0.02),
    "oracle": PriceTable(storage_gb_month=0.0255, put_per_1000=0.00034),
    "cloudflare": PriceTable(storage_gb_month=0.015, get_per_1000=0.00036, put_per_1000=0.0045),
    "cloudinary": PriceTable(),
    "local": PriceTable(),
}


def price_table(provider: str, overrides: Mapping[str, Any] | None = None) -> PriceTable:
    return DEFAULT_PRICES.get(provider, PriceTable()).with_overrides(overrides)


def estimate_costs(
    prices: PriceTable,
    total_bytes: int,
    requests: Mapping[str, int],
) -> tuple[dict[str, float], float]:
    """Return (cost breakdown, total) for one month at the given volume."""
    # LIST is billed as a PUT-class request
    put_class = requests.get("put", 0) + requests.get("list", 0)
    costs = {
        "storage": round(total_bytes / GB * prices.storage_gb_month, 6),
        "get_requests": round(requests.get("get", 0) / 1000 * prices.get_per_1000, 6),
        "put_requests": round(put_class / 1000 * prices.put_per_1000, 6),
        "delete_requests": round(requests.get("delete", 0) / 1000 * prices.delete_per_1000, 6),
    }
    return costs, round(sum(costs.values()), 6)
