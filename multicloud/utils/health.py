"""
Gateway health checks.

Storage backends are checked with their connection test. The gateway is
unhealthy only when no storage backend answers, since any one of them can
serve requests through the fallback chains. A failing usage cache only
degrades it.
"""

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Optional

import redis.asyncio as aioredis
import structlog

from multicloud.core.exceptions import GatewayError

logger = structlog.get_logger(__name__)

STORAGE_PREFIX = "storage."


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


@dataclass
class ComponentHealth:
    """Result of one check."""

    name: str
    status: HealthStatus
    latency_ms: Optional[float] = None
    message: Optional[str] = None

    @property
    def is_storage(self) -> bool:
        return self.name.startswith(STORAGE_PREFIX)


@dataclass
class SystemHealth:
    status: HealthStatus
    version: str
    environment: str
    components: list[ComponentHealth] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "version": self.version,
            "environment": self.environment,
            "components": {
                c.name: {
                    "status": c.status.value,
                    "latency_ms": c.latency_ms,
                    "message": c.message,
                }
                for c in self.components
            },
        }


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 2)


async def check_backend(gateway, name: str) -> ComponentHealth:
    """Check one storage backend through the gateway's connection test."""
    component = f"{STORAGE_PREFIX}{name}"
    start = time.perf_counter()
    try:
        result = await gateway.test_connection(name)
    except GatewayError as e:
        return ComponentHealth(component, HealthStatus.UNHEALTHY, message=e.message[:100])

    if not result.ok:
        logger.warning("Storage backend health check failed", backend=name, error=result.message)
        return ComponentHealth(
            component,
            HealthStatus.UNHEALTHY,
            latency_ms=_elapsed_ms(start),
            message=(result.message or "")[:100],
        )
    return ComponentHealth(component, HealthStatus.HEALTHY, latency_ms=_elapsed_ms(start), message="Connected")


async def check_redis(redis_url: str) -> ComponentHealth:
    """Ping the usage cache."""
    start = time.perf_counter()
    client = aioredis.from_url(redis_url)
    try:
        await client.ping()
    except aioredis.RedisError as e:
        return ComponentHealth("redis", HealthStatus.DEGRADED, message=str(e)[:100])
    finally:
        await client.aclose()
    return ComponentHealth("redis", HealthStatus.HEALTHY, latency_ms=_elapsed_ms(start), message="Connected")


class HealthChecker:
    """
    Runs checks concurrently, each bounded by `timeout` seconds.

    Usage:
        checker = HealthChecker(version="0.1.0", environment="production", timeout=5.0)
        checker.add_check("storage.aws", lambda: check_backend(gateway, "aws"))
        checker.add_check("redis", lambda: check_redis(redis_url))

        health = await checker.run()
    """

    def __init__(self, version: str, environment: str, timeout: float = 5.0):
        self.version = version
        self.environment = environment
        self.timeout = timeout
        self.checks: dict[str, Callable[[], Awaitable[ComponentHealth]]] = {}

    def add_check(self, name: str, check_fn: Callable[[], Awaitable[ComponentHealth]]) -> None:
        self.checks[name] = check_fn

    async def _run_one(self, name: str, check_fn: Callable[[], Awaitable[ComponentHealth]]) -> ComponentHealth:
        failed = HealthStatus.UNHEALTHY if name.startswith(STORAGE_PREFIX) else HealthStatus.DEGRADED
        try:
            return await asyncio.wait_for(check_fn(), timeout=self.timeout)
        except asyncio.TimeoutError:
            return ComponentHealth(name, failed, message=f"Timed out after {self.timeout}s")
        except Exception as e:
            logger.exception("Health check raised", component=name)
            return ComponentHealth(name, failed, message=str(e)[:100])

    async def run(self) -> SystemHealth:
        components = list(await asyncio.gather(
            *(self._run_one(name, fn) for name, fn in self.checks.items())
        ))

        storage = [c for c in components if c.is_storage]
        healthy = [c for c in storage if c.status is HealthStatus.HEALTHY]
        if storage and not healthy:
            overall = HealthStatus.UNHEALTHY
        elif any(c.status is not HealthStatus.HEALTHY for c in components):
            overall = HealthStatus.DEGRADED
        else:
            overall = HealthStatus.HEALTHY

        return SystemHealth(
            status=overall,
            version=self.version,
            environment=self.environment,
            components=components,
        )
