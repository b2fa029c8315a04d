"""
Pytest fixtures for testing.

Provides:
- StubAdapter: in-memory StorageProvider with scripted failures
- Registry and gateway factories built from stubs
- Test client with the gateway dependency overridden
"""

import asyncio
from typing import Any, AsyncGenerator, Callable, Mapping, Optional

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from multicloud.api.dependencies.services import get_app_settings, get_gateway
from multicloud.core.config import Settings
from multicloud.core.interfaces.storage import (
    ErrorKind,
    FileMetadata,
    OperationResult,
    UsageReport,
)
from multicloud.core.plugins.registry import DriverRegistry
from multicloud.main import create_app
from multicloud.services.fallback import FallbackOrchestrator, FallbackPolicy
from multicloud.services.gateway import StorageGateway
from multicloud.services.usage import UsageAggregator


# ============ Stub Adapter ============


class StubAdapter:
    """
    In-memory storage backend.

    `fail_times` makes the next N data operations return provider
    failures; `fail_always` makes every one fail. Every data operation is
    appended to `log` (shared between stubs to check cross-backend order).
    """

    version = "test"

    def __init__(
        self,
        name: str,
        *,
        log: Optional[list[str]] = None,
        fail_times: int = 0,
        fail_always: bool = False,
        raise_error: Optional[Exception] = None,
        connect_ok: bool = True,
        signed_url: Optional[str] = None,
        usage: Any = None,
        usage_delay: float = 0.0,
        usage_error: Optional[str] = None,
    ):
        self.name = name
        self.display_name = name.upper()
        self.log = log if log is not None else []
        self.fail_times = fail_times
        self.fail_always = fail_always
        self.raise_error = raise_error
        self.connect_ok = connect_ok
        self.signed_url = signed_url
        self.usage = usage
        self.usage_delay = usage_delay
        self.usage_error = usage_error

        self.files: dict[str, bytes] = {}
        self.options: dict[str, Mapping[str, Any]] = {}
        self.sign_calls: list[int] = []
        self.usage_calls = 0
        self.connect_calls = 0
        self.closed = 0
        self.connected = False

    async def connect(self, config: Mapping[str, Any]) -> bool:
        self.connect_calls += 1
        self.connected = self.connect_ok
        return self.connect_ok

    def _attempt(self, operation: str) -> Optional[OperationResult]:
        self.log.append(self.name)
        if self.raise_error is not None:
            raise self.raise_error
        if self.fail_always:
            return OperationResult.failure(self.name, f"{operation} failed on {self.name}")
        if self.fail_times > 0:
            self.fail_times -= 1
            return OperationResult.failure(self.name, f"{operation} failed on {self.name}")
        return None

    async def upload(self, path, content, options=None):
        failed = self._attempt("upload")
        if failed:
            return failed
        self.files[path] = content
        self.options[path] = dict(options or {})
        return OperationResult.success(self.name, path=path, size=len(content), url=f"stub://{self.name}/{path}")

    async def download(self, path, local_path=None):
        failed = self._attempt("download")
        if failed:
            return failed
        if path not in self.files:
            return OperationResult.failure(self.name, f"File not found: {path}")
        content = self.files[path]
        return OperationResult.success(self.name, path=path, content=content, size=len(content))

    async def delete(self, path):
        failed = self._attempt("delete")
        if failed:
            return failed
        deleted = self.files.pop(path, None) is not None
        return OperationResult.success(self.name, path=path, deleted=deleted)

    async def list_files(self, prefix="", options=None):
        failed = self._attempt("list")
        if failed:
            return failed
        files = [
            FileMetadata(path=key, size=len(value), content_type="application/octet-stream")
            for key, value in sorted(self.files.items())
            if key.startswith(prefix)
        ]
        return OperationResult.success(self.name, files=files, count=len(files), prefix=prefix)

    async def exists(self, path):
        self.log.append(self.name)
        return path in self.files

    async def get_metadata(self, path):
        failed = self._attempt("metadata")
        if failed:
            return failed
        if path not in self.files:
            return OperationResult.failure(self.name, f"File not found: {path}")
        return OperationResult.success(
            self.name,
            metadata=FileMetadata(path=path, size=len(self.files[path]), content_type="text/plain"),
        )

    async def generate_signed_url(self, path, ttl):
        self.sign_calls.append(ttl)
        if self.raise_error is not None:
            raise self.raise_error
        if self.signed_url is not None:
            return self.signed_url
        return f"https://{self.name}.example.com/{path}?ttl={ttl}"

    async def get_usage(self):
        self.usage_calls += 1
        if self.usage_delay:
            await asyncio.sleep(self.usage_delay)
        if self.usage_error:
            return OperationResult.failure(self.name, self.usage_error)
        usage = self.usage or UsageReport(
            provider=self.name,
            object_count=len(self.files),
            total_bytes=sum(len(v) for v in self.files.values()),
            requests={"get": 3, "put": 2},
            costs={"storage": 0.01},
            total_cost=0.01,
        )
        return OperationResult.success(self.name, usage=usage)

    async def test_connection(self):
        if self.fail_always:
            return OperationResult.failure(self.name, f"{self.name} unreachable", ErrorKind.CONNECTION)
        return OperationResult.success(self.name, message=f"{self.display_name} connection successful")

    async def close(self):
        self.closed += 1


# ============ Factory Fixtures ============


def build_registry(
    *adapters: StubAdapter,
    default: Optional[str] = None,
    enabled: Optional[Mapping[str, bool]] = None,
) -> DriverRegistry:
    registry = DriverRegistry(default=default, enabled=enabled)
    for adapter in adapters:
        registry.register(
            adapter.name,
            lambda adapter=adapter: adapter,
            display_name=adapter.display_name,
        )
    return registry


class SleepRecorder:
    """Stands in for asyncio.sleep and records requested delays."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def call_log() -> list[str]:
    return []


@pytest.fixture
def sleeper() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def make_gateway(sleeper: SleepRecorder) -> Callable[..., StorageGateway]:
    """Build a gateway over stub adapters. The first adapter is the default."""

    def factory(
        *adapters: StubAdapter,
        chains: Optional[Mapping[str, tuple[str, ...]]] = None,
        max_retries: int = 3,
        fallback_enabled: bool = True,
        enabled: Optional[Mapping[str, bool]] = None,
        **kwargs: Any,
    ) -> StorageGateway:
        registry = build_registry(*adapters, enabled=enabled)
        policy = FallbackPolicy(
            enabled=fallback_enabled,
            chains=chains or {},
            max_retries=max_retries,
            retry_delay=0.01,
        )
        return StorageGateway(
            registry,
            FallbackOrchestrator(registry, policy, sleep=sleeper),
            usage=UsageAggregator(registry, timeout=1.0),
            **kwargs,
        )

    return factory


@pytest.fixture
def gateway(make_gateway, call_log) -> StorageGateway:
    """Three stub backends; "primary" falls back to "secondary" then "tertiary"."""
    return make_gateway(
        StubAdapter("primary", log=call_log),
        StubAdapter("secondary", log=call_log),
        StubAdapter("tertiary", log=call_log),
        chains={"primary": ("secondary", "tertiary")},
    )


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings that need no credentials and no network."""
    return Settings(
        environment="testing",
        default="local",
        log_format="text",
        local={"path": str(tmp_path / "storage"), "signing_secret": "test-secret"},
        cache={"enabled": False},
    )


@pytest_asyncio.fixture(scope="function")
async def client(settings: Settings, gateway: StorageGateway) -> AsyncGenerator[AsyncClient, None]:
    """
    Test client with the stub gateway in place of the configured one.
    """
    app = create_app(settings)

    app.dependency_overrides[get_gateway] = lambda: gateway
    app.dependency_overrides[get_app_settings] = lambda: settings

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client

    app.dependency_overrides.clear()
