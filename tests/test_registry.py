"""
Tests for the driver registry.
"""

import asyncio

import pytest

from multicloud.core.exceptions import BackendConnectionError, UnknownBackend
from multicloud.core.plugins.registry import DriverRegistry

from conftest import StubAdapter, build_registry


@pytest.mark.asyncio
async def test_resolve_default_backend():
    """First registered backend is the default unless one is named."""
    registry = build_registry(StubAdapter("aws"), StubAdapter("azure"))

    handle = await registry.resolve()

    assert registry.default == "aws"
    assert handle.name == "aws"
    assert handle.adapter.connected


@pytest.mark.asyncio
async def test_resolve_caches_handle():
    """A backend is connected once and the handle reused."""
    adapter = StubAdapter("aws")
    registry = build_registry(adapter)

    first = await registry.resolve("aws")
    second = await registry.resolve("aws")

    assert first is second
    assert adapter.connect_calls == 1
    assert registry.cached("aws") is first


@pytest.mark.asyncio
async def test_concurrent_resolve_connects_once():
    """Concurrent first resolves share one connection."""
    built = []

    class SlowAdapter(StubAdapter):
        async def connect(self, config):
            await asyncio.sleep(0.01)
            return await super().connect(config)

    def factory():
        adapter = SlowAdapter("aws")
        built.append(adapter)
        return adapter

    registry = DriverRegistry()
    registry.register("aws", factory)

    handles = await asyncio.gather(*(registry.resolve("aws") for _ in range(5)))

    assert len(built) == 1
    assert all(h is handles[0] for h in handles)


@pytest.mark.asyncio
async def test_unknown_backend_raises():
    registry = build_registry(StubAdapter("aws"))

    with pytest.raises(UnknownBackend) as exc_info:
        await registry.resolve("nope")

    assert exc_info.value.provider == "nope"
    assert "aws" in exc_info.value.available


@pytest.mark.asyncio
async def test_disabled_backend_is_listed_but_not_resolvable():
    registry = build_registry(
        StubAdapter("aws"),
        StubAdapter("azure"),
        enabled={"azure": False},
    )

    with pytest.raises(UnknownBackend):
        await registry.resolve("azure")

    assert registry.names() == ["aws"]
    assert registry.names(enabled_only=False) == ["aws", "azure"]
    catalog = {info.name: info for info in registry.list_backends()}
    assert catalog["azure"].enabled is False
    assert catalog["aws"].default is True


@pytest.mark.asyncio
async def test_rejected_config_raises_connection_error():
    """connect() returning False is a connection error and nothing is cached."""
    adapter = StubAdapter("aws", connect_ok=False)
    registry = build_registry(adapter)

    with pytest.raises(BackendConnectionError):
        await registry.resolve("aws")

    assert registry.cached("aws") is None
    assert adapter.closed == 1


@pytest.mark.asyncio
async def test_factory_error_raises_connection_error():
    def broken():
        raise RuntimeError("missing SDK")

    registry = DriverRegistry()
    registry.register("aws", broken)

    with pytest.raises(BackendConnectionError) as exc_info:
        await registry.resolve("aws")

    assert "missing SDK" in exc_info.value.message


@pytest.mark.asyncio
async def test_connect_error_closes_adapter():
    class Exploding(StubAdapter):
        async def connect(self, config):
            raise RuntimeError("bad credentials")

    adapter = Exploding("aws")
    registry = build_registry(adapter)

    with pytest.raises(BackendConnectionError):
        await registry.resolve("aws")

    assert adapter.closed == 1


@pytest.mark.asyncio
async def test_reset_closes_and_reconnects():
    adapter = StubAdapter("aws")
    registry = build_registry(adapter)
    await registry.resolve("aws")

    await registry.reset()
    assert adapter.closed == 1
    assert registry.cached("aws") is None

    await registry.resolve("aws")
    assert adapter.connect_calls == 2


@pytest.mark.asyncio
async def test_reregistering_retires_connected_handle():
    old = StubAdapter("aws")
    new = StubAdapter("aws")
    registry = build_registry(old)
    await registry.resolve("aws")

    registry.register("aws", lambda: new)
    handle = await registry.resolve("aws")

    assert handle.adapter is new
    assert old.closed == 0

    await registry.reset()
    assert old.closed == 1
    assert new.closed == 1


def test_default_setter_rejects_unknown_name():
    registry = build_registry(StubAdapter("aws"))

    with pytest.raises(UnknownBackend):
        registry.default = "gcp"


def test_backend_info_to_dict():
    registry = build_registry(StubAdapter("aws"))

    assert registry.list_backends()[0].to_dict() == {
        "key": "aws",
        "name": "AWS",
        "enabled": True,
        "default": True,
    }
