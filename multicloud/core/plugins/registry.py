"""
Driver registry for storage backends.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Mapping

from multicloud.core.exceptions import BackendConnectionError, UnknownBackend
from multicloud.core.interfaces.storage import StorageProvider

logger = logging.getLogger(__name__)

AdapterFactory = Callable[[], StorageProvider]


@dataclass(frozen=True)
class DriverHandle:
    """A connected adapter plus the config it was built from."""
    name: str
    adapter: StorageProvider
    config: Mapping[str, Any]


@dataclass(frozen=True)
class BackendInfo:
    """Catalog entry, independent of connection state."""
    name: str
    display_name: str
    enabled: bool = True
    default: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.name,
            "name": self.display_name,
            "enabled": self.enabled,
            "default": self.default,
        }


@dataclass(frozen=True)
class _Registration:
    factory: AdapterFactory
    display_name: str


class DriverRegistry:
    """
    Resolves backend names to cached, connected adapters.

    Example usage:
    ```python
    registry = DriverRegistry(
        configs={"aws": {"bucket": "my-bucket"}, "azure": {...}},
        default="aws",
    )
    registry.register("aws", lambda: S3Adapter("aws", "Amazon Web Services"),
                      display_name="Amazon Web Services")

    handle = await registry.resolve()          # default backend
    handle = await registry.resolve("azure")   # explicit backend
    ```

    The registry is constructed explicitly and passed to whoever needs it;
    the handle cache is its only mutable state.
    """

    def __init__(
        self,
        configs: Mapping[str, Mapping[str, Any]] | None = None,
        default: str | None = None,
        *,
        enabled: Mapping[str, bool] | None = None,
    ):
        self._configs: dict[str, Mapping[str, Any]] = {
            name: MappingProxyType(dict(config))
            for name, config in (configs or {}).items()
        }
        self._enabled = dict(enabled or {})
        self._registrations: dict[str, _Registration] = {}
        self._handles: dict[str, DriverHandle] = {}
        self._retired: list[DriverHandle] = []
        self._locks: dict[str, asyncio.Lock] = {}
        self._default = default

    def register(
        self,
        name: str,
        factory: AdapterFactory,
        *,
        display_name: str | None = None,
        default: bool = False,
    ) -> None:
        """
        Register a backend adapter constructor.

        Args:
            name: Unique backend key (e.g. "aws")
            factory: Zero-argument callable returning an unconnected adapter
            display_name: Human readable name for catalogs
            default: Set as default backend
        """
        if name in self._registrations:
            logger.warning(f"Overwriting existing storage backend: {name}")

        self._registrations[name] = _Registration(
            factory=factory,
            display_name=display_name or name,
        )
        stale = self._handles.pop(name, None)
        if stale is not None:
            # Closed on the next full reset()
            self._retired.append(stale)

        if default or self._default is None:
            self._default = name

        logger.info(f"Registered storage backend: {name}")

    def config_for(self, name: str) -> Mapping[str, Any]:
        return self._configs.get(name, MappingProxyType({}))

    def is_enabled(self, name: str) -> bool:
        return self._enabled.get(name, True)

    def has(self, name: str) -> bool:
        """Check if backend is registered (enabled or not)."""
        return name in self._registrations

    def names(self, *, enabled_only: bool = True) -> list[str]:
        """Registered backend names, in registration order."""
        return [
            name for name in self._registrations
            if not enabled_only or self.is_enabled(name)
        ]

    @property
    def default(self) -> str | None:
        return self._default

    @default.setter
    def default(self, name: str) -> None:
        if name not in self._registrations:
            raise UnknownBackend(name, self.names(enabled_only=False))
        self._default = name

    def list_backends(self) -> list[BackendInfo]:
        """Static catalog of registered backends."""
        return [
            BackendInfo(
                name=name,
                display_name=reg.display_name,
                enabled=self.is_enabled(name),
                default=name == self._default,
            )
            for name, reg in self._registrations.items()
        ]

    def cached(self, name: str) -> DriverHandle | None:
        return self._handles.get(name)

    async def resolve(self, name: str | None = None) -> DriverHandle:
        """
        Get the connected handle for a backend.

        Args:
            name: Backend name (uses default if not specified)

        Raises:
            UnknownBackend: name not registered or disabled
            BackendConnectionError: adapter construction or connect() failed
        """
        name = name or self._default

        # Lock-free fast path for already connected backends
        handle = self._handles.get(name) if name else None
        if handle is not None:
            return handle

        if name is None or name not in self._registrations:
            raise UnknownBackend(name, self.names())
        if not self.is_enabled(name):
            raise UnknownBackend(name, self.names())

        lock = self._locks.setdefault(name, asyncio.Lock())
        async with lock:
            # Another caller may have connected while we waited
            handle = self._handles.get(name)
            if handle is not None:
                return handle

            handle = await self._connect(name)
            self._handles[name] = handle
            return handle

    async def _connect(self, name: str) -> DriverHandle:
        config = self.config_for(name)
        registration = self._registrations[name]

        try:
            adapter = registration.factory()
        except Exception as e:
            logger.error(f"Failed to build storage backend {name}: {e}")
            raise BackendConnectionError(
                f"Failed to connect to {name}: {e}", provider=name
            ) from e

        try:
            connected = await adapter.connect(config)
        except Exception as e:
            logger.error(f"Failed to connect storage backend {name}: {e}")
            await self._close_adapter(name, adapter)
            raise BackendConnectionError(
                f"Failed to connect to {name}: {e}", provider=name
            ) from e

        if not connected:
            logger.error(f"Storage backend {name} rejected its configuration")
            await self._close_adapter(name, adapter)
            raise BackendConnectionError(
                f"Failed to connect to {name}", provider=name
            )

        logger.info(f"Connected storage backend: {name}")
        return DriverHandle(name=name, adapter=adapter, config=config)

    async def _close_adapter(self, name: str, adapter: StorageProvider) -> None:
        # Best effort; never masks the error being raised
        try:
            await adapter.close()
        except Exception as e:
            logger.warning(f"Closing storage backend {name} failed: {e}")

    async def reset(self, name: str | None = None) -> None:
        """
        Discard cached handle(s); the next resolve reconnects.

        A full reset also closes handles that were replaced by re-registering
        their backend name.
        """
        names = [name] if name else list(self._handles)
        for key in names:
            handle = self._handles.pop(key, None)
            if handle is not None:
                await handle.adapter.close()
                logger.info(f"Discarded storage backend handle: {key}")

        if name is None:
            retired, self._retired = self._retired, []
            for handle in retired:
                await self._close_adapter(handle.name, handle.adapter)
