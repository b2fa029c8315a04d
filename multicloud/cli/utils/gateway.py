"""Gateway access for CLI commands."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import click

from multicloud.cli.utils.formatters import error, info
from multicloud.core.config import get_settings
from multicloud.services.gateway import StorageGateway, build_gateway


@asynccontextmanager
async def open_gateway(ctx: click.Context) -> AsyncIterator[StorageGateway]:
    """
    Yield the gateway for a command and close it afterwards.

    A gateway placed in `ctx.obj["gateway"]` is used as is; otherwise one
    is built from the environment.
    """
    obj = ctx.ensure_object(dict)
    gateway = obj.get("gateway") or build_gateway(get_settings())
    try:
        yield gateway
    finally:
        await gateway.close()


def require_provider(gateway: StorageGateway, provider: str | None) -> str:
    """Resolve the provider name, exiting with status 1 when it is unknown."""
    name = provider or gateway.registry.default
    if name is None or not gateway.registry.has(name):
        error(f"Invalid provider: {name}")
        info(f"Available providers: {', '.join(gateway.registry.names(enabled_only=False))}")
        raise click.exceptions.Exit(1)
    return name
