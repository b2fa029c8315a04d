"""Connection test command."""

import click

from multicloud.cli.utils import coro, error, info, open_gateway, require_provider, success
from multicloud.core.exceptions import GatewayError


@click.command(name="test-connection")
@click.option("--provider", "-p", default=None, help="Backend to test (default backend if omitted)")
@click.pass_context
@coro
async def test_connection(ctx: click.Context, provider: str | None) -> None:
    """Check a backend's credentials and reachability."""
    async with open_gateway(ctx) as gateway:
        name = require_provider(gateway, provider)
        info(f"Testing connection to {name}...")

        try:
            result = await gateway.test_connection(name)
        except GatewayError as e:
            error(f"Connection failed: {e.message}")
            ctx.exit(1)

        if not result.ok:
            error(f"Connection failed: {result.message}")
            ctx.exit(1)

        success(result.data.get("message") or f"Connected to {name}")
