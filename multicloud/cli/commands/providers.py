"""Backend catalog command."""

import click

from multicloud.cli.utils import coro, open_gateway, section


@click.command(name="providers")
@click.pass_context
@coro
async def providers(ctx: click.Context) -> None:
    """List configured backends and which one is the default."""
    async with open_gateway(ctx) as gateway:
        backends = gateway.list_backends()
        section(f"Backends ({len(backends)})")
        width = max((len(b.name) for b in backends), default=4) + 2
        for backend in backends:
            flags = []
            if backend.default:
                flags.append("default")
            if not backend.enabled:
                flags.append("disabled")
            suffix = f"  [{', '.join(flags)}]" if flags else ""
            click.secho(
                f"{backend.name:<{width}}{backend.display_name}{suffix}",
                fg=None if backend.enabled else "bright_black",
            )
