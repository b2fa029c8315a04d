"""Main CLI entry point for multicloud gateway commands."""

import sys

import click

from multicloud import __version__
from multicloud.cli.commands import connection, deploy, providers, usage
from multicloud.core.config import get_settings
from multicloud.core.logging import configure_logging


@click.group()
@click.version_option(version=__version__, prog_name="multicloud")
@click.pass_context
def cli(ctx: click.Context) -> None:
    """Multicloud gateway CLI - usage, deployment and connectivity commands.

    \b
    Commands:
      usage            Usage statistics and estimated costs
      deploy           Deploy to a backend and record a manifest
      providers        List configured backends
      test-connection  Check a backend's credentials

    Backends are configured through environment variables (or a .env file);
    see MULTICLOUD_DEFAULT and the per-backend prefixes.
    """
    ctx.ensure_object(dict)
    if "gateway" not in ctx.obj:
        # Logs go to stderr so stdout stays parseable (json, csv)
        configure_logging(get_settings(), stream=sys.stderr)


cli.add_command(usage.usage)
cli.add_command(deploy.deploy)
cli.add_command(providers.providers)
cli.add_command(connection.test_connection)


def main() -> None:
    """Entry point for the CLI."""
    cli(obj={})


if __name__ == "__main__":
    main()
