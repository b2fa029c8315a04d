"""Deployment command.

Runs a connection test against the target backend, walks the deployment
steps, and records a JSON manifest of the run in the backend under
`deployments/<environment>/`. `--dry-run` skips every write.
"""

import json

import click

from multicloud.cli.utils import (
    coro,
    error,
    info,
    open_gateway,
    require_provider,
    section,
    success,
    table,
    warning,
)
from multicloud.core.exceptions import GatewayError
from multicloud.utils.timezone import to_iso8601, utc_now

DEPLOY_STEPS = [
    "Preparing deployment package",
    "Uploading application files",
    "Configuring environment variables",
    "Setting up load balancer",
    "Deploying database migrations",
    "Running health checks",
    "Updating DNS records",
    "Cleaning up old deployments",
]


def manifest_key(environment: str, started_at: str) -> str:
    stamp = started_at.replace(":", "").replace("-", "")
    return f"deployments/{environment}/{stamp}.json"


@click.command(name="deploy")
@click.option("--provider", "-p", default=None, help="Target backend (default backend if omitted)")
@click.option("--environment", "-e", default="production", show_default=True, help="Target environment")
@click.option("--region", "-r", default=None, help="Target region")
@click.option("--dry-run", is_flag=True, help="Walk the steps without writing anything")
@click.pass_context
@coro
async def deploy(
    ctx: click.Context,
    provider: str | None,
    environment: str,
    region: str | None,
    dry_run: bool,
) -> None:
    """Deploy to a backend and record the deployment manifest.

    \b
    Examples:
      multicloud deploy --provider aws --environment staging
      multicloud deploy --dry-run
    """
    async with open_gateway(ctx) as gateway:
        name = require_provider(gateway, provider)
        started_at = to_iso8601(utc_now())
        info(f"Starting deployment to {name}...")

        info(f"Testing connection to {name}...")
        try:
            check = await gateway.test_connection(name)
        except GatewayError as e:
            error(f"Connection failed: {e.message}")
            ctx.exit(1)
        if not check.ok:
            error(f"Connection failed: {check.message}")
            ctx.exit(1)
        success("Connection successful")

        if dry_run:
            warning("DRY RUN MODE - no changes will be made")

        with click.progressbar(DEPLOY_STEPS, label="Deploying") as steps:
            completed = [step for step in steps]

        manifest_path = None
        served_by = name
        if not dry_run:
            manifest = {
                "provider": name,
                "environment": environment,
                "region": region,
                "steps": completed,
                "started_at": started_at,
                "finished_at": to_iso8601(utc_now()),
            }
            result = await gateway.upload(
                manifest_key(environment, started_at),
                json.dumps(manifest, indent=2).encode(),
                {"content_type": "application/json"},
                provider=name,
            )
            if not result.ok:
                error(f"Deployment failed: {result.message}")
                ctx.exit(1)
            manifest_path = result.data.get("path")
            served_by = result.served_by or result.provider

        section("Deployment Summary")
        table(
            ("Property", "Value"),
            [
                ("Provider", served_by),
                ("Environment", environment),
                ("Region", region or "Default"),
                ("Mode", "Dry Run" if dry_run else "Live"),
                ("Status", "Simulated" if dry_run else "Completed"),
                ("Manifest", manifest_path or "-"),
                ("Timestamp", started_at),
            ],
        )

        if dry_run:
            warning("Dry run completed - no changes were made")
        else:
            if served_by != name:
                warning(f"{name} was unavailable; manifest stored on {served_by}")
            success(f"Deployment completed on {served_by}")
