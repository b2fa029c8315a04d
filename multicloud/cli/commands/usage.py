"""Usage statistics command.

Collects usage reports through the gateway (concurrently, with per-backend
timeouts) and prints them as a table, JSON or CSV. One failing backend is
shown as an error row and does not hide the others.
"""

import csv
import io
import json

import click

from multicloud.cli.utils import (
    coro,
    error,
    format_bytes,
    format_cost,
    header,
    info,
    open_gateway,
    require_provider,
    section,
    table,
)
from multicloud.services.usage import UsageEntry

CSV_HEADERS = [
    "Provider",
    "Total Objects",
    "Total Size",
    "Get Requests",
    "Put Requests",
    "Delete Requests",
    "Total Cost",
]


def _print_table(entries: dict[str, UsageEntry], detailed: bool) -> None:
    for name, entry in entries.items():
        if not entry.ok:
            error(f"{name}: {entry.error}")
            continue

        report = entry.report
        section(f"{name} Usage Statistics" + (" (cached)" if entry.cached else ""))
        table(
            ("Metric", "Value"),
            [
                ("Provider", report.provider),
                ("Total Objects", f"{report.object_count:,}"),
                ("Total Size", format_bytes(report.total_bytes)),
                ("Get Requests", f"{report.requests.get('get', 0):,}"),
                ("Put Requests", f"{report.requests.get('put', 0):,}"),
                ("Delete Requests", f"{report.requests.get('delete', 0):,}"),
                ("Total Cost", format_cost(report.total_cost)),
            ],
        )

        if not detailed:
            continue

        header("Detailed Information")
        table(
            ("Storage Metric", "Value"),
            [
                ("Total Objects", f"{report.object_count:,}"),
                ("Total Size (Bytes)", f"{report.total_bytes:,}"),
                ("Total Size (Human)", format_bytes(report.total_bytes)),
            ],
        )
        click.echo()
        table(
            ("Request Type", "Count"),
            [(kind.title(), f"{count:,}") for kind, count in report.requests.items()],
        )
        click.echo()
        cost_rows = [
            (kind.replace("_", " ").title(), format_cost(amount))
            for kind, amount in report.costs.items()
        ]
        cost_rows.append(("Total Cost", format_cost(report.total_cost)))
        table(("Cost Type", "Amount"), cost_rows)

        if report.extra:
            click.echo()
            table(
                ("Provider Metric", "Value"),
                [(key, str(value)) for key, value in report.extra.items()],
            )


def _print_csv(entries: dict[str, UsageEntry]) -> None:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for name, entry in entries.items():
        if not entry.ok:
            writer.writerow([name] + ["ERROR"] * (len(CSV_HEADERS) - 1))
            continue
        report = entry.report
        writer.writerow([
            name,
            report.object_count,
            format_bytes(report.total_bytes),
            report.requests.get("get", 0),
            report.requests.get("put", 0),
            report.requests.get("delete", 0),
            format_cost(report.total_cost),
        ])
    click.echo(buffer.getvalue(), nl=False)


@click.command(name="usage")
@click.option(
    "--provider",
    "-p",
    "providers",
    multiple=True,
    help="Backend to report on (repeatable). Defaults to the default backend.",
)
@click.option("--all", "all_providers", is_flag=True, help="Report on every enabled backend")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["table", "json", "csv"]),
    default="table",
    show_default=True,
    help="Output format",
)
@click.option("--detailed", is_flag=True, help="Show request and cost breakdowns")
@click.option("--refresh", is_flag=True, help="Bypass cached reports")
@click.pass_context
@coro
async def usage(
    ctx: click.Context,
    providers: tuple[str, ...],
    all_providers: bool,
    output_format: str,
    detailed: bool,
    refresh: bool,
) -> None:
    """Display backend usage statistics and estimated costs.

    \b
    Examples:
      multicloud usage
      multicloud usage --provider aws --provider gcp --format csv
      multicloud usage --all --detailed
    """
    async with open_gateway(ctx) as gateway:
        if all_providers:
            names = None
        elif providers:
            names = [require_provider(gateway, name) for name in providers]
        else:
            names = [require_provider(gateway, None)]

        if output_format == "table":
            header("Cloud Usage Statistics")
            info(f"Gathering usage data from {', '.join(names) if names else 'all providers'}...")

        entries = await gateway.get_usage(names, refresh=refresh)

        if output_format == "json":
            click.echo(json.dumps({name: entry.to_dict() for name, entry in entries.items()}, indent=2))
        elif output_format == "csv":
            _print_csv(entries)
        else:
            _print_table(entries, detailed)

        # A single-backend request that failed is a failed command
        if names is not None and len(names) == 1 and not any(e.ok for e in entries.values()):
            ctx.exit(1)
