"""Output formatting utilities for CLI commands."""

import click


def success(message: str) -> None:
    """Print a success message in green."""
    click.secho(f"✓ {message}", fg="green")


def error(message: str) -> None:
    """Print an error message in red."""
    click.secho(f"✗ {message}", fg="red", err=True)


def warning(message: str) -> None:
    """Print a warning message in yellow."""
    click.secho(f"⚠ {message}", fg="yellow")


def info(message: str) -> None:
    """Print an info message in blue."""
    click.secho(f"ℹ {message}", fg="blue")


def header(message: str) -> None:
    """Print a header message in cyan bold."""
    click.secho(f"\n{message}", fg="cyan", bold=True)


def section(title: str) -> None:
    """Print a section divider."""
    click.secho(f"\n{'=' * 60}", fg="white", dim=True)
    click.secho(title, fg="white", bold=True)
    click.secho("=" * 60, fg="white", dim=True)


def table(headers: tuple[str, str], rows: list[tuple[str, str]]) -> None:
    """Print a two-column table."""
    width = max([len(headers[0])] + [len(label) for label, _ in rows]) + 2
    click.secho(f"{headers[0]:<{width}}{headers[1]}", bold=True)
    click.echo("-" * (width + max([len(headers[1])] + [len(value) for _, value in rows])))
    for label, value in rows:
        click.echo(f"{label:<{width}}{value}")


def format_bytes(size_bytes: float) -> str:
    """Format bytes to a human-readable size (e.g. "1.50 MB")."""
    for unit in ["B", "KB", "MB", "GB", "TB"]:
        if size_bytes < 1024.0:
            return f"{size_bytes:.2f} {unit}" if unit != "B" else f"{int(size_bytes)} B"
        size_bytes /= 1024.0
    return f"{size_bytes:.2f} PB"


def format_cost(amount: float) -> str:
    return f"${amount:,.3f}"
