"""CLI error handling helpers."""

import click

from budgetsync.domain.errors import DomainError, PortError


def handle_domain_error(ctx: click.Context, error: DomainError | PortError | ValueError) -> None:
    """Render a domain or adapter error and exit with failure."""
    click.echo(f"Error: {error}", err=True)
    ctx.exit(1)
