"""CLI error handling helpers."""

import click

from szamla.domain.errors import DomainError, ExternalBackendError


def handle_domain_error(ctx: click.Context, error: DomainError | ValueError) -> None:
    """Render a domain error and exit with failure."""
    click.echo(f"Error: {error}", err=True)
    if isinstance(error, ExternalBackendError) and error.detail and error.detail not in str(error):
        click.echo(f"Vendor response: {error.detail}", err=True)
    ctx.exit(1)
