"""Company settings and invoice numbering commands."""

from dataclasses import asdict

import click
from szamla.cli.error_handling import handle_domain_error
from szamla.domain.errors import DomainError
from szamla.domain.numbering import InvoiceNumberSequencer
from szamla.domain.settings import CompanySettingsService, EDITABLE_FIELDS

SECRET_FIELDS = frozenset({"szamlazz_agent_key", "billingo_api_key"})
INT_FIELDS = frozenset({"billingo_block_id", "default_payment_deadline_days"})


@click.group()
def settings_group():
    """Manage company settings and invoice numbering."""
    pass


@settings_group.command("show")
@click.pass_context
def show_settings(ctx):
    """Show company settings and the next invoice number."""
    db = ctx.obj["db"]
    service = CompanySettingsService(db)
    settings = service.get_settings()

    click.echo("\nCompany settings:")
    click.echo("-" * 60)
    for name, value in asdict(settings).items():
        if name in SECRET_FIELDS and value:
            value = "****" + str(value)[-4:]
        click.echo(f"{name:32s} {value if value is not None else '-'}")
    click.echo(f"{'active backend':32s} {service.backend_type().value}")
    click.echo(f"{'next invoice number':32s} {InvoiceNumberSequencer(db).peek_next()}")


@settings_group.command("set")
@click.argument("pairs", nargs=-1, required=True, metavar="FIELD=VALUE...")
@click.pass_context
def set_settings(ctx, pairs: tuple[str, ...]):
    """Change one or more settings.

    Use an empty value to clear a field.

    Examples:
        szamla settings set company_name="Minta Kft." tax_number=12345678-2-42
        szamla settings set invoicing_backend=BILLINGO billingo_api_key=abc123
    """
    db = ctx.obj["db"]
    service = CompanySettingsService(db)

    changes = {}
    for pair in pairs:
        if "=" not in pair:
            click.echo(f"Error: Expected FIELD=VALUE, got '{pair}'", err=True)
            ctx.exit(1)
        name, value = pair.split("=", 1)
        name = name.strip()
        if name not in EDITABLE_FIELDS:
            click.echo(f"Error: Unknown setting '{name}'. Valid settings: {', '.join(EDITABLE_FIELDS)}", err=True)
            ctx.exit(1)
        if name in INT_FIELDS:
            try:
                changes[name] = int(value) if value else None
            except ValueError:
                click.echo(f"Error: {name} must be a whole number", err=True)
                ctx.exit(1)
        else:
            changes[name] = value if value else None

    try:
        service.update_settings(**changes)
        click.echo(f"Updated {', '.join(changes)}")
    except (DomainError, ValueError) as e:
        handle_domain_error(ctx, e)


@settings_group.command("numbering")
@click.option("--prefix", help="New invoice number prefix")
@click.option("--next-number", type=int, help="Next number to hand out (can only move forward)")
@click.pass_context
def numbering(ctx, prefix: str | None, next_number: int | None):
    """Show or change the invoice number sequence.

    Examples:
        szamla settings numbering
        szamla settings numbering --prefix SZ --next-number 100
    """
    db = ctx.obj["db"]
    sequencer = InvoiceNumberSequencer(db)

    if prefix is None and next_number is None:
        click.echo(f"Next invoice number: {sequencer.peek_next()}")
        return

    try:
        counter = sequencer.configure(prefix=prefix, next_number=next_number)
        click.echo(f"Next invoice number: {counter.preview()}")
    except DomainError as e:
        handle_domain_error(ctx, e)


def register_commands(cli: click.Group) -> None:
    """Register settings commands with main CLI."""
    cli.add_command(settings_group, name="settings")
