"""Customer management commands."""

import click
from szamla.cli.error_handling import handle_domain_error
from szamla.domain.customer import CustomerService
from szamla.domain.errors import DomainError


@click.group()
def customer_group():
    """Manage customers."""
    pass


@customer_group.command("create")
@click.argument("name", metavar="CUSTOMER_NAME")
@click.option("--tax-number", help="Hungarian tax number (e.g. 12345678-2-42)")
@click.option("--eu-tax-number", help="EU VAT number (e.g. HU12345678)")
@click.option("--zip", "zip_code", help="Postal code")
@click.option("--city", help="City")
@click.option("--address", help="Street address")
@click.option("--country", default="HU", show_default=True, help="ISO country code")
@click.option("--email", help="Contact e-mail")
@click.option("--phone", help="Contact phone")
@click.option("--payment-days", type=int, default=8, show_default=True, help="Days until payment deadline")
@click.option("--private", is_flag=True, help="Customer is a private person, not a company")
@click.pass_context
def create_customer(
    ctx,
    name: str,
    tax_number: str | None,
    eu_tax_number: str | None,
    zip_code: str | None,
    city: str | None,
    address: str | None,
    country: str,
    email: str | None,
    phone: str | None,
    payment_days: int,
    private: bool,
):
    """Create a new customer.

    Examples:
        szamla customer create "Példa Kft." --tax-number 12345678-2-42 --zip 1011 --city Budapest --address "Fő utca 1."
        szamla customer create "Kiss Anna" --private --payment-days 0
    """
    db = ctx.obj["db"]
    service = CustomerService(db)

    try:
        customer_id = service.create_customer(
            name=name,
            tax_number=tax_number,
            eu_tax_number=eu_tax_number,
            zip_code=zip_code,
            city=city,
            address=address,
            country=country.upper(),
            email=email,
            phone=phone,
            payment_deadline_days=payment_days,
            is_company=not private,
        )
        click.echo(f"Created customer '{name}' (ID: {customer_id})")
    except DomainError as e:
        handle_domain_error(ctx, e)


@customer_group.command("list")
@click.option("--active", is_flag=True, help="Show only active customers")
@click.pass_context
def list_customers(ctx, active: bool):
    """List all customers."""
    db = ctx.obj["db"]
    service = CustomerService(db)

    customers = service.list_customers(active_only=active)
    if not customers:
        click.echo("No customers found.")
        return

    click.echo("\nCustomers:")
    click.echo("-" * 78)
    for c in customers:
        place = ", ".join(p for p in (c.zip_code, c.city) if p)
        click.echo(f"ID: {c.id:3d} | {c.name:30s} | Tax: {c.tax_number or '-':15s} | {place}")


def register_commands(cli: click.Group) -> None:
    """Register customer commands with main CLI."""
    cli.add_command(customer_group, name="customer")
