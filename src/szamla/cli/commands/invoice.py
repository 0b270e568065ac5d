"""Invoice commands."""

from decimal import Decimal
from pathlib import Path

import click
from szamla.cli.error_handling import handle_domain_error
from szamla.cli.formatting import echo_invoice, format_money
from szamla.domain.customer import CustomerService
from szamla.domain.entities import Invoice, InvoiceStatus, PaymentMethod
from szamla.domain.errors import DomainError, NotFoundError
from szamla.domain.invoice import InvoiceService, IssueOutcome
from szamla.utils.amount_parser import parse_amount
from szamla.utils.customer_resolver import resolve_customer
from szamla.utils.date_parser import get_date_range, parse_date

PAYMENT_METHOD_CHOICES = [m.value for m in PaymentMethod]
STATUS_CHOICES = [s.value for s in InvoiceStatus]
PERIOD_CHOICES = ["this-month", "last-month", "this-quarter", "this-year", "last-year"]


def resolve_invoice(service: InvoiceService, invoice: str) -> Invoice:
    """Find an invoice by ID or invoice number.

    Raises:
        NotFoundError: If neither matches
    """
    found = service.get_by_number(invoice)
    if found is None and invoice.isdigit():
        found = service.get_invoice(int(invoice))
    if found is None:
        raise NotFoundError(f"Invoice '{invoice}' not found")
    return found


def _parse_date_option(ctx, value: str | None, label: str):
    if value is None:
        return None
    try:
        return parse_date(value)
    except ValueError as e:
        click.echo(f"Error: Invalid {label}: {e}", err=True)
        ctx.exit(1)


def _parse_amount_option(ctx, value: str | None, label: str):
    if value is None:
        return None
    try:
        return parse_amount(value)
    except ValueError as e:
        click.echo(f"Error: Invalid {label}: {e}", err=True)
        ctx.exit(1)


def _write_output(path: Path, content: bytes) -> None:
    path.write_bytes(content)
    click.echo(f"Saved {len(content)} bytes to {path}")


def _report_outcome(ctx, outcome: IssueOutcome, output: str | None) -> None:
    invoice = outcome.invoice
    if not outcome.success:
        click.echo(f"Invoice {invoice.invoice_number} is issued but was not sent: {outcome.result.message}", err=True)
        click.echo(f"Retry with: szamla invoice transmit {invoice.id}", err=True)
        ctx.exit(1)

    click.echo(f"Invoice {invoice.invoice_number} {invoice.status.value}: {outcome.result.message}")
    if invoice.external_id and invoice.external_id != invoice.invoice_number:
        click.echo(f"External ID: {invoice.external_id}")
    if invoice.document_url:
        click.echo(f"Document URL: {invoice.document_url}")
    if outcome.result.document and output:
        _write_output(Path(output), outcome.result.document)


@click.group()
def invoice_group():
    """Manage invoices."""
    pass


@invoice_group.command("create")
@click.argument("customer", metavar="CUSTOMER")
@click.option("--issue-date", help="Issue date (default: today)")
@click.option("--delivery-date", help="Delivery (fulfilment) date (default: issue date)")
@click.option("--deadline", help="Payment deadline (default: issue date + customer's payment days)")
@click.option(
    "--payment-method",
    type=click.Choice(PAYMENT_METHOD_CHOICES, case_sensitive=False),
    default=PaymentMethod.BANK_TRANSFER.value,
    show_default=True,
)
@click.option("--currency", help="Currency code (default: from settings)")
@click.option("--exchange-rate", help="Exchange rate to HUF (required for foreign currency)")
@click.option("--notes", help="Notes printed on the invoice")
@click.option("--reverse-charge", is_flag=True, help="Reverse charge (fordított adózás)")
@click.option("--cash-accounting", is_flag=True, help="Cash accounting (pénzforgalmi elszámolás)")
@click.pass_context
def create_invoice(
    ctx,
    customer: str,
    issue_date: str | None,
    delivery_date: str | None,
    deadline: str | None,
    payment_method: str,
    currency: str | None,
    exchange_rate: str | None,
    notes: str | None,
    reverse_charge: bool,
    cash_accounting: bool,
):
    """Create a draft invoice for CUSTOMER (name or ID).

    Examples:
        szamla invoice create "Példa Kft."
        szamla invoice create 3 --currency EUR --exchange-rate 395.12 --deadline "+15"
    """
    db = ctx.obj["db"]
    service = InvoiceService(db)

    try:
        customer_id = resolve_customer(CustomerService(db), customer)
        invoice = service.create_draft(
            customer_id=customer_id,
            issue_date=_parse_date_option(ctx, issue_date, "issue date"),
            delivery_date=_parse_date_option(ctx, delivery_date, "delivery date"),
            payment_deadline=_parse_date_option(ctx, deadline, "deadline"),
            payment_method=PaymentMethod(payment_method.upper()),
            currency=currency,
            exchange_rate=_parse_amount_option(ctx, exchange_rate, "exchange rate"),
            notes=notes,
            is_reverse_charge=reverse_charge,
            is_cash_accounting=cash_accounting,
        )
        click.echo(f"Created draft invoice (ID: {invoice.id}) for {invoice.customer.name}")
    except DomainError as e:
        handle_domain_error(ctx, e)


@invoice_group.command("add-item")
@click.argument("invoice_id", type=int)
@click.argument("description")
@click.option("--quantity", "-q", default="1", show_default=True, help="Quantity")
@click.option("--unit-price", "-p", required=True, help="Net unit price")
@click.option("--unit", default="db", show_default=True, help="Unit of measure (db, óra, kg, ...)")
@click.option("--vat-rate", help="VAT rate in percent (default: from settings)")
@click.option("--exempt", "exemption_reason", help="VAT exemption reason; makes the line VAT exempt")
@click.option("--exemption-code", default="TAM", show_default=True, help="VAT exemption code (TAM, AAM, ...)")
@click.option("--discount", help="Discount in percent")
@click.pass_context
def add_item(
    ctx,
    invoice_id: int,
    description: str,
    quantity: str,
    unit_price: str,
    unit: str,
    vat_rate: str | None,
    exemption_reason: str | None,
    exemption_code: str,
    discount: str | None,
):
    """Add a line to a draft invoice.

    Examples:
        szamla invoice add-item 1 "Consulting" -q 8 --unit óra -p 15000
        szamla invoice add-item 1 "Training" -p 50000 --exempt "Tax exempt education" --exemption-code TAM
    """
    db = ctx.obj["db"]
    service = InvoiceService(db)

    try:
        invoice = service.add_item(
            invoice_id,
            description=description,
            quantity=_parse_amount_option(ctx, quantity, "quantity"),
            unit_price=_parse_amount_option(ctx, unit_price, "unit price"),
            vat_rate=_parse_amount_option(ctx, vat_rate, "VAT rate"),
            vat_exemption_reason=exemption_reason,
            vat_exemption_code=exemption_code if exemption_reason else None,
            unit_of_measure=unit,
            discount_percent=_parse_amount_option(ctx, discount, "discount") or Decimal("0"),
        )
        item = invoice.items[-1]
        click.echo(
            f"Added line {item.line_number}: net {format_money(item.net_amount)}, "
            f"VAT {format_money(item.vat_amount)}, gross {format_money(item.gross_amount)}"
        )
        click.echo(f"Invoice total: {format_money(invoice.gross_amount, invoice.currency)}")
    except DomainError as e:
        handle_domain_error(ctx, e)


@invoice_group.command("remove-item")
@click.argument("invoice_id", type=int)
@click.argument("line_number", type=int)
@click.pass_context
def remove_item(ctx, invoice_id: int, line_number: int):
    """Remove a line from a draft invoice."""
    db = ctx.obj["db"]
    service = InvoiceService(db)

    try:
        invoice = service.remove_item(invoice_id, line_number)
        click.echo(f"Removed line {line_number}; invoice total: {format_money(invoice.gross_amount, invoice.currency)}")
    except DomainError as e:
        handle_domain_error(ctx, e)


@invoice_group.command("show")
@click.argument("invoice", metavar="INVOICE")
@click.pass_context
def show_invoice(ctx, invoice: str):
    """Show an invoice by ID or invoice number."""
    db = ctx.obj["db"]
    service = InvoiceService(db)

    try:
        found = resolve_invoice(service, invoice)
    except DomainError as e:
        handle_domain_error(ctx, e)
        return
    echo_invoice(found, service.display_status(found))


@invoice_group.command("list")
@click.option("--status", type=click.Choice(STATUS_CHOICES, case_sensitive=False), help="Filter by status")
@click.option("--customer", help="Customer name or ID")
@click.option("--start-date", help="Issued on or after this date")
@click.option("--end-date", help="Issued on or before this date")
@click.option("--period", type=click.Choice(PERIOD_CHOICES), help="Issued within a named period")
@click.option("--unpaid", is_flag=True, help="Show only unpaid invoices")
@click.pass_context
def list_invoices(
    ctx,
    status: str | None,
    customer: str | None,
    start_date: str | None,
    end_date: str | None,
    period: str | None,
    unpaid: bool,
):
    """List invoices, newest first."""
    db = ctx.obj["db"]
    service = InvoiceService(db)

    if period and (start_date or end_date):
        click.echo("Error: --period cannot be combined with --start-date or --end-date.", err=True)
        ctx.exit(1)

    if period:
        start, end = get_date_range(period)
    else:
        start = _parse_date_option(ctx, start_date, "start date")
        end = _parse_date_option(ctx, end_date, "end date")

    try:
        customer_id = resolve_customer(CustomerService(db), customer) if customer else None
        invoices = service.list_invoices(
            status=InvoiceStatus(status.upper()) if status else None,
            customer_id=customer_id,
            start_date=start,
            end_date=end,
            is_paid=False if unpaid else None,
        )
    except DomainError as e:
        handle_domain_error(ctx, e)
        return

    if not invoices:
        click.echo("No invoices found.")
        return

    click.echo(f"\n{'ID':>4s}  {'Number':12s} {'Issued':10s} {'Customer':24s} {'Status':9s} {'Gross':>18s}")
    click.echo("-" * 84)
    for inv in invoices:
        customer_name = inv.customer.name if inv.customer else "-"
        click.echo(
            f"{inv.id:4d}  {inv.invoice_number or '(draft)':12s} {str(inv.issue_date or '-'):10s} "
            f"{customer_name[:24]:24s} {service.display_status(inv).value:9s} "
            f"{format_money(inv.gross_amount, inv.currency):>18s}"
        )


@invoice_group.command("issue")
@click.argument("invoice_id", type=int)
@click.option("--output", "-o", type=click.Path(dir_okay=False), help="Save the returned document (XML or PDF) here")
@click.pass_context
def issue_invoice(ctx, invoice_id: int, output: str | None):
    """Number a draft invoice and issue it through the configured backend."""
    db = ctx.obj["db"]
    service = InvoiceService(db)

    try:
        outcome = service.issue_invoice(invoice_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
        return
    _report_outcome(ctx, outcome, output)


@invoice_group.command("transmit")
@click.argument("invoice_id", type=int)
@click.option("--output", "-o", type=click.Path(dir_okay=False), help="Save the returned document here")
@click.pass_context
def transmit_invoice(ctx, invoice_id: int, output: str | None):
    """Retry sending an issued invoice whose transmission failed."""
    db = ctx.obj["db"]
    service = InvoiceService(db)

    try:
        outcome = service.transmit_invoice(invoice_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
        return
    _report_outcome(ctx, outcome, output)


@invoice_group.command("mark-sent")
@click.argument("invoice_id", type=int)
@click.argument("transaction_id")
@click.pass_context
def mark_sent(ctx, invoice_id: int, transaction_id: str):
    """Record that an exported invoice was uploaded to NAV by hand."""
    db = ctx.obj["db"]
    service = InvoiceService(db)

    try:
        invoice = service.mark_as_sent(invoice_id, transaction_id)
        click.echo(f"Invoice {invoice.invoice_number} marked as sent (transaction {invoice.transaction_id})")
    except DomainError as e:
        handle_domain_error(ctx, e)


@invoice_group.command("pay")
@click.argument("invoice_id", type=int)
@click.option("--date", "payment_date", help="Payment date (default: today)")
@click.pass_context
def pay_invoice(ctx, invoice_id: int, payment_date: str | None):
    """Mark an invoice as paid."""
    db = ctx.obj["db"]
    service = InvoiceService(db)

    try:
        invoice = service.mark_as_paid(invoice_id, _parse_date_option(ctx, payment_date, "payment date"))
        click.echo(f"Invoice {invoice.invoice_number} marked as paid on {invoice.payment_date}")
    except DomainError as e:
        handle_domain_error(ctx, e)


@invoice_group.command("cancel")
@click.argument("invoice_id", type=int)
@click.option("--reason", default="", help="Reason for the cancellation")
@click.pass_context
def cancel_invoice(ctx, invoice_id: int, reason: str):
    """Cancel an invoice (also on the vendor, if it was sent there)."""
    db = ctx.obj["db"]
    service = InvoiceService(db)

    try:
        invoice = service.cancel_invoice(invoice_id, reason)
        click.echo(f"Invoice {invoice.invoice_number or invoice.id} cancelled")
    except DomainError as e:
        handle_domain_error(ctx, e)


@invoice_group.command("delete")
@click.argument("invoice_id", type=int)
@click.pass_context
def delete_invoice(ctx, invoice_id: int):
    """Delete a draft invoice. Issued invoices must be cancelled instead."""
    db = ctx.obj["db"]
    service = InvoiceService(db)

    try:
        service.delete_invoice(invoice_id)
        click.echo(f"Deleted draft invoice {invoice_id}")
    except DomainError as e:
        handle_domain_error(ctx, e)


@invoice_group.command("export")
@click.argument("invoice_id", type=int)
@click.option("--output", "-o", type=click.Path(dir_okay=False), help="Output file (default: <number>.xml)")
@click.pass_context
def export_invoice(ctx, invoice_id: int, output: str | None):
    """Export an issued invoice as NAV Online Számla XML."""
    db = ctx.obj["db"]
    service = InvoiceService(db)

    try:
        xml = service.export_xml(invoice_id)
        invoice = service.get_invoice(invoice_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
        return
    _write_output(Path(output or f"{invoice.invoice_number}.xml"), xml)


@invoice_group.command("download")
@click.argument("invoice_id", type=int)
@click.option("--output", "-o", type=click.Path(dir_okay=False), help="Output file (default: <number>.pdf)")
@click.pass_context
def download_invoice(ctx, invoice_id: int, output: str | None):
    """Download the document of an issued invoice from its backend."""
    db = ctx.obj["db"]
    service = InvoiceService(db)

    try:
        document = service.download_document(invoice_id)
        invoice = service.get_invoice(invoice_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
        return
    _write_output(Path(output or f"{invoice.invoice_number}.pdf"), document)


@invoice_group.command("stats")
@click.pass_context
def invoice_stats(ctx):
    """Show invoice counts and totals."""
    db = ctx.obj["db"]
    stats = InvoiceService(db).get_statistics()

    click.echo("\nInvoice statistics:")
    click.echo("-" * 40)
    click.echo(f"{'Total invoices':20s} {stats.total_count:>18d}")
    click.echo(f"{'Drafts':20s} {stats.draft_count:>18d}")
    click.echo(f"{'Issued / sent':20s} {stats.issued_count:>18d}")
    click.echo(f"{'Paid':20s} {stats.paid_count:>18d}")
    click.echo(f"{'Overdue':20s} {stats.overdue_count:>18d}")
    click.echo(f"{'Net total':20s} {format_money(stats.total_net_amount):>18s}")
    click.echo(f"{'Gross total':20s} {format_money(stats.total_gross_amount):>18s}")
    click.echo(f"{'Unpaid':20s} {format_money(stats.unpaid_amount):>18s}")


def register_commands(cli: click.Group) -> None:
    """Register invoice commands with main CLI."""
    cli.add_command(invoice_group, name="invoice")
