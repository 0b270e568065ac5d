"""Shared output helpers for CLI commands."""

from decimal import Decimal

import click

from szamla.domain.entities import Invoice, InvoiceStatus


def format_money(amount: Decimal, currency: str | None = None) -> str:
    """Format an amount with thousands separators, e.g. ``12 700.00 HUF``."""
    text = f"{amount:,.2f}".replace(",", " ")
    return f"{text} {currency}" if currency else text


def echo_invoice(invoice: Invoice, status: InvoiceStatus) -> None:
    """Print an invoice with its lines and totals."""
    currency = invoice.currency or ""
    click.echo(f"\nInvoice {invoice.invoice_number or '(draft)'}  [ID: {invoice.id}]  {status.value}")
    click.echo("-" * 78)
    if invoice.customer is not None:
        click.echo(f"Customer:       {invoice.customer.name}")
    click.echo(f"Issue date:     {invoice.issue_date or '-'}")
    click.echo(f"Delivery date:  {invoice.delivery_date or '-'}")
    click.echo(f"Deadline:       {invoice.payment_deadline or '-'}")
    click.echo(f"Payment method: {invoice.payment_method.value if invoice.payment_method else '-'}")
    if invoice.currency and invoice.currency != "HUF":
        click.echo(f"Exchange rate:  {invoice.exchange_rate if invoice.exchange_rate is not None else '-'}")
    if invoice.billing_backend:
        click.echo(f"Backend:        {invoice.billing_backend}")
    if invoice.external_id:
        click.echo(f"External ID:    {invoice.external_id}")
    if invoice.is_sent:
        click.echo(f"Sent:           {invoice.sent_at} (transaction {invoice.transaction_id})")
    if invoice.is_paid:
        click.echo(f"Paid:           {invoice.payment_date}")
    if invoice.is_reverse_charge:
        click.echo("Reverse charge")
    if invoice.is_cash_accounting:
        click.echo("Cash accounting")

    click.echo("")
    if not invoice.items:
        click.echo("No items.")
    for item in invoice.items:
        discount = f" -{item.discount_percent.normalize():f}%" if item.discount_amount > 0 else ""
        click.echo(
            f"{item.line_number:3d}. {item.description[:28]:28s} "
            f"{item.quantity.normalize():f} {item.unit_of_measure} x {format_money(item.unit_price)}{discount} "
            f"[{item.vat.label}] = {format_money(item.gross_amount)}"
        )

    click.echo("-" * 78)
    click.echo(f"Net:   {format_money(invoice.net_amount, currency)}")
    click.echo(f"VAT:   {format_money(invoice.vat_amount, currency)}")
    click.echo(f"Gross: {format_money(invoice.gross_amount, currency)}")
    if invoice.notes:
        click.echo(f"\nNotes: {invoice.notes}")
