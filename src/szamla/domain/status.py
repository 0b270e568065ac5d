"""Invoice status transitions and issuance requirements."""

from dataclasses import replace
from datetime import date
from decimal import Decimal

from szamla.domain.entities import Invoice, InvoiceStatus
from szamla.domain.errors import (
    TransitionError,
    ValidationError,
    illegal_transition,
    issue_requirements_failed,
    not_a_draft,
)

PERSISTED_STATES = frozenset(
    {
        InvoiceStatus.DRAFT,
        InvoiceStatus.ISSUED,
        InvoiceStatus.SENT,
        InvoiceStatus.PAID,
        InvoiceStatus.CANCELLED,
    }
)

ALLOWED_TRANSITIONS: dict[InvoiceStatus, frozenset[InvoiceStatus]] = {
    InvoiceStatus.DRAFT: PERSISTED_STATES - {InvoiceStatus.DRAFT},
    InvoiceStatus.ISSUED: frozenset({InvoiceStatus.SENT, InvoiceStatus.PAID, InvoiceStatus.CANCELLED}),
    InvoiceStatus.SENT: frozenset({InvoiceStatus.PAID, InvoiceStatus.CANCELLED}),
    InvoiceStatus.PAID: frozenset(),
    InvoiceStatus.CANCELLED: frozenset(),
}

# Leaving DRAFT for any of these means the document now exists legally.
ISSUED_STATES = frozenset({InvoiceStatus.ISSUED, InvoiceStatus.SENT, InvoiceStatus.PAID})


def can_transition(current: InvoiceStatus, target: InvoiceStatus) -> bool:
    """Return True if ``current`` may change to ``target``."""
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def validate_for_issue(invoice: Invoice, require_number: bool = True) -> list[str]:
    """Collect every unmet requirement for issuing the invoice.

    Args:
        invoice: Invoice to check
        require_number: If False, a missing invoice number is not reported.
            The number is allocated only after every other check passes.

    Returns:
        List of human readable problems, empty if the invoice can be issued
    """
    problems = []
    if require_number and not invoice.invoice_number:
        problems.append("invoice number is missing")
    if invoice.customer is None:
        problems.append("customer is missing")
    if invoice.issue_date is None:
        problems.append("issue date is missing")
    if invoice.delivery_date is None:
        problems.append("delivery date is missing")
    if invoice.payment_deadline is None:
        problems.append("payment deadline is missing")
    if invoice.payment_method is None:
        problems.append("payment method is missing")
    if not invoice.currency:
        problems.append("currency is missing")
    # Required even for HUF invoices (1.000000).
    if invoice.exchange_rate is None:
        problems.append("exchange rate is missing")
    if not invoice.items:
        problems.append("invoice has no items")
    elif invoice.net_amount <= Decimal("0"):
        problems.append("net amount must be greater than zero")
    return problems


def ensure_issuable(invoice: Invoice, require_number: bool = True) -> None:
    """Raise ValidationError unless the invoice meets every issuance requirement."""
    problems = validate_for_issue(invoice, require_number=require_number)
    if problems:
        raise ValidationError(issue_requirements_failed(problems))


def transition(invoice: Invoice, target: InvoiceStatus) -> Invoice:
    """Return a copy of the invoice in the ``target`` status.

    Raises:
        TransitionError: If the change is not allowed from the current status
        ValidationError: If the invoice leaves DRAFT for an issued state
            without meeting the issuance requirements
    """
    if target not in PERSISTED_STATES or not can_transition(invoice.status, target):
        raise TransitionError(illegal_transition(invoice.status.value, target.value))

    if invoice.status == InvoiceStatus.DRAFT and target in ISSUED_STATES:
        ensure_issuable(invoice)

    return replace(invoice, status=target)


def display_status(invoice: Invoice, today: date) -> InvoiceStatus:
    """Status to show to users, with OVERDUE derived from the deadline."""
    if invoice.status in (InvoiceStatus.ISSUED, InvoiceStatus.SENT) and invoice.is_overdue(today):
        return InvoiceStatus.OVERDUE
    return invoice.status


def ensure_editable(invoice: Invoice, action: str = "modify") -> None:
    """Raise ValidationError unless the invoice's economic fields may change."""
    if invoice.status != InvoiceStatus.DRAFT:
        raise ValidationError(not_a_draft(invoice.invoice_number, invoice.status.value, action))


def ensure_deletable(invoice: Invoice) -> None:
    """Only drafts can be deleted; anything issued must be cancelled instead."""
    if invoice.status != InvoiceStatus.DRAFT:
        raise ValidationError(
            f"Invoice {invoice.invoice_number} is {invoice.status.value}; "
            "only DRAFT invoices can be deleted, cancel it instead"
        )
