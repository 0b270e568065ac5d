"""Shared domain error messages and error types."""

from typing import Optional


class DomainError(ValueError):
    """Base class for domain-level errors.

    Subclasses provide semantic categories while preserving ValueError
    compatibility for existing error handling.
    """


class ValidationError(DomainError):
    """Invalid input or failed validation in domain logic."""


class NotFoundError(DomainError):
    """Requested domain entity does not exist."""


class ConflictError(DomainError):
    """Domain conflict, such as uniqueness violations."""


class TransitionError(DomainError):
    """Illegal invoice status change requested."""


class ConcurrencyError(DomainError):
    """Invoice number allocation could not be serialized within its retry budget."""


class RenderError(DomainError):
    """Malformed invoice passed to the compliance exporter."""


class ExternalBackendError(DomainError):
    """Billing vendor rejected the request or was unreachable.

    The raw vendor response text is kept in ``detail`` so callers can show
    exactly what the vendor said.
    """

    def __init__(self, message: str, detail: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.detail = detail
        self.status_code = status_code


def invoice_not_found(invoice_id: int) -> str:
    """Return message for missing invoice."""
    return f"Invoice {invoice_id} not found"


def customer_not_found(customer_id: int) -> str:
    """Return message for missing customer."""
    return f"Customer {customer_id} not found"


def item_not_found(invoice_id: int, line_number: int) -> str:
    """Return message for missing invoice line."""
    return f"Invoice {invoice_id} has no line {line_number}"


def not_a_draft(invoice_number: Optional[str], status: str, action: str) -> str:
    """Return message when an operation needs a DRAFT invoice."""
    label = invoice_number or "draft"
    return f"Cannot {action} invoice {label}: status is {status}, only DRAFT invoices can be changed"


def illegal_transition(current: str, target: str) -> str:
    """Return message for a rejected status change."""
    return f"Invoice status cannot change from {current} to {target}"


def issue_requirements_failed(problems: list[str]) -> str:
    """Return message listing every unmet issuance requirement."""
    return "Invoice cannot be issued: " + "; ".join(problems)
