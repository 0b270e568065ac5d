"""Domain model entities for szamla.

These are pure data classes representing business concepts, independent of
database schema. Invoices and their items are immutable; every change
produces a new instance (``dataclasses.replace``), and computed amounts are
derived in ``__post_init__`` so they can never drift from the line data.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, date
from decimal import Decimal
from enum import Enum
from typing import Optional

from szamla.domain.amounts import (
    LineAmounts,
    Rated,
    VatTreatment,
    calculate_line_amounts,
    calculate_totals,
)


class PaymentMethod(str, Enum):
    """How the customer pays the invoice."""

    BANK_TRANSFER = "BANK_TRANSFER"
    CASH = "CASH"
    CARD = "CARD"
    OTHER = "OTHER"


class InvoiceStatus(str, Enum):
    """Invoice lifecycle states.

    OVERDUE is only ever computed for display, never stored.
    """

    DRAFT = "DRAFT"
    ISSUED = "ISSUED"
    SENT = "SENT"
    PAID = "PAID"
    CANCELLED = "CANCELLED"
    OVERDUE = "OVERDUE"


@dataclass(frozen=True)
class Customer:
    """Customer (buyer) domain entity."""

    id: int
    name: str
    tax_number: Optional[str] = None
    eu_tax_number: Optional[str] = None
    zip_code: Optional[str] = None
    city: Optional[str] = None
    address: Optional[str] = None
    country: str = "HU"
    email: Optional[str] = None
    phone: Optional[str] = None
    payment_deadline_days: int = 8
    is_active: bool = True
    is_company: bool = True
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class CompanySettings:
    """Seller identity, invoicing defaults and billing backend credentials."""

    company_name: str = ""
    address: Optional[str] = None
    zip_code: Optional[str] = None
    city: Optional[str] = None
    country_code: str = "HU"
    tax_number: Optional[str] = None
    eu_tax_number: Optional[str] = None
    bank_name: Optional[str] = None
    bank_account: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    invoicing_backend: Optional[str] = "NAV_EXPORT"
    szamlazz_agent_key: Optional[str] = None
    billingo_api_key: Optional[str] = None
    billingo_block_id: Optional[int] = None
    default_currency: str = "HUF"
    default_payment_deadline_days: int = 8
    default_vat_rate: Decimal = Decimal("27")
    invoice_footer_text: Optional[str] = None
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class SequenceCounter:
    """Invoice number counter: prefix and the next number to hand out."""

    sequence_key: str
    prefix: str
    next_number: int

    def preview(self) -> str:
        """Number the next allocation will return."""
        return format_invoice_number(self.prefix, self.next_number)


def format_invoice_number(prefix: str, number: int) -> str:
    """Format an invoice number as ``{prefix}-{number:04d}``."""
    return f"{prefix}-{number:04d}"


@dataclass(frozen=True)
class InvoiceItem:
    """One billed line of an invoice.

    ``amounts`` is computed from quantity, unit price, VAT treatment and
    discount; it is not a constructor argument.
    """

    description: str
    quantity: Decimal
    unit_price: Decimal
    vat: VatTreatment = field(default_factory=lambda: Rated(Decimal("27")))
    unit_of_measure: str = "db"
    discount_percent: Decimal = Decimal("0")
    line_number: int = 0
    notes: Optional[str] = None
    id: Optional[int] = None
    amounts: LineAmounts = field(init=False, compare=False)

    def __post_init__(self):
        object.__setattr__(
            self,
            "amounts",
            calculate_line_amounts(self.quantity, self.unit_price, self.vat, self.discount_percent),
        )

    @property
    def net_amount(self) -> Decimal:
        return self.amounts.net

    @property
    def vat_amount(self) -> Decimal:
        return self.amounts.vat

    @property
    def gross_amount(self) -> Decimal:
        return self.amounts.gross

    @property
    def discount_amount(self) -> Decimal:
        return self.amounts.discount


@dataclass(frozen=True)
class Invoice:
    """Invoice domain entity.

    Items are renumbered 1..n on construction and the net/VAT/gross totals
    are recomputed from them, so any change made through ``replace`` keeps
    the totals consistent.
    """

    customer: Optional[Customer]
    issue_date: Optional[date]
    delivery_date: Optional[date]
    payment_deadline: Optional[date]
    payment_method: Optional[PaymentMethod] = PaymentMethod.BANK_TRANSFER
    currency: Optional[str] = "HUF"
    exchange_rate: Optional[Decimal] = Decimal("1")
    items: tuple[InvoiceItem, ...] = ()
    id: Optional[int] = None
    invoice_number: Optional[str] = None
    status: InvoiceStatus = InvoiceStatus.DRAFT
    payment_date: Optional[date] = None
    is_paid: bool = False
    is_sent: bool = False
    transaction_id: Optional[str] = None
    sent_at: Optional[datetime] = None
    external_id: Optional[str] = None
    document_url: Optional[str] = None
    billing_backend: Optional[str] = None
    is_reverse_charge: bool = False
    is_cash_accounting: bool = False
    notes: Optional[str] = None
    footer_text: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    net_amount: Decimal = field(init=False, compare=False)
    vat_amount: Decimal = field(init=False, compare=False)
    gross_amount: Decimal = field(init=False, compare=False)

    def __post_init__(self):
        items = tuple(
            item if item.line_number == index else replace(item, line_number=index)
            for index, item in enumerate(self.items, start=1)
        )
        object.__setattr__(self, "items", items)

        totals = calculate_totals(item.amounts for item in items)
        object.__setattr__(self, "net_amount", totals.net)
        object.__setattr__(self, "vat_amount", totals.vat)
        object.__setattr__(self, "gross_amount", totals.gross)

    @property
    def customer_id(self) -> Optional[int]:
        return self.customer.id if self.customer is not None else None

    def is_overdue(self, today: date) -> bool:
        """Return True if unpaid and the payment deadline has passed."""
        return not self.is_paid and self.payment_deadline is not None and self.payment_deadline < today


@dataclass(frozen=True)
class InvoiceStatistics:
    """Aggregate figures over all stored invoices."""

    total_count: int
    draft_count: int
    issued_count: int
    paid_count: int
    overdue_count: int
    total_net_amount: Decimal
    total_gross_amount: Decimal
    unpaid_amount: Decimal
