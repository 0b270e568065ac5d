"""Invoice domain service: drafting, issuing, transmitting, paying and cancelling."""

import logging
from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta, UTC
from decimal import Decimal
from typing import Callable, Iterable, Optional

from szamla.billing.base import BillingBackend, BillingResult
from szamla.billing.nav_xml import NavInvoiceXmlRenderer
from szamla.billing.selector import BillingBackendSelector, create_billing_selector
from szamla.database.base import Database
from szamla.domain.amounts import HUNDRED, Rated, VatTreatment, ZERO, ZERO_MONEY, vat_treatment
from szamla.domain.entities import (
    Invoice,
    InvoiceItem,
    InvoiceStatistics,
    InvoiceStatus,
    PaymentMethod,
)
from szamla.domain.errors import (
    ExternalBackendError,
    NotFoundError,
    TransitionError,
    ValidationError,
    customer_not_found,
    illegal_transition,
    invoice_not_found,
    issue_requirements_failed,
    item_not_found,
)
from szamla.domain.numbering import DEFAULT_SEQUENCE_KEY, InvoiceNumberSequencer
from szamla.domain.status import (
    can_transition,
    display_status,
    ensure_deletable,
    ensure_editable,
    ensure_issuable,
    transition,
)

logger = logging.getLogger(__name__)

HUF = "HUF"

# Header fields a draft may change through update_draft.
DRAFT_FIELDS = frozenset(
    {
        "customer_id",
        "issue_date",
        "delivery_date",
        "payment_deadline",
        "payment_method",
        "currency",
        "exchange_rate",
        "notes",
        "footer_text",
        "is_reverse_charge",
        "is_cash_accounting",
    }
)


@dataclass(frozen=True)
class IssueOutcome:
    """Stored invoice after an issue or transmit attempt, and the backend's answer."""

    invoice: Invoice
    result: BillingResult

    @property
    def success(self) -> bool:
        return self.result.success


class InvoiceService:
    """Service for the invoice lifecycle.

    Numbers are allocated only when a draft passes every issuance check,
    and the numbered invoice is stored as ISSUED before any backend is
    called. A failed transmission leaves it ISSUED and unsent; retry it
    with ``transmit_invoice``.
    """

    def __init__(
        self,
        db: Database,
        selector: Optional[BillingBackendSelector] = None,
        sequencer: Optional[InvoiceNumberSequencer] = None,
        xml_renderer: Optional[NavInvoiceXmlRenderer] = None,
        sequence_key: str = DEFAULT_SEQUENCE_KEY,
        today: Callable[[], date] = date.today,
        now: Callable[[], datetime] = lambda: datetime.now(UTC),
    ):
        """Initialize invoice service.

        Args:
            db: Database instance
            selector: Billing backend selector (the three real backends by default)
            sequencer: Invoice number sequencer
            xml_renderer: Renderer used by export_xml
            sequence_key: Number sequence used for new invoices
            today: Clock for default dates and overdue checks
            now: Clock for sent timestamps
        """
        self.db = db
        self._selector = selector
        self.sequencer = sequencer or InvoiceNumberSequencer(db)
        self.xml_renderer = xml_renderer or NavInvoiceXmlRenderer()
        self.sequence_key = sequence_key
        self.today = today
        self.now = now

    @property
    def selector(self) -> BillingBackendSelector:
        # Built on first use so read-only commands never create an HTTP client.
        if self._selector is None:
            self._selector = create_billing_selector(self.db)
        return self._selector

    # Drafts
    def create_draft(
        self,
        customer_id: int,
        issue_date: Optional[date] = None,
        delivery_date: Optional[date] = None,
        payment_deadline: Optional[date] = None,
        payment_method: PaymentMethod = PaymentMethod.BANK_TRANSFER,
        currency: Optional[str] = None,
        exchange_rate: Optional[Decimal] = None,
        items: Iterable[InvoiceItem] = (),
        notes: Optional[str] = None,
        footer_text: Optional[str] = None,
        is_reverse_charge: bool = False,
        is_cash_accounting: bool = False,
    ) -> Invoice:
        """Create a DRAFT invoice without a number.

        Missing values are defaulted: issue date is today, delivery date is
        the issue date, the deadline is the issue date plus the customer's
        payment days, currency and footer come from the company settings,
        and the exchange rate is 1 for HUF invoices.

        Raises:
            NotFoundError: If the customer does not exist
            ValidationError: If an item, the currency or the exchange rate is invalid
        """
        customer = self.db.get_customer(customer_id)
        if customer is None:
            raise NotFoundError(customer_not_found(customer_id))
        settings = self.db.get_company_settings()

        issue_date = issue_date or self.today()
        currency = _currency(currency or settings.default_currency)

        invoice = Invoice(
            customer=customer,
            issue_date=issue_date,
            delivery_date=delivery_date or issue_date,
            payment_deadline=payment_deadline or issue_date + timedelta(days=customer.payment_deadline_days),
            payment_method=payment_method,
            currency=currency,
            exchange_rate=_rate_for(currency, exchange_rate),
            items=tuple(_validated_item(item) for item in items),
            notes=notes,
            footer_text=footer_text if footer_text is not None else settings.invoice_footer_text,
            is_reverse_charge=is_reverse_charge,
            is_cash_accounting=is_cash_accounting,
        )
        saved = self.db.save_invoice(invoice)
        logger.info("Created draft invoice %s for customer %r", saved.id, customer.name)
        return saved

    def update_draft(self, invoice_id: int, **changes) -> Invoice:
        """Change header fields of a DRAFT invoice.

        Args:
            invoice_id: Invoice ID
            **changes: Any of customer_id, issue_date, delivery_date,
                payment_deadline, payment_method, currency, exchange_rate,
                notes, footer_text, is_reverse_charge, is_cash_accounting

        Raises:
            NotFoundError: If the invoice or the new customer does not exist
            ValidationError: If the invoice is not a draft or a field is unknown
        """
        unknown = sorted(set(changes) - DRAFT_FIELDS)
        if unknown:
            raise ValidationError(f"Cannot change invoice field(s): {', '.join(unknown)}")

        invoice = self._load(invoice_id)
        ensure_editable(invoice, "update")

        if "customer_id" in changes:
            customer_id = changes.pop("customer_id")
            customer = self.db.get_customer(customer_id)
            if customer is None:
                raise NotFoundError(customer_not_found(customer_id))
            changes["customer"] = customer
        if "currency" in changes:
            changes["currency"] = _currency(changes["currency"])
        if changes.get("currency", invoice.currency) == HUF:
            changes["exchange_rate"] = _rate_for(HUF, changes.get("exchange_rate"))
        elif "exchange_rate" in changes:
            changes["exchange_rate"] = _exchange_rate(changes["exchange_rate"])

        return self.db.save_invoice(replace(invoice, **changes))

    def add_item(
        self,
        invoice_id: int,
        description: str,
        quantity: Decimal,
        unit_price: Decimal,
        vat_rate: Optional[Decimal] = None,
        vat_exemption_reason: Optional[str] = None,
        vat_exemption_code: Optional[str] = None,
        unit_of_measure: str = "db",
        discount_percent: Decimal = ZERO,
        notes: Optional[str] = None,
    ) -> Invoice:
        """Append a line to a DRAFT invoice.

        The VAT rate defaults to the company's default rate. An exemption
        reason makes the line VAT exempt regardless of the rate.

        Returns:
            The stored invoice with recomputed totals
        """
        invoice = self._load(invoice_id)
        ensure_editable(invoice, "add items to")

        if vat_rate is None and not vat_exemption_reason:
            vat_rate = self.db.get_company_settings().default_vat_rate
        item = self.build_item(
            description,
            quantity,
            unit_price,
            vat_treatment(vat_rate, vat_exemption_reason, vat_exemption_code),
            unit_of_measure=unit_of_measure,
            discount_percent=discount_percent,
            notes=notes,
        )
        return self.db.save_invoice(replace(invoice, items=invoice.items + (item,)))

    def remove_item(self, invoice_id: int, line_number: int) -> Invoice:
        """Remove a line from a DRAFT invoice; later lines move up."""
        invoice = self._load(invoice_id)
        ensure_editable(invoice, "remove items from")
        _check_line(invoice, line_number)
        items = tuple(item for item in invoice.items if item.line_number != line_number)
        return self.db.save_invoice(replace(invoice, items=items))

    def move_item(self, invoice_id: int, line_number: int, new_line_number: int) -> Invoice:
        """Move a line of a DRAFT invoice to another position (1-based)."""
        invoice = self._load(invoice_id)
        ensure_editable(invoice, "reorder items of")
        _check_line(invoice, line_number)
        _check_line(invoice, new_line_number)

        items = list(invoice.items)
        item = items.pop(line_number - 1)
        items.insert(new_line_number - 1, item)
        return self.db.save_invoice(replace(invoice, items=tuple(items)))

    def replace_items(self, invoice_id: int, items: Iterable[InvoiceItem]) -> Invoice:
        """Replace all lines of a DRAFT invoice."""
        invoice = self._load(invoice_id)
        ensure_editable(invoice, "change items of")
        new_items = tuple(replace(_validated_item(item), id=None) for item in items)
        return self.db.save_invoice(replace(invoice, items=new_items))

    @staticmethod
    def build_item(
        description: str,
        quantity: Decimal,
        unit_price: Decimal,
        vat: VatTreatment = Rated(Decimal("27")),
        unit_of_measure: str = "db",
        discount_percent: Decimal = ZERO,
        notes: Optional[str] = None,
    ) -> InvoiceItem:
        """Build a validated invoice line.

        Raises:
            ValidationError: If description is empty, quantity or price is
                negative, or the discount or VAT rate is outside 0-100
        """
        return _validated_item(
            InvoiceItem(
                description=description.strip() if description else "",
                quantity=quantity,
                unit_price=unit_price,
                vat=vat,
                unit_of_measure=(unit_of_measure or "db").strip(),
                discount_percent=discount_percent if discount_percent is not None else ZERO,
                notes=notes,
            )
        )

    # Queries
    def get_invoice(self, invoice_id: int) -> Optional[Invoice]:
        """Get invoice by ID.

        Returns:
            Invoice entity or None if not found
        """
        return self.db.get_invoice(invoice_id)

    def get_by_number(self, invoice_number: str) -> Optional[Invoice]:
        """Get invoice by its invoice number."""
        return self.db.get_invoice_by_number(invoice_number)

    def list_invoices(
        self,
        status: Optional[InvoiceStatus] = None,
        customer_id: Optional[int] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        is_paid: Optional[bool] = None,
    ) -> list[Invoice]:
        """List invoices, newest first.

        OVERDUE is not stored; filtering by it returns ``list_overdue``
        restricted to the other filters.
        """
        if status == InvoiceStatus.OVERDUE:
            today = self.today()
            invoices = self.db.list_invoices(
                customer_id=customer_id, start_date=start_date, end_date=end_date, is_paid=False
            )
            return [inv for inv in invoices if display_status(inv, today) == InvoiceStatus.OVERDUE]
        return self.db.list_invoices(
            status=status,
            customer_id=customer_id,
            start_date=start_date,
            end_date=end_date,
            is_paid=is_paid,
        )

    def list_overdue(self, today: Optional[date] = None) -> list[Invoice]:
        """Issued or sent invoices that are unpaid past their deadline."""
        today = today or self.today()
        return [inv for inv in self.db.list_invoices(is_paid=False) if display_status(inv, today) == InvoiceStatus.OVERDUE]

    def list_unsent(self) -> list[Invoice]:
        """ISSUED invoices that were not transmitted or uploaded yet."""
        return self.db.list_invoices(status=InvoiceStatus.ISSUED, is_sent=False)

    def display_status(self, invoice: Invoice) -> InvoiceStatus:
        return display_status(invoice, self.today())

    def delete_invoice(self, invoice_id: int) -> None:
        """Delete a DRAFT invoice.

        Raises:
            NotFoundError: If the invoice does not exist
            ValidationError: If the invoice is not a draft
        """
        invoice = self._load(invoice_id)
        ensure_deletable(invoice)
        self.db.delete_invoice(invoice_id)
        logger.info("Deleted draft invoice %s", invoice_id)

    # Lifecycle
    def issue_invoice(self, invoice_id: int) -> IssueOutcome:
        """Issue a draft through the configured billing backend.

        Steps: validate, allocate the number, store as ISSUED, then call the
        backend once. On success the vendor's id and URL are recorded, and
        invoices sent to an online vendor become SENT. On failure the
        invoice stays ISSUED and unsent and the result carries the vendor's
        message.

        Raises:
            NotFoundError: If the invoice does not exist
            TransitionError: If the invoice is not a draft
            ValidationError: If an issuance requirement is not met (no number is used)
            ConcurrencyError: If no number could be allocated
        """
        invoice = self._load(invoice_id)
        if invoice.status != InvoiceStatus.DRAFT:
            raise TransitionError(illegal_transition(invoice.status.value, InvoiceStatus.ISSUED.value))
        ensure_issuable(invoice, require_number=False)

        backend = self.selector.current()
        problems = backend.issue_problems(invoice)
        if problems:
            raise ValidationError(issue_requirements_failed(problems))
        number = invoice.invoice_number or self.sequencer.allocate_next(self.sequence_key)
        numbered = replace(invoice, invoice_number=number, billing_backend=backend.backend_type.value)
        issued = self.db.save_invoice(transition(numbered, InvoiceStatus.ISSUED))
        logger.info("Invoice %s issued as %s via %s", invoice_id, number, backend.backend_type.value)

        return self._transmit(issued, backend)

    def transmit_invoice(self, invoice_id: int) -> IssueOutcome:
        """Retry sending an ISSUED invoice whose transmission failed.

        The invoice keeps its number; the backend that issued it is used
        even if the configured backend has changed since.

        Raises:
            ValidationError: If the invoice is not ISSUED or was already sent
        """
        invoice = self._load(invoice_id)
        if invoice.status != InvoiceStatus.ISSUED or invoice.is_sent:
            raise ValidationError(
                f"Invoice {invoice.invoice_number or invoice_id} is {invoice.status.value}"
                f"{' and already sent' if invoice.is_sent else ''}; only unsent ISSUED invoices can be transmitted"
            )
        return self._transmit(invoice, self.selector.for_invoice(invoice))

    def mark_as_sent(self, invoice_id: int, transaction_id: str) -> Invoice:
        """Record a manual upload (e.g. on the NAV portal) of an ISSUED invoice.

        Raises:
            ValidationError: If the transaction id is empty
            TransitionError: If the invoice cannot become SENT
        """
        if not transaction_id or not transaction_id.strip():
            raise ValidationError("Transaction ID cannot be empty")
        invoice = self._load(invoice_id)
        sent = transition(invoice, InvoiceStatus.SENT)
        sent = replace(sent, is_sent=True, transaction_id=transaction_id.strip(), sent_at=self.now())
        return self.db.save_invoice(sent)

    def mark_as_paid(self, invoice_id: int, payment_date: Optional[date] = None) -> Invoice:
        """Mark an issued or sent invoice as paid.

        Raises:
            TransitionError: If the invoice is already paid or cancelled
        """
        invoice = self._load(invoice_id)
        paid = transition(invoice, InvoiceStatus.PAID)
        paid = replace(paid, is_paid=True, payment_date=payment_date or self.today())
        saved = self.db.save_invoice(paid)
        logger.info("Invoice %s marked as paid on %s", saved.invoice_number, saved.payment_date)
        return saved

    def cancel_invoice(self, invoice_id: int, reason: str = "") -> Invoice:
        """Cancel an invoice.

        Invoices that reached an online vendor are cancelled there first;
        if the vendor refuses, nothing changes locally. The reason is
        appended to the notes.

        Raises:
            TransitionError: If the invoice is paid or already cancelled
            ExternalBackendError: If the vendor did not accept the cancellation
        """
        invoice = self._load(invoice_id)
        if not can_transition(invoice.status, InvoiceStatus.CANCELLED):
            raise TransitionError(illegal_transition(invoice.status.value, InvoiceStatus.CANCELLED.value))

        if invoice.status != InvoiceStatus.DRAFT:
            backend = self.selector.for_invoice(invoice)
            if invoice.is_sent or not backend.transmits:
                if not backend.cancel(invoice, reason):
                    raise ExternalBackendError(
                        f"{backend.backend_type.value} did not accept the cancellation of invoice "
                        f"{invoice.invoice_number}; the invoice was not cancelled"
                    )

        cancelled = transition(invoice, InvoiceStatus.CANCELLED)
        if reason and reason.strip():
            note = f"Cancelled: {reason.strip()}"
            cancelled = replace(cancelled, notes=f"{invoice.notes}\n{note}" if invoice.notes else note)
        saved = self.db.save_invoice(cancelled)
        logger.info("Invoice %s cancelled", saved.invoice_number or invoice_id)
        return saved

    # Documents
    def export_xml(self, invoice_id: int) -> bytes:
        """Render the NAV XML of an issued invoice.

        Raises:
            ValidationError: If the invoice is still a draft
        """
        invoice = self._load(invoice_id)
        if invoice.status == InvoiceStatus.DRAFT:
            raise ValidationError(f"Invoice {invoice_id} is a draft; issue it before exporting")
        return self.xml_renderer.render(invoice, self.db.get_company_settings())

    def download_document(self, invoice_id: int) -> bytes:
        """Fetch the document of an issued invoice from the backend that issued it.

        Raises:
            ValidationError: If the invoice is still a draft
            ExternalBackendError: If the backend cannot provide the document
        """
        invoice = self._load(invoice_id)
        if invoice.status == InvoiceStatus.DRAFT:
            raise ValidationError(f"Invoice {invoice_id} is a draft; it has no document yet")
        return self.selector.for_invoice(invoice).download_document(invoice)

    def get_statistics(self) -> InvoiceStatistics:
        """Aggregate counts and amounts over all invoices.

        Totals cover issued, sent and paid invoices; drafts and cancelled
        invoices are only counted. ``issued_count`` includes sent invoices.
        """
        today = self.today()
        invoices = self.db.list_invoices()
        by_status = {status: 0 for status in InvoiceStatus}
        total_net = total_gross = unpaid = ZERO_MONEY
        overdue = 0

        for invoice in invoices:
            by_status[invoice.status] += 1
            if invoice.status in (InvoiceStatus.ISSUED, InvoiceStatus.SENT, InvoiceStatus.PAID):
                total_net += invoice.net_amount
                total_gross += invoice.gross_amount
                if not invoice.is_paid:
                    unpaid += invoice.gross_amount
            if display_status(invoice, today) == InvoiceStatus.OVERDUE:
                overdue += 1

        return InvoiceStatistics(
            total_count=len(invoices),
            draft_count=by_status[InvoiceStatus.DRAFT],
            issued_count=by_status[InvoiceStatus.ISSUED] + by_status[InvoiceStatus.SENT],
            paid_count=by_status[InvoiceStatus.PAID],
            overdue_count=overdue,
            total_net_amount=total_net,
            total_gross_amount=total_gross,
            unpaid_amount=unpaid,
        )

    def _load(self, invoice_id: int) -> Invoice:
        invoice = self.db.get_invoice(invoice_id)
        if invoice is None:
            raise NotFoundError(invoice_not_found(invoice_id))
        return invoice

    def _transmit(self, invoice: Invoice, backend: BillingBackend) -> IssueOutcome:
        result = backend.issue(invoice)
        if not result.success:
            logger.warning("Invoice %s stays unsent: %s", invoice.invoice_number, result.message)
            return IssueOutcome(invoice=invoice, result=result)

        updated = replace(
            invoice,
            external_id=result.external_id or invoice.external_id,
            document_url=result.document_url or invoice.document_url,
        )
        if backend.transmits:
            updated = replace(
                transition(updated, InvoiceStatus.SENT),
                is_sent=True,
                transaction_id=result.external_id,
                sent_at=self.now(),
            )
        saved = self.db.save_invoice(updated)
        logger.info("Invoice %s processed by %s: %s", saved.invoice_number, backend.backend_type.value, result.message)
        return IssueOutcome(invoice=saved, result=result)


def _validated_item(item: InvoiceItem) -> InvoiceItem:
    if not item.description or not item.description.strip():
        raise ValidationError("Item description cannot be empty")
    if item.quantity is None or item.quantity < 0:
        raise ValidationError(f"Quantity of '{item.description}' cannot be negative")
    if item.unit_price is None or item.unit_price < 0:
        raise ValidationError(f"Unit price of '{item.description}' cannot be negative")
    if item.discount_percent < 0 or item.discount_percent > HUNDRED:
        raise ValidationError(f"Discount of '{item.description}' must be between 0 and 100 percent")
    if isinstance(item.vat, Rated) and (item.vat.rate < 0 or item.vat.rate > HUNDRED):
        raise ValidationError(f"VAT rate of '{item.description}' must be between 0 and 100 percent")
    return item


def _check_line(invoice: Invoice, line_number: int) -> None:
    if not 1 <= line_number <= len(invoice.items):
        raise NotFoundError(item_not_found(invoice.id, line_number))


def _currency(code: Optional[str]) -> str:
    code = (code or "").strip().upper()
    if len(code) != 3 or not code.isalpha():
        raise ValidationError(f"Invalid currency code '{code}'")
    return code


def _exchange_rate(rate: Optional[Decimal]) -> Optional[Decimal]:
    if rate is not None and rate <= 0:
        raise ValidationError("Exchange rate must be greater than zero")
    return rate


def _rate_for(currency: str, rate: Optional[Decimal]) -> Optional[Decimal]:
    if currency == HUF:
        if rate is not None and rate != 1:
            raise ValidationError(f"Exchange rate of a HUF invoice must be 1, got {rate}")
        return Decimal("1")
    return _exchange_rate(rate)
