"""Monetary calculations for invoice lines and documents.

Every step is rounded half-up to two decimal places on its own, in the
same order the invoice is printed: base amount, discount, net, VAT, gross.
Rounding once at the end can give a different result and is not used.
Document totals are sums of the already-rounded line amounts.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional, Union

CENT = Decimal("0.01")
HUNDRED = Decimal("100")
ZERO = Decimal("0")
ZERO_MONEY = Decimal("0.00")

DEFAULT_EXEMPTION_CODE = "TAM"


@dataclass(frozen=True)
class Rated:
    """VAT charged at a percentage rate (e.g. 27 for 27%)."""

    rate: Decimal

    @property
    def label(self) -> str:
        return f"{self.rate.normalize():f}%"


@dataclass(frozen=True)
class Exempt:
    """VAT exemption with its legal reason.

    ``code`` is the exemption category used by the tax authority and the
    vendors (TAM = tax exempt activity, AAM = subject exempt, ...).
    """

    reason: str
    code: str = DEFAULT_EXEMPTION_CODE

    @property
    def label(self) -> str:
        return self.code


VatTreatment = Union[Rated, Exempt]


@dataclass(frozen=True)
class LineAmounts:
    """Computed amounts of one invoice line."""

    net: Decimal
    vat: Decimal
    gross: Decimal
    discount: Decimal


@dataclass(frozen=True)
class DocumentTotals:
    """Computed totals of a whole invoice."""

    net: Decimal
    vat: Decimal
    gross: Decimal


@dataclass(frozen=True)
class VatSummary:
    """Subtotal of all lines sharing one VAT treatment."""

    vat: VatTreatment
    net: Decimal
    vat_amount: Decimal
    gross: Decimal


ZERO_LINE = LineAmounts(net=ZERO_MONEY, vat=ZERO_MONEY, gross=ZERO_MONEY, discount=ZERO)


def round_money(value: Decimal) -> Decimal:
    """Round to two decimal places, half-up."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def vat_treatment(rate: Optional[Decimal], exemption_reason: Optional[str], exemption_code: Optional[str] = None) -> VatTreatment:
    """Build a VAT treatment from the two nullable storage fields.

    A non-empty exemption reason always wins; the rate is then ignored.
    """
    if exemption_reason is not None and exemption_reason.strip():
        return Exempt(reason=exemption_reason.strip(), code=exemption_code or DEFAULT_EXEMPTION_CODE)
    return Rated(rate=rate if rate is not None else ZERO)


def calculate_line_amounts(
    quantity: Optional[Decimal],
    unit_price: Optional[Decimal],
    vat: VatTreatment,
    discount_percent: Optional[Decimal] = None,
) -> LineAmounts:
    """Calculate net, VAT, gross and discount of a single line.

    Args:
        quantity: Billed quantity
        unit_price: Net unit price
        vat: VAT treatment of the line
        discount_percent: Optional discount in percent (0-100)

    Returns:
        LineAmounts; all zero when quantity or unit price is missing or negative
    """
    if quantity is None or unit_price is None or quantity < 0 or unit_price < 0:
        return ZERO_LINE

    base = round_money(quantity * unit_price)

    discount = ZERO
    if discount_percent is not None and discount_percent > 0:
        percent = min(discount_percent, HUNDRED)
        discount = round_money(base * percent / HUNDRED)
        net = round_money(base - discount)
    else:
        net = base

    if isinstance(vat, Exempt) or vat.rate <= 0:
        vat_amount = ZERO_MONEY
    else:
        vat_amount = round_money(net * vat.rate / HUNDRED)

    gross = round_money(net + vat_amount)
    return LineAmounts(net=net, vat=vat_amount, gross=gross, discount=discount)


def calculate_totals(lines: Iterable[LineAmounts]) -> DocumentTotals:
    """Sum already-rounded line amounts into document totals."""
    net = vat = gross = ZERO_MONEY
    for line in lines:
        net += line.net
        vat += line.vat
        gross += line.gross
    return DocumentTotals(net=net, vat=vat, gross=gross)


def summarize_by_vat(items: Iterable) -> list[VatSummary]:
    """Group line amounts by VAT treatment, in order of first appearance.

    Args:
        items: Objects with ``vat`` and ``amounts`` attributes (invoice items)
    """
    groups: dict[VatTreatment, list[LineAmounts]] = {}
    for item in items:
        groups.setdefault(item.vat, []).append(item.amounts)

    result = []
    for treatment, lines in groups.items():
        totals = calculate_totals(lines)
        result.append(VatSummary(vat=treatment, net=totals.net, vat_amount=totals.vat, gross=totals.gross))
    return result
