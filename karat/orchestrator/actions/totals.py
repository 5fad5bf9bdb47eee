"""Invoice money arithmetic.

All amounts are Decimal rupees rounded half-up to the paisa. Stored
values are integer paise.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

PAISE = Decimal("0.01")


@dataclass(frozen=True)
class InvoiceTotals:
    """Derived invoice totals in rupees."""

    subtotal: Decimal
    tax_amount: Decimal
    grand_total: Decimal


def to_decimal(value: Any) -> Decimal | None:
    """Parse a provider-supplied number, None when it is not numeric."""
    if value is None or isinstance(value, bool):
        return None
    try:
        result = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not result.is_finite():
        return None
    return result


def round_money(amount: Decimal) -> Decimal:
    """Round to the paisa, half-up."""
    return amount.quantize(PAISE, rounding=ROUND_HALF_UP)


def line_total(quantity: Decimal | int, weight: Decimal, price_per_gram: Decimal) -> Decimal:
    """quantity x weight x price_per_gram, rounded to the paisa."""
    return round_money(Decimal(quantity) * weight * price_per_gram)


def calculate_invoice_totals(
    line_totals: Iterable[Decimal], tax_percentage: Decimal
) -> InvoiceTotals:
    """Subtotal, tax and grand total from line totals.

    Re-derivable: the same inputs always produce the same totals.
    """
    subtotal = round_money(sum(line_totals, Decimal("0")))
    tax_amount = round_money(subtotal * tax_percentage / Decimal("100"))
    return InvoiceTotals(
        subtotal=subtotal,
        tax_amount=tax_amount,
        grand_total=subtotal + tax_amount,
    )


def to_paise(amount: Decimal) -> int:
    """Convert rupees to integer paise."""
    return int(round_money(amount) * 100)


def from_paise(paise: int) -> Decimal:
    """Convert integer paise to rupees."""
    return (Decimal(paise) / 100).quantize(PAISE)


def format_inr(amount: Decimal) -> str:
    """Format rupees with Indian digit grouping, e.g. ₹1,59,650.00."""
    amount = round_money(amount)
    sign = "-" if amount < 0 else ""
    whole, _, fraction = f"{abs(amount):.2f}".partition(".")
    if len(whole) > 3:
        head, tail = whole[:-3], whole[-3:]
        groups = []
        while len(head) > 2:
            groups.insert(0, head[-2:])
            head = head[:-2]
        if head:
            groups.insert(0, head)
        whole = ",".join(groups + [tail])
    return f"{sign}₹{whole}.{fraction}"
