from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import TYPE_CHECKING, Any, Iterable

if TYPE_CHECKING:
    from invoicedesk.models import LineItem


_DECIMAL_PLACES = Decimal("0.01")
_ZERO = Decimal("0")
_HUNDRED = Decimal("100")


def to_decimal(value: Any) -> Decimal | None:
    """Parse a form or JSON value into a finite Decimal, or None when it is not a number."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        number = value
    else:
        text = str(value).strip()
        if not text:
            return None
        try:
            number = Decimal(text)
        except InvalidOperation:
            return None
    if not number.is_finite():
        return None
    return number


def coerce_tax_rate(value: Any) -> Decimal:
    rate = to_decimal(value)
    if rate is None or rate <= 0:
        return _ZERO
    return rate


def _quantize(value: Decimal) -> Decimal:
    return value.quantize(_DECIMAL_PLACES, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class InvoiceTotals:
    subtotal: Decimal
    tax_amount: Decimal
    total: Decimal


def compute_totals(items: Iterable[LineItem] | None, tax_rate: Any) -> InvoiceTotals:
    """Derive subtotal, tax and total without intermediate rounding."""
    rate = coerce_tax_rate(tax_rate)
    subtotal = sum((item.amount for item in items or []), _ZERO)
    tax_amount = subtotal * rate / _HUNDRED
    return InvoiceTotals(subtotal=subtotal, tax_amount=tax_amount, total=subtotal + tax_amount)


def format_money(value: Any) -> str:
    number = to_decimal(value) or _ZERO
    return f"${_quantize(number):,.2f}"


def format_rate(value: Any) -> str:
    # Fixed-point so "1e1" prints as 10, never in exponent form.
    return format(coerce_tax_rate(value).normalize(), "f")
