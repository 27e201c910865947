from __future__ import annotations

from decimal import Decimal
from typing import Any, Iterable

from invoicedesk.errors import LineItemNotFoundError, ValidationError, ValidationKind
from invoicedesk.invoice_calculations import to_decimal
from invoicedesk.models import LineItem, new_id


def _clean_description(value: Any) -> str:
    description = (str(value) if value is not None else "").strip()
    if not description:
        raise ValidationError(ValidationKind.INVALID_ITEM, "Item description is required")
    return description


def _clean_quantity(value: Any) -> int:
    number = to_decimal(value)
    if number is None or number != number.to_integral_value() or number <= 0:
        raise ValidationError(ValidationKind.INVALID_ITEM, "Item quantity must be a positive whole number")
    return int(number)


def _clean_price(value: Any) -> Decimal:
    price = to_decimal(value)
    if price is None or price <= 0:
        raise ValidationError(ValidationKind.INVALID_ITEM, "Item price must be a positive number")
    return price


def create_line_item(description: Any, quantity: Any, unit_price: Any) -> LineItem:
    """Build a line item from raw field values.

    All three fields are required: a blank description, a quantity that is not
    a positive whole number, or a price that is zero or not a number is
    rejected with ``ValidationError(INVALID_ITEM)``.
    """
    return LineItem(
        id=new_id(),
        description=_clean_description(description),
        quantity=_clean_quantity(quantity),
        unit_price=_clean_price(unit_price),
    )


def update_line_item(item: LineItem, description: Any, quantity: Any, unit_price: Any) -> LineItem:
    return LineItem(
        id=item.id,
        description=_clean_description(description),
        quantity=_clean_quantity(quantity),
        unit_price=_clean_price(unit_price),
    )


def replace_line_item(items: Iterable[LineItem], updated: LineItem) -> list[LineItem]:
    result = list(items)
    for index, item in enumerate(result):
        if item.id == updated.id:
            result[index] = updated
            return result
    raise LineItemNotFoundError(updated.id)


def remove_line_item(items: Iterable[LineItem], item_id: str) -> list[LineItem]:
    current = list(items)
    result = [item for item in current if item.id != item_id]
    if len(result) == len(current):
        raise LineItemNotFoundError(item_id)
    return result


def rekey_items(items: Iterable[LineItem]) -> list[LineItem]:
    # Edit sessions get throwaway ids so they never collide with ids of items in other invoices.
    return [item.model_copy(update={"id": new_id()}) for item in items]
