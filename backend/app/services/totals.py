"""Invoice money arithmetic.

All amounts are ``Decimal`` and rounded to cents with ROUND_HALF_UP (half away
from zero for the non-negative values accepted here). The subtotal is the
rounded sum of the unrounded ``quantity * unit_price`` products; tax and total
are derived from the already-rounded subtotal so that the stored fields satisfy

    tax_amount == round2(subtotal * tax_rate / 100)
    total      == round2(subtotal + tax_amount - discount_amount)
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Iterable

from backend.app.core.errors import InvalidInputError

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")


@dataclass(frozen=True)
class InvoiceTotals:
    subtotal: Decimal
    tax_amount: Decimal
    total: Decimal


def round_money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def to_decimal(value: Any, field: str = "amount") -> Decimal:
    """Convert user input to Decimal via ``str`` so floats keep their printed value."""
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except (InvalidOperation, ValueError, TypeError) as exc:
            raise InvalidInputError(f"{field} must be a number") from exc
    if not result.is_finite():
        raise InvalidInputError(f"{field} must be a finite number")
    return result


def _item_value(item: Any, name: str) -> Any:
    if isinstance(item, dict):
        return item.get(name)
    return getattr(item, name)


def line_item_amount(quantity: Any, unit_price: Any) -> Decimal:
    """Amount of a single line, rounded to cents."""
    qty = to_decimal(quantity, "quantity")
    price = to_decimal(unit_price, "unit_price")
    _check_line(qty, price)
    return round_money(qty * price)


def _check_line(qty: Decimal, price: Decimal) -> None:
    if qty <= 0:
        raise InvalidInputError("quantity must be greater than zero")
    if price < 0:
        raise InvalidInputError("unit_price must not be negative")


def compute_totals(
    line_items: Iterable[Any],
    tax_rate: Any | None = None,
    discount_amount: Any | None = None,
) -> InvoiceTotals:
    """Compute subtotal, tax and total for a set of line items.

    ``line_items`` may be dicts, pydantic models or ORM rows exposing
    ``quantity`` and ``unit_price``. Raises InvalidInputError for a
    non-positive quantity, a negative price, a tax rate outside [0, 100], a
    negative discount or a discount larger than subtotal plus tax.
    """
    raw_subtotal = ZERO
    for item in line_items:
        qty = to_decimal(_item_value(item, "quantity"), "quantity")
        price = to_decimal(_item_value(item, "unit_price"), "unit_price")
        _check_line(qty, price)
        raw_subtotal += qty * price
    subtotal = round_money(raw_subtotal)

    tax_amount = ZERO
    if tax_rate is not None:
        rate = to_decimal(tax_rate, "tax_rate")
        if rate < 0 or rate > HUNDRED:
            raise InvalidInputError("tax_rate must be between 0 and 100")
        if rate > 0:
            tax_amount = round_money(subtotal * rate / HUNDRED)

    discount = ZERO
    if discount_amount is not None:
        discount = to_decimal(discount_amount, "discount_amount")
        if discount < 0:
            raise InvalidInputError("discount_amount must not be negative")
        if discount > subtotal + tax_amount:
            raise InvalidInputError("discount_amount must not exceed subtotal plus tax")

    total = round_money(subtotal + tax_amount - discount)
    return InvoiceTotals(subtotal=subtotal, tax_amount=tax_amount, total=total)
