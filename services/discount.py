"""Per-line discount calculation.

A discount is one of three variants: :class:`NoDiscount`,
:class:`PercentDiscount` or :class:`AmountDiscount`. :func:`apply_discount`
turns a unit price, a quantity and a discount into the final per-unit price
and the line subtotal.

Rounding: the discounted line total is rounded half-up to the cent and is
the authoritative subtotal. The per-unit price is the subtotal divided by the
quantity, kept in whole cents when it splits evenly and at microcent
precision otherwise, so ``final_unit_price * quantity`` rounds back to the
subtotal exactly.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum

from api.exceptions import ValidationError
from utils.money import CENT, ZERO, to_money, to_unit_price

_HUNDRED = Decimal(100)


class DiscountType(str, Enum):
    NONE = "NONE"
    PERCENT = "PERCENT"
    AMOUNT = "AMOUNT"


@dataclass(frozen=True)
class NoDiscount:
    type = DiscountType.NONE

    @property
    def value(self) -> Decimal:
        return ZERO


@dataclass(frozen=True)
class PercentDiscount:
    """Percentage off the line, 0 to 100 inclusive."""

    percent: Decimal
    type = DiscountType.PERCENT

    def __post_init__(self) -> None:
        if self.percent < 0:
            raise ValidationError("Discount value cannot be negative")
        if self.percent > _HUNDRED:
            raise ValidationError("Percentage discount cannot exceed 100%")

    @property
    def value(self) -> Decimal:
        return self.percent


@dataclass(frozen=True)
class AmountDiscount:
    """Fixed amount off the whole line (not per unit)."""

    amount: Decimal
    type = DiscountType.AMOUNT

    def __post_init__(self) -> None:
        if self.amount < 0:
            raise ValidationError("Discount value cannot be negative")

    @property
    def value(self) -> Decimal:
        return self.amount


Discount = NoDiscount | PercentDiscount | AmountDiscount


@dataclass(frozen=True)
class PricedLine:
    final_unit_price: Decimal
    subtotal: Decimal


def _parse_value(raw: Decimal | int | float | str) -> Decimal:
    """Exact discount value; more than two decimal places is an error, not rounded."""
    if isinstance(raw, float):
        raw = str(raw)
    try:
        value = Decimal(raw)
    except (InvalidOperation, TypeError) as exc:
        raise ValidationError(f"Invalid discount value: {raw!r}") from exc
    if not value.is_finite():
        raise ValidationError(f"Invalid discount value: {raw!r}")
    if value != value.quantize(CENT):
        raise ValidationError("Discount value cannot have more than 2 decimal places")
    return value.quantize(CENT)


def discount_from_wire(
    discount_type: DiscountType | str | None,
    discount_value: Decimal | int | float | str | None = None,
) -> Discount:
    """Build a :data:`Discount` from the ``(discountType, discountValue)`` pair.

    A missing type means NONE. A NONE type carrying a non-zero value is
    rejected rather than silently ignored.
    """
    try:
        kind = DiscountType(discount_type or DiscountType.NONE)
    except ValueError as exc:
        msg = f"Unknown discount type: {discount_type!r}"
        raise ValidationError(msg) from exc

    value = _parse_value(discount_value if discount_value is not None else 0)

    if kind is DiscountType.NONE:
        if value != 0:
            raise ValidationError("Discount value must be 0 when discount type is NONE")
        return NoDiscount()
    if kind is DiscountType.PERCENT:
        return PercentDiscount(value)
    return AmountDiscount(value)


def apply_discount(
    unit_price: Decimal,
    quantity: int,
    discount: Discount,
) -> PricedLine:
    """Return the final per-unit price and subtotal for one sales line.

    Raises ValidationError for a non-positive quantity, a negative unit price,
    or an AMOUNT discount larger than the undiscounted line total.
    """
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ValidationError("Quantity must be a positive integer")
    unit_price = to_money(unit_price)
    if unit_price < 0:
        raise ValidationError("Selling price cannot be negative")

    gross = unit_price * quantity

    if isinstance(discount, PercentDiscount):
        subtotal = (gross * (_HUNDRED - discount.percent) / _HUNDRED).quantize(
            CENT, rounding=ROUND_HALF_UP
        )
    elif isinstance(discount, AmountDiscount):
        if discount.amount > gross:
            msg = f"Discount amount {discount.amount} exceeds line subtotal {gross}"
            raise ValidationError(msg)
        subtotal = max(ZERO, gross - discount.amount)
    else:
        return PricedLine(final_unit_price=unit_price, subtotal=gross)

    final = to_unit_price(subtotal / quantity)
    if (final * quantity).quantize(CENT, rounding=ROUND_HALF_UP) != subtotal:
        msg = f"Quantity {quantity} is too large to price a discounted line exactly"
        raise ValidationError(msg)
    return PricedLine(final_unit_price=final, subtotal=subtotal)


def line_profit(final_unit_price: Decimal, purchase_price: Decimal, quantity: int) -> Decimal:
    """Profit for a line: margin over cost per unit times units sold."""
    return ((final_unit_price - purchase_price) * quantity).quantize(
        CENT, rounding=ROUND_HALF_UP
    )
