"""Fixed-point currency helpers.

Money is a ``Decimal`` quantized to cents in Python and an INTEGER number of
cents in SQLite.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value: Decimal | int | float | str) -> Decimal:
    """Coerce *value* to a 2-decimal-place Decimal, rounding half up.

    Floats go through ``str()`` first so ``19.99`` stays ``19.99``.
    """
    if isinstance(value, float):
        value = str(value)
    try:
        amount = Decimal(value)
    except (InvalidOperation, TypeError) as exc:
        msg = f"Invalid currency amount: {value!r}"
        raise ValueError(msg) from exc
    if not amount.is_finite():
        msg = f"Invalid currency amount: {value!r}"
        raise ValueError(msg)
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def to_cents(value: Decimal | int | float | str) -> int:
    """Return the integer number of cents for a currency amount."""
    return int(to_money(value) * 100)


def from_cents(cents: int | None) -> Decimal:
    """Inverse of :func:`to_cents`. ``None`` (e.g. SUM over no rows) is zero."""
    if cents is None:
        return ZERO
    return (Decimal(cents) / 100).quantize(CENT)


# Derived per-unit prices (an uneven discount split across units) keep
# microcent precision so that ``unit_price * quantity`` rounds back to the
# line subtotal. They are stored as INTEGER microcents.

UNIT_PRICE_STEP = Decimal("0.00000001")
MICROCENTS_PER_UNIT = 100_000_000


def to_unit_price(value: Decimal | int | str) -> Decimal:
    """Whole cents when *value* is exact to the cent, otherwise microcents."""
    amount = Decimal(value)
    cents = amount.quantize(CENT, rounding=ROUND_HALF_UP)
    if cents == amount:
        return cents
    return amount.quantize(UNIT_PRICE_STEP, rounding=ROUND_HALF_UP)


def to_microcents(value: Decimal | int | str) -> int:
    return int(to_unit_price(value) * MICROCENTS_PER_UNIT)


def from_microcents(microcents: int) -> Decimal:
    return to_unit_price(Decimal(microcents) / MICROCENTS_PER_UNIT)
