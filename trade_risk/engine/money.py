"""Fixed-scale decimal arithmetic shared by every engine computation.

Monetary values (prices, totals, exposures, scores) carry exactly
``PRICE_SCALE`` fractional digits; ratios carry ``RATIO_SCALE``. Every
scale reduction rounds half-up. No other module rounds on its own.

Examples::

    >>> scale(Decimal("1.23455"))
    Decimal('1.2346')
    >>> ratio(Decimal("700"), Decimal("1000"))
    Decimal('0.70000000')
    >>> ratio(Decimal("5"), Decimal("0"))
    Decimal('0E-8')
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

PRICE_SCALE = 4
RATIO_SCALE = 8
ROUNDING = ROUND_HALF_UP

_PRICE_QUANTUM = Decimal(1).scaleb(-PRICE_SCALE)
_RATIO_QUANTUM = Decimal(1).scaleb(-RATIO_SCALE)

ZERO = Decimal(0)
HUNDRED = Decimal(100)


def to_decimal(value: Decimal | int | float | str) -> Decimal:
    """Coerce *value* to Decimal.

    Floats go through ``str()`` so ``0.1`` becomes ``Decimal('0.1')`` rather
    than its binary expansion.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def scale(value: Decimal | int | float | str) -> Decimal:
    """Quantize a monetary value to PRICE_SCALE digits."""
    return to_decimal(value).quantize(_PRICE_QUANTUM, rounding=ROUNDING)


def scale_ratio(value: Decimal | int | float | str) -> Decimal:
    """Quantize a ratio to RATIO_SCALE digits."""
    return to_decimal(value).quantize(_RATIO_QUANTUM, rounding=ROUNDING)


def multiply(price: Decimal | int | float | str, quantity: int) -> Decimal:
    """Exact ``price * quantity`` (unscaled)."""
    return to_decimal(price) * Decimal(quantity)


def ratio(
    numerator: Decimal | int | float | str,
    denominator: Decimal | int | float | str,
) -> Decimal:
    """``numerator / denominator`` at RATIO_SCALE; zero when the denominator is zero."""
    denom = to_decimal(denominator)
    if denom == ZERO:
        return scale_ratio(ZERO)
    return scale_ratio(to_decimal(numerator) / denom)


def weighted_average(
    old_quantity: int,
    old_price: Decimal,
    quantity: int,
    price: Decimal,
) -> Decimal:
    """Quantity-weighted blend of an existing cost basis and a new fill.

    ``(old_qty * old_price + qty * price) / (old_qty + qty)`` at PRICE_SCALE.
    """
    total_quantity = old_quantity + quantity
    if total_quantity == 0:
        return scale(ZERO)
    total_cost = multiply(old_price, old_quantity) + multiply(price, quantity)
    return scale(total_cost / Decimal(total_quantity))


def percent(value: Decimal) -> Decimal:
    """Rescale a 0..1 ratio to 0..100 at PRICE_SCALE."""
    return scale(to_decimal(value) * HUNDRED)
