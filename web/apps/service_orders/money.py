"""Numeric coercion helpers for monetary values and quantities.

Backend payloads are not fully trusted: prices may arrive as numbers,
numeric strings, empty strings or garbage. The helpers here turn any of
those into ``Decimal`` values (or ``None`` when the input is unusable)
without ever raising, so the valuation code can stay total.
"""

import math
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP, localcontext
from typing import Any, Optional

CENTS = Decimal("0.01")
ZERO = Decimal("0")
# Larger amounts and quantities are treated as unusable input.
MAX_AMOUNT = Decimal("1e12")
MAX_QUANTITY = 1_000_000


def to_decimal(value: Any) -> Optional[Decimal]:
    """Coerce ``value`` into a finite, non-negative, bounded ``Decimal``.

    Floats go through ``str()`` first so that ``2.675`` stays ``2.675``
    instead of its binary approximation.

    Args:
        value: Raw value coming from a payload or form.

    Returns:
        The parsed Decimal, or None for booleans, blanks, non-numeric
        strings, NaN/Infinity, negative numbers and amounts above
        ``MAX_AMOUNT``.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        parsed = value
    elif isinstance(value, int):
        parsed = Decimal(value)
    elif isinstance(value, float):
        if not math.isfinite(value):
            return None
        parsed = Decimal(str(value))
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            parsed = Decimal(text)
        except InvalidOperation:
            return None
    else:
        return None
    if not parsed.is_finite() or parsed < 0 or parsed > MAX_AMOUNT:
        return None
    return parsed


def to_quantity(value: Any) -> int:
    """Coerce a present quantity value into a non-negative integer.

    Callers decide what an *absent* quantity means (the default is 1);
    this function only handles values that were actually supplied, so a
    bad explicit value never inflates a total.

    Returns:
        The integer quantity, or 0 when the value is non-numeric,
        fractional, negative or above ``MAX_QUANTITY``.
    """
    parsed = to_decimal(value)
    if parsed is None or parsed > MAX_QUANTITY or parsed != parsed.to_integral_value():
        return 0
    return int(parsed)


def finite_or_zero(value: Optional[Decimal]) -> Decimal:
    if value is None or not value.is_finite():
        return ZERO
    return value


def round_money(value: Decimal) -> Decimal:
    """Round to currency precision, half away from zero.

    A value that cannot be represented at cent precision rounds to 0.
    """
    with localcontext() as ctx:
        ctx.traps[InvalidOperation] = False
        rounded = finite_or_zero(value).quantize(CENTS, rounding=ROUND_HALF_UP)
    return finite_or_zero(rounded)


def to_wire(value: Optional[Decimal]) -> Optional[float]:
    """Render a money value as a JSON number (None stays null)."""
    if value is None:
        return None
    return float(round_money(value))
