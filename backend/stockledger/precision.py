# backend/stockledger/precision.py
"""
Exact decimal arithmetic for quantities (grams, units) and money.

WHY: Binary floats drift (0.1 + 0.2 != 0.3). Every quantity or currency value
that enters or leaves the ledger goes through this module and stays a
Decimal end to end.

RULES:
- Arithmetic keeps full working precision (34 significant digits); rounding
  happens only at a formatting or storage boundary.
- round2 / format_* use ROUND_HALF_UP (2.995 -> 3.00, 0.005 -> 0.01).
- Invalid input coerces to zero with a logged warning. This module sits under
  user-facing forms; hard failures belong to validation, not arithmetic.
- divide() returns 0 on a zero divisor; calculate_margin() returns None on a
  zero price so "no margin" stays distinguishable from a real 0%.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Context, Decimal, InvalidOperation
from typing import Any, Optional

logger = logging.getLogger(__name__)

WORKING_PRECISION = 34
WORKING_CONTEXT = Context(prec=WORKING_PRECISION, rounding=ROUND_HALF_UP)

ZERO = Decimal("0")
HUNDRED = Decimal("100")
ZERO_EPSILON = Decimal("0.01")

MONEY_DECIMAL_PLACES = 2
QUANTITY_DECIMAL_PLACES = 2
PERCENT_DECIMAL_PLACES = 1


def _parse(value: Any) -> Optional[Decimal]:
    """Strict conversion; None when the value is not a finite number."""
    if isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value if value.is_finite() else None
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        # repr() gives the shortest round-tripping literal: 0.1 -> "0.1"
        parsed = Decimal(repr(value))
        return parsed if parsed.is_finite() else None
    if isinstance(value, str):
        text = value.strip().replace(",", "")
        if not text:
            return None
        try:
            parsed = Decimal(text)
        except InvalidOperation:
            return None
        return parsed if parsed.is_finite() else None
    return None


def to_decimal(value: Any) -> Decimal:
    """Best-effort conversion. None -> 0 silently, garbage -> 0 with a warning."""
    if value is None:
        return ZERO
    parsed = _parse(value)
    if parsed is None:
        logger.warning("Non-numeric value %r coerced to 0", value)
        return ZERO
    return parsed


def add(a: Any, b: Any) -> Decimal:
    return WORKING_CONTEXT.add(to_decimal(a), to_decimal(b))


def subtract(a: Any, b: Any) -> Decimal:
    return WORKING_CONTEXT.subtract(to_decimal(a), to_decimal(b))


def multiply(a: Any, b: Any) -> Decimal:
    return WORKING_CONTEXT.multiply(to_decimal(a), to_decimal(b))


def divide(a: Any, b: Any) -> Decimal:
    """a / b, or 0 when b is zero. Callers needing "no result" check b first."""
    divisor = to_decimal(b)
    if divisor == 0:
        return ZERO
    return WORKING_CONTEXT.divide(to_decimal(a), divisor)


def round_to(value: Any, places: int) -> Decimal:
    """Half-up rounding to a fixed number of places; never yields -0."""
    rounded = to_decimal(value).quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)
    if rounded == 0:
        return rounded.copy_abs()
    return rounded


def round2(value: Any) -> Decimal:
    return round_to(value, 2)


# Money and quantities share the same two-place rounding rule.
round_money_or_quantity = round2


def is_zero(value: Any, epsilon: Any = ZERO_EPSILON) -> bool:
    """
    |value| < epsilon.

    Display rounding can leave residues like -0.005 after a "zero out"
    action; callers clamp those with non_negative().
    """
    return abs(to_decimal(value)) < to_decimal(epsilon)


def is_negative(value: Any) -> bool:
    return to_decimal(value) < 0


def is_positive(value: Any) -> bool:
    return to_decimal(value) > 0


def non_negative(value: Any) -> Decimal:
    d = to_decimal(value)
    return d if d > 0 else ZERO


def calculate_margin(price: Any, cost: Any) -> Optional[Decimal]:
    """(price - cost) / price * 100, or None when price is zero."""
    p = to_decimal(price)
    if p == 0:
        return None
    return multiply(WORKING_CONTEXT.divide(subtract(p, cost), p), HUNDRED)


def calculate_value(price: Any, quantity: Any) -> Decimal:
    """price * quantity at full precision; round only when formatting."""
    return multiply(price, quantity)


def format_quantity(value: Any) -> str:
    return f"{round_to(value, QUANTITY_DECIMAL_PLACES):f}"


def format_price(value: Any) -> str:
    return f"{round_to(value, MONEY_DECIMAL_PLACES):f}"


def format_percentage(value: Any) -> Optional[str]:
    """One decimal place; None (no margin) stays None."""
    if value is None:
        return None
    return f"{round_to(value, PERCENT_DECIMAL_PLACES):f}"


@dataclass(frozen=True)
class NumberValidation:
    valid: bool
    value: Optional[Decimal]
    error: Optional[str]


def validate_number(
    value: Any,
    *,
    min: Any = None,
    max: Any = None,
    allow_negative: bool = True,
    allow_zero: bool = True,
    label: str = "Value",
) -> NumberValidation:
    """
    Form-level number check. Unlike to_decimal(), this reports problems
    instead of coercing them away.
    """
    if isinstance(value, float) and value != value:
        return NumberValidation(False, None, f"{label} must be a valid number")
    if isinstance(value, float) and value in (float("inf"), float("-inf")):
        return NumberValidation(False, None, f"{label} must be finite")
    if isinstance(value, Decimal) and value.is_infinite():
        return NumberValidation(False, None, f"{label} must be finite")

    parsed = _parse(value)
    if parsed is None:
        if isinstance(value, str) and value.strip().lower().lstrip("+-") in ("inf", "infinity"):
            return NumberValidation(False, None, f"{label} must be finite")
        return NumberValidation(False, None, f"{label} must be a valid number")

    if not allow_negative and parsed < 0:
        return NumberValidation(False, parsed, f"{label} cannot be negative")
    if not allow_zero and parsed == 0:
        return NumberValidation(False, parsed, f"{label} cannot be zero")
    if min is not None and parsed < to_decimal(min):
        return NumberValidation(False, parsed, f"{label} must be at least {min}")
    if max is not None and parsed > to_decimal(max):
        return NumberValidation(False, parsed, f"{label} must be at most {max}")

    return NumberValidation(True, parsed, None)
