"""
Monetary Precision Module

Decimal helpers for amounts and rates. NEVER uses float for monetary values:
floats coming from callers are converted through their string form.
"""

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation, getcontext
from typing import Union

from .exceptions import InvalidAmount

# Set global decimal context for financial precision
getcontext().prec = 28

Numeric = Union[Decimal, int, float, str]

ZERO = Decimal('0')
CENT = Decimal('0.01')


def to_decimal(value: Numeric) -> Decimal:
    """
    Convert a numeric value to Decimal

    Raises:
        InvalidAmount: If value is not numeric, NaN or infinite
    """
    if isinstance(value, bool):
        raise InvalidAmount(f"Amount must be numeric, got {value!r}")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except (InvalidOperation, ValueError, TypeError):
            raise InvalidAmount(f"Cannot convert {value!r} to Decimal")

    if not result.is_finite():
        raise InvalidAmount(f"Amount must be finite, got {value!r}")
    return result


def quantize_money(value: Decimal) -> Decimal:
    """Round to cents"""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def to_amount(value: Numeric, allow_zero: bool = True) -> Decimal:
    """
    Validate a non-negative money amount and round it to cents

    Args:
        value: Amount supplied by a caller
        allow_zero: Whether exactly zero is acceptable

    Returns:
        Cent-quantized Decimal

    Raises:
        InvalidAmount: If negative, zero (when disallowed), NaN or infinite
    """
    amount = to_decimal(value)
    if amount < ZERO:
        raise InvalidAmount(f"Amount must be non-negative, got {amount}")
    amount = quantize_money(amount)
    if not allow_zero and amount == ZERO:
        raise InvalidAmount("Amount must be positive")
    return amount


def to_rate(value: Numeric) -> Decimal:
    """Convert an annual rate (0.03 == 3%) to Decimal without rounding"""
    return to_decimal(value)


def clamp(value: Decimal, lower: Decimal, upper: Decimal) -> Decimal:
    """Clamp value to the closed range [lower, upper]"""
    return max(lower, min(upper, value))
