"""
Money Utilities - Exact Decimal Arithmetic

All monetary and share quantities in the engine are Decimal. Floats are only
accepted at the boundary and converted through their string form so that
0.1 stays 0.1.

Every ratio helper here is zero-guarded: dividing by zero yields Decimal(0),
never an exception.

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_EVEN, ROUND_HALF_UP, ROUND_DOWN
from typing import Union

Number = Union[Decimal, int, float, str]

ZERO = Decimal(0)
HUNDRED = Decimal(100)

# ISO 4217 minor units for currencies that differ from the default of 2
_MINOR_UNITS = {
    "JPY": 0,
    "KRW": 0,
    "HUF": 0,
    "ISK": 0,
    "CLP": 0,
    "VND": 0,
    "BHD": 3,
    "KWD": 3,
    "OMR": 3,
    "JOD": 3,
    "TND": 3,
}


def to_decimal(value: Number) -> Decimal:
    """
    Convert a boundary value to Decimal.
    
    Strings may carry thousands separators ('1,234.56'). Floats are converted
    through str() to avoid binary representation noise.
    
    Raises:
        ValueError: If the value is empty or not numeric
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError(f"Boolean is not a numeric amount: {value}")
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, str):
        cleaned = value.strip().replace(',', '')
        if not cleaned:
            raise ValueError("Empty string is not a numeric amount")
        try:
            return Decimal(cleaned)
        except InvalidOperation:
            raise ValueError(f"Not a numeric amount: '{value}'")
    raise ValueError(f"Unsupported numeric type: {type(value).__name__}")


def safe_divide(numerator: Decimal, denominator: Decimal) -> Decimal:
    """Divide, returning 0 when the denominator is 0."""
    if denominator == 0:
        return ZERO
    return numerator / denominator


def percentage_of(part: Decimal, total: Decimal) -> Decimal:
    """part as a percentage of total (15 for 15%)."""
    return safe_divide(part, total) * HUNDRED


def percentage_change(new: Decimal, original: Decimal) -> Decimal:
    """Percentage change from original to new."""
    return safe_divide(new - original, original) * HUNDRED


def apply_percentage(amount: Decimal, pct: Decimal) -> Decimal:
    """Apply a raw percentage: apply_percentage(200, 10) == 20."""
    return amount * (pct / HUNDRED)


def minor_units(currency: str) -> int:
    """Number of decimal places a currency is settled in."""
    return _MINOR_UNITS.get(currency.upper(), 2)


def round_currency(amount: Decimal, currency: str = "USD") -> Decimal:
    """Round to the currency's minor unit (banker's rounding)."""
    exponent = Decimal(1).scaleb(-minor_units(currency))
    return amount.quantize(exponent, rounding=ROUND_HALF_EVEN)


def round_shares(shares: Decimal, places: int) -> Decimal:
    """Round a fractional share quantity (half-up)."""
    return shares.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)


def truncate(amount: Decimal, places: int) -> Decimal:
    """Cut off digits beyond places without rounding."""
    return amount.quantize(Decimal(1).scaleb(-places), rounding=ROUND_DOWN)
