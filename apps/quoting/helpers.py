import decimal
import json
import math
from decimal import Decimal, InvalidOperation
from typing import Any

ZERO = Decimal("0")

# Exponent window of an IEEE double; cell values outside it read as zero
MAX_CELL_EXPONENT = 308
MIN_CELL_EXPONENT = -324


class DecimalEncoder(json.JSONEncoder):
    def default(self, obj):
        if isinstance(obj, decimal.Decimal):
            return float(obj)
        return super(DecimalEncoder, self).default(obj)


def decimal_to_float(value):
    return float(value) if isinstance(value, Decimal) else value


def in_cell_range(number: Decimal) -> bool:
    """True for a finite number a browser could hold as a plain float"""
    if not number.is_finite():
        return False
    if number.is_zero():
        return True
    return MIN_CELL_EXPONENT <= number.adjusted() <= MAX_CELL_EXPONENT


def to_decimal(value: Any) -> Decimal:
    """
    Coerce a stored cell value to a finite Decimal.

    Anything that is not a number (None, blanks, free text, booleans, NaN,
    infinities or magnitudes beyond the float range) becomes zero. Currency
    symbols, thousands commas and inner spaces are stripped from strings first.
    """
    if value is None or isinstance(value, bool):
        return ZERO

    if isinstance(value, Decimal):
        return value if in_cell_range(value) else ZERO

    if isinstance(value, int):
        number = Decimal(value)
        return number if in_cell_range(number) else ZERO

    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            return ZERO
        # str() first so 0.1 stays 0.1 instead of its binary expansion
        return Decimal(str(value))

    if not isinstance(value, str):
        return ZERO

    cleaned = value.strip()
    if cleaned.lower() in ("", "nan", "none", "#n/a"):
        return ZERO

    cleaned = cleaned.replace("$", "").replace(",", "").replace(" ", "")
    try:
        number = Decimal(cleaned)
    except (InvalidOperation, ValueError):
        return ZERO
    return number if in_cell_range(number) else ZERO
