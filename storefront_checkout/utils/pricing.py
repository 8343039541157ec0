"""Money helpers - prices travel as decimal strings and are summed as Decimal"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Union

TWO_PLACES = Decimal("0.01")
ZERO = Decimal("0")


def parse_price(value: Any, default: Decimal = ZERO) -> Decimal:
    """
    Parse a catalog price into a Decimal
    
    Args:
        value: Price as string, int, float or Decimal ("100.00", 100, None, "")
        default: Value used when the price is missing or malformed
        
    Returns:
        Parsed price, or default
    """
    if value is None or value == "":
        return default
    if isinstance(value, Decimal):
        return value
    try:
        # str() keeps floats from carrying binary noise into the sum
        parsed = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return default
    if not parsed.is_finite():
        return default
    return parsed


def quantize(amount: Union[Decimal, int, float, str]) -> Decimal:
    """Round to two decimal places (half up)"""
    return parse_price(amount).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def format_amount(amount: Union[Decimal, int, float, str]) -> str:
    """Format an amount as a fixed two decimal string ("220.00")"""
    return f"{quantize(amount):.2f}"


def to_minor_units(amount: Union[Decimal, int, float, str]) -> int:
    """Convert to minor currency units (paise / cents)"""
    return int((quantize(amount) * 100).to_integral_value(rounding=ROUND_HALF_UP))
