"""Number parsing utilities for quantity inputs and configured amounts."""
import re
from decimal import Decimal, InvalidOperation
from typing import Optional

# Leading digits only, so "50" and "50 ml" both read as 50
QUANTITY_PATTERN = re.compile(r"^\s*(\d+)")


def parse_quantity(value) -> Optional[int]:
    """
    Parse a typed quantity.

    Returns None when the text holds no leading digits (empty input while the
    cashier is still typing, letters, negative numbers).

    Examples:
        parse_quantity('50') -> 50
        parse_quantity(' 7 ') -> 7
        parse_quantity('') -> None
    """
    if value is None:
        return None
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    match = QUANTITY_PATTERN.match(str(value))
    if not match:
        return None
    return int(match.group(1))


def to_decimal(value, default: str = '0') -> Decimal:
    """Convert configuration values (str, int, float, Decimal) to Decimal."""
    if value is None or value == '':
        return Decimal(default)
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValueError(f'Invalid decimal value: {value!r}')
