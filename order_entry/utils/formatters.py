"""
Formatting helpers for user-facing messages and receipts.
"""
from decimal import Decimal, InvalidOperation
from typing import Union

# Currencies printed without minor units
ZERO_DECIMAL_CURRENCIES = {'RWF', 'UGX', 'JPY'}

PAYMENT_STATUS_LABELS = {
    'pending': 'Partial Payment (50%)',
    'complete': 'Complete Payment',
}


def num(value: Union[int, float, Decimal, str, None], decimals: int = 0) -> str:
    """
    Format a number with comma thousands separators.

    Examples:
        num(1500) -> "1,500"
        num(1500.5, 2) -> "1,500.50"
        num(None) -> "-"
    """
    if value is None or value == "":
        return "-"
    try:
        number = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return "-"
    quantum = Decimal(1) if decimals == 0 else Decimal(10) ** -decimals
    return f"{number.quantize(quantum):,}"


def money(value: Union[int, float, Decimal, str, None], currency: str = 'RWF') -> str:
    """
    Format an amount with its currency code.

    Examples:
        money(1500) -> "RWF 1,500"
        money(12.5, 'USD') -> "USD 12.50"
    """
    code = (currency or 'RWF').upper()
    decimals = 0 if code in ZERO_DECIMAL_CURRENCIES else 2
    return f"{code} {num(value if value not in (None, '') else 0, decimals)}"


def payment_status_label(status) -> str:
    """Human label for a payment status ('pending' -> 'Partial Payment (50%)')."""
    value = getattr(status, 'value', status)
    return PAYMENT_STATUS_LABELS.get(value, str(value))
