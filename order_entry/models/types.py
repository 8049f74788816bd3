"""Shared field types for the catalog and order models."""
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Annotated, Optional

from pydantic import PlainSerializer

# Amounts stay Decimal in Python and go out as plain JSON numbers
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used='json')]


def whole_number(value) -> Optional[int]:
    """Coerce backend quantities ('12', '12.00', 12.0) to int; None/'' stay None."""
    if value is None or value == '':
        return None
    try:
        return int(Decimal(str(value)))
    except (InvalidOperation, ValueError):
        raise ValueError(f'Invalid quantity: {value!r}')


def as_aware(moment: Optional[datetime]) -> Optional[datetime]:
    """Treat naive timestamps as UTC so they compare with aware ones."""
    if moment is None or moment.tzinfo is not None:
        return moment
    return moment.replace(tzinfo=timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
