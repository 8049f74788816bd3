"""Discount model."""
import enum
import json
import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from order_entry.models.product import DEFAULT_PRODUCT_TYPE
from order_entry.models.types import Money, as_aware, whole_number

logger = logging.getLogger(__name__)


class DiscountType(str, enum.Enum):
    """Discount types understood by the order form."""
    PERCENTAGE = 'percentage'
    FIXED_AMOUNT = 'fixed_amount'
    BOTTLE_RETURN = 'bottle_return'


class Discount(BaseModel):
    """Promotional rule as returned by the backend discount catalog."""
    model_config = ConfigDict(extra='ignore')

    id: int
    name: str = ''
    description: Optional[str] = None
    type: DiscountType
    value: Money = Decimal('0')
    product_types: List[str] = []
    min_purchase_amount: Optional[Money] = None
    is_active: bool = True
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    auto_apply: bool = False
    allow_partial_payment: bool = False
    bottle_return_count: Optional[int] = None

    @field_validator('value', mode='before')
    @classmethod
    def _value_or_zero(cls, value):
        return Decimal('0') if value in (None, '') else value

    @field_validator('min_purchase_amount', mode='before')
    @classmethod
    def _blank_minimum(cls, value):
        return None if value in ('', 0, '0') else value

    @field_validator('product_types', mode='before')
    @classmethod
    def _parse_product_types(cls, value):
        # Older backends store the allowlist as a JSON-encoded string
        if value is None or value == '':
            return []
        if isinstance(value, str):
            try:
                value = json.loads(value)
            except ValueError:
                logger.warning(f"[DISCOUNT] Unparseable product_types {value!r}, ignoring allowlist")
                return []
        return [str(item) for item in value] if isinstance(value, list) else []

    @field_validator('start_date', 'end_date', mode='before')
    @classmethod
    def _blank_dates(cls, value):
        return value or None

    @field_validator('start_date', 'end_date')
    @classmethod
    def _aware_dates(cls, value):
        return as_aware(value)

    @field_validator('bottle_return_count', mode='before')
    @classmethod
    def _bottle_count(cls, value):
        return whole_number(value)

    @property
    def is_bottle_return(self) -> bool:
        return self.type == DiscountType.BOTTLE_RETURN

    def applies_to(self, product_type: Optional[str]) -> bool:
        """True when a line of this product type counts toward the discount."""
        if not self.product_types:
            return True
        return (product_type or DEFAULT_PRODUCT_TYPE) in self.product_types

    def is_within_window(self, now: datetime) -> bool:
        """Validity window check; open-ended on either side when a date is unset."""
        now = as_aware(now)
        if self.start_date and now < self.start_date:
            return False
        if self.end_date and now > self.end_date:
            return False
        return True

    def __repr__(self):
        return f"<Discount(id={self.id}, type={self.type.value}, value={self.value})>"
