"""Product model."""
from decimal import Decimal
from typing import Iterable, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from order_entry.models.types import Money, whole_number
from order_entry.models.user_role import PRIVILEGED_ROLES, is_privileged

DEFAULT_PRODUCT_TYPE = 'general'
DEFAULT_CURRENCY = 'RWF'


class Product(BaseModel):
    """
    Catalog product as returned by the backend.

    Stock comes in two flavours: `stock_quantity` is the quantity assigned to the
    caller's shop, `global_quantity` the quantity across every location.
    """
    model_config = ConfigDict(extra='ignore')

    id: int
    name: str
    sku: Optional[str] = None
    barcode: Optional[str] = None
    price: Money = Decimal('0')
    currency: str = DEFAULT_CURRENCY
    product_type: str = DEFAULT_PRODUCT_TYPE
    stock_quantity: int = 0
    global_quantity: Optional[int] = None

    @field_validator('product_type', mode='before')
    @classmethod
    def _default_product_type(cls, value):
        return value or DEFAULT_PRODUCT_TYPE

    @field_validator('currency', mode='before')
    @classmethod
    def _default_currency(cls, value):
        return value or DEFAULT_CURRENCY

    @field_validator('price', mode='before')
    @classmethod
    def _price_or_zero(cls, value):
        return Decimal('0') if value in (None, '') else value

    @field_validator('stock_quantity', mode='before')
    @classmethod
    def _stock_or_zero(cls, value):
        return whole_number(value) or 0

    @field_validator('global_quantity', mode='before')
    @classmethod
    def _global_stock(cls, value):
        return whole_number(value)

    def available_stock(self, role=None, privileged_roles: Iterable[str] = PRIVILEGED_ROLES) -> int:
        """Units the given role may sell: global stock for privileged roles, shop stock otherwise."""
        if is_privileged(role, privileged_roles):
            return self.global_quantity or self.stock_quantity or 0
        return self.stock_quantity or 0

    def __repr__(self):
        return f"<Product(id={self.id}, name='{self.name}', sku='{self.sku}')>"
