"""Order models: line items, enums and the payload sent to the backend."""
import enum
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from order_entry.models.product import DEFAULT_CURRENCY, DEFAULT_PRODUCT_TYPE, Product
from order_entry.models.types import Money


class PaymentStatus(str, enum.Enum):
    """Payment status chosen at checkout."""
    COMPLETE = 'complete'
    PENDING = 'pending'  # partial payment: half now, the rest later


class PaymentMethod(str, enum.Enum):
    """Payment methods offered by the order form."""
    CASH = 'cash'
    CARD = 'card'
    DEBIT = 'debit'
    MOMO = 'momo'
    MOBILE_MONEY = 'mobile_money'
    MOBILE = 'mobile'
    BANK_TRANSFER = 'bank_transfer'


class OrderStatus(str, enum.Enum):
    """Resulting order status on the backend."""
    PENDING = 'pending'
    COMPLETED = 'completed'


class DraftState(str, enum.Enum):
    """Order assembler states."""
    BUILDING = 'building'
    REVIEWING = 'reviewing'
    SUBMITTING = 'submitting'
    COMMITTED = 'committed'


class LineItem(BaseModel):
    """
    Line item in the cart.

    Product attributes are copied when the line is created so later catalog
    refreshes do not reprice an order being built. `available_stock` is the
    ceiling captured at add time.
    """
    model_config = ConfigDict(validate_assignment=True)

    product_id: int
    name: str
    sku: Optional[str] = None
    barcode: Optional[str] = None
    price: Money
    currency: str = DEFAULT_CURRENCY
    product_type: str = DEFAULT_PRODUCT_TYPE
    quantity: int = Field(1, ge=1)
    available_stock: int = Field(..., ge=0)
    added_via_barcode: bool = False

    @classmethod
    def from_product(cls, product: Product, available_stock: int, via_barcode: bool = False) -> 'LineItem':
        return cls(
            product_id=product.id,
            name=product.name,
            sku=product.sku,
            barcode=product.barcode,
            price=product.price,
            currency=product.currency,
            product_type=product.product_type,
            quantity=1,
            available_stock=available_stock,
            added_via_barcode=via_barcode,
        )

    @property
    def total(self) -> Decimal:
        return self.price * self.quantity

    def __repr__(self):
        return f"<LineItem(product_id={self.product_id}, qty={self.quantity}, total={self.total})>"


class OrderLinePayload(BaseModel):
    product_id: int
    quantity: int
    price: Money
    total: Money


class AppliedDiscount(BaseModel):
    discount_id: int
    discount_type: str
    discount_value: Money


class OrderPayload(BaseModel):
    """Order creation request body expected by the backend."""
    customer_id: int
    items: List[OrderLinePayload]
    payment_method: PaymentMethod
    payment_status: PaymentStatus
    notes: Optional[str] = None
    currency: str = DEFAULT_CURRENCY
    subtotal: Money
    tax_amount: Money
    discount_amount: Money
    total_amount: Money
    amount_paid: Money
    remaining_amount: Money
    status: OrderStatus
    discounts: List[AppliedDiscount] = []


class OrderConfirmation(BaseModel):
    """Order as echoed back by the backend after creation."""
    model_config = ConfigDict(extra='allow')

    id: int
    order_number: Optional[str] = None
    status: Optional[str] = None
