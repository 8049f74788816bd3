"""Models package - exports catalog and order models."""
# Catalog Models
from order_entry.models.product import Product, DEFAULT_PRODUCT_TYPE
from order_entry.models.customer import Customer, is_walk_in_customer
from order_entry.models.discount import Discount, DiscountType
from order_entry.models.user_role import UserRole, is_privileged

# Order Models
from order_entry.models.order import (
    LineItem, OrderLinePayload, AppliedDiscount, OrderPayload, OrderConfirmation,
    PaymentStatus, PaymentMethod, OrderStatus, DraftState
)

__all__ = [
    # Catalog
    'Product', 'DEFAULT_PRODUCT_TYPE', 'Customer', 'is_walk_in_customer',
    'Discount', 'DiscountType', 'UserRole', 'is_privileged',
    # Order
    'LineItem', 'OrderLinePayload', 'AppliedDiscount', 'OrderPayload', 'OrderConfirmation',
    'PaymentStatus', 'PaymentMethod', 'OrderStatus', 'DraftState',
]
