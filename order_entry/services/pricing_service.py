"""Pricing Service - subtotal, informational tax, total and partial payment split."""
from decimal import Decimal

from pydantic import BaseModel

from order_entry.models import PaymentStatus
from order_entry.models.types import Money

DEFAULT_TAX_RATE = Decimal('0.18')
DEFAULT_PARTIAL_PAYMENT_RATIO = Decimal('0.5')


class OrderTotals(BaseModel):
    """Derived amounts for a draft."""
    subtotal: Money
    tax: Money
    discount_amount: Money
    total: Money
    amount_due: Money
    remaining: Money


def calculate_tax(subtotal: Decimal, tax_rate: Decimal = DEFAULT_TAX_RATE) -> Decimal:
    """Tax is reported on receipts but never added to the payable total."""
    return subtotal * tax_rate


def calculate_totals(
    subtotal: Decimal,
    discount_amount: Decimal,
    payment_status: PaymentStatus,
    tax_rate: Decimal = DEFAULT_TAX_RATE,
    partial_payment_ratio: Decimal = DEFAULT_PARTIAL_PAYMENT_RATIO
) -> OrderTotals:
    """
    Derive the amounts shown at checkout.

    total = subtotal - discount_amount. A pending (partial) payment collects
    `partial_payment_ratio` of the total now and leaves the rest outstanding;
    a complete payment collects everything.
    """
    total = subtotal - discount_amount
    if payment_status == PaymentStatus.PENDING:
        amount_due = total * partial_payment_ratio
    else:
        amount_due = total
    return OrderTotals(
        subtotal=subtotal,
        tax=calculate_tax(subtotal, tax_rate),
        discount_amount=discount_amount,
        total=total,
        amount_due=amount_due,
        remaining=total - amount_due,
    )
