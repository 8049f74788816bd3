"""Receipt Service - receipt data for a committed order."""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from order_entry.models import AppliedDiscount, Customer, LineItem, OrderConfirmation, OrderPayload
from order_entry.models.types import Money
from order_entry.utils.formatters import payment_status_label
from order_entry.utils.references import generate_invoice_number


class ReceiptLine(BaseModel):
    name: str
    sku: Optional[str] = None
    quantity: int
    price: Money
    total: Money


class Receipt(BaseModel):
    """
    Everything a printer or PDF renderer needs for one sale.

    Built from the submitted payload rather than the live draft, which is
    reset right after commit.
    """
    invoice_number: str
    order_reference: Optional[str] = None
    order_id: int
    order_number: Optional[str] = None
    issued_at: datetime
    customer_name: Optional[str] = None
    payment_method: str
    payment_status: str
    payment_status_label: str
    currency: str
    lines: List[ReceiptLine]
    subtotal: Money
    discount_amount: Money
    tax_amount: Money
    total: Money
    amount_paid: Money
    remaining_amount: Money
    discounts: List[AppliedDiscount] = []
    notes: Optional[str] = None

    @property
    def is_partial(self) -> bool:
        return self.payment_status == 'pending'


def build_receipt(
    payload: OrderPayload,
    lines: List[LineItem],
    confirmation: OrderConfirmation,
    order_reference: Optional[str] = None,
    customer: Optional[Customer] = None,
    now: Optional[datetime] = None
) -> Receipt:
    now = now or datetime.now()
    return Receipt(
        invoice_number=generate_invoice_number(now),
        order_reference=order_reference,
        order_id=confirmation.id,
        order_number=confirmation.order_number,
        issued_at=now,
        customer_name=customer.full_name if customer else None,
        payment_method=payload.payment_method.value,
        payment_status=payload.payment_status.value,
        payment_status_label=payment_status_label(payload.payment_status),
        currency=payload.currency,
        lines=[
            ReceiptLine(name=line.name, sku=line.sku, quantity=line.quantity, price=line.price, total=line.total)
            for line in lines
        ],
        subtotal=payload.subtotal,
        discount_amount=payload.discount_amount,
        tax_amount=payload.tax_amount,
        total=payload.total_amount,
        amount_paid=payload.amount_paid,
        remaining_amount=payload.remaining_amount,
        discounts=payload.discounts,
        notes=payload.notes,
    )
