"""
Order service - checkout flow for a draft.
Validates the draft, creates the walk-in customer when needed and posts the
order to the backend.
"""
import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from order_entry.exceptions import (
    BackendError, DuplicateCustomerError, InvalidTransitionError,
    SubmissionInProgressError, ValidationError
)
from order_entry.models import (
    AppliedDiscount, DraftState, OrderLinePayload, OrderPayload, OrderStatus, PaymentStatus
)
from order_entry.models.customer import WALKIN_EMAIL_DOMAIN, WALKIN_FIRST_NAME, WALKIN_LAST_NAME
from order_entry.services.backend_client import BackendClient
from order_entry.services.draft_service import OrderDraft
from order_entry.services.receipt_service import Receipt, build_receipt
from order_entry.utils.references import generate_order_reference, generate_walk_in_identity

logger = logging.getLogger(__name__)

WALKIN_ADDRESS = 'Store Location'
# Placeholder location for walk-in records; the backend requires every address field
WALKIN_LOCATION = {
    'city': 'City Center',
    'state': 'State',
    'postalCode': '12345',
    'country': 'Country',
}
WALKIN_FAILURE_MESSAGE = 'Failed to create default customer. Please try again.'
ORDER_SAVED_MESSAGE = 'Order approved and saved to database successfully!'


def validate_draft(draft: OrderDraft) -> Dict[str, str]:
    """Field errors blocking submission; empty when the draft can be sent."""
    errors = {}
    lines = draft.cart.lines
    if not lines:
        errors['items'] = 'Please add at least one item to the order'

    over_stock = [line.name for line in lines if line.quantity > line.available_stock]
    if over_stock:
        errors['stock'] = f"Insufficient stock for: {', '.join(over_stock)}"

    if not draft.payment_method:
        errors['payment'] = 'Please select a payment method'
    if not draft.payment_status:
        errors['paymentStatus'] = 'Please select a payment status'
    return errors


def build_walk_in_fields(email_domain: str = WALKIN_EMAIL_DOMAIN, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Customer record created for an order placed without a customer."""
    email, phone = generate_walk_in_identity(email_domain, now)
    return {
        'firstName': WALKIN_FIRST_NAME,
        'lastName': WALKIN_LAST_NAME,
        'email': email,
        'phone': phone,
        'address': WALKIN_ADDRESS,
        **WALKIN_LOCATION,
    }


def build_order_payload(draft: OrderDraft, customer_id: int, currency: Optional[str] = None) -> OrderPayload:
    totals = draft.totals
    return OrderPayload(
        customer_id=customer_id,
        items=[
            OrderLinePayload(
                product_id=line.product_id,
                quantity=line.quantity,
                price=line.price,
                total=line.total
            )
            for line in draft.cart.lines
        ],
        payment_method=draft.payment_method,
        payment_status=draft.payment_status,
        notes=draft.notes,
        currency=currency or draft.currency,
        subtotal=totals.subtotal,
        tax_amount=totals.tax,
        discount_amount=totals.discount_amount,
        total_amount=totals.total,
        amount_paid=totals.amount_due,
        remaining_amount=totals.remaining,
        status=OrderStatus.PENDING if draft.payment_status == PaymentStatus.PENDING else OrderStatus.COMPLETED,
        discounts=[
            AppliedDiscount(discount_id=d.id, discount_type=d.type.value, discount_value=d.value)
            for d in draft.selection
        ],
    )


class OrderAssembler:
    """
    Drives a draft through building -> reviewing -> submitting -> committed.

    A failed submission returns to reviewing with the draft untouched so the
    cashier can fix the problem and retry. A committed order resets the draft
    back to building.
    """

    def __init__(
        self,
        backend: BackendClient,
        draft: OrderDraft,
        currency: Optional[str] = None,
        walkin_email_domain: Optional[str] = None,
        on_committed: Optional[Callable[[Receipt], Any]] = None,
        catalog=None
    ):
        self.backend = backend
        self.draft = draft
        self.currency = currency or draft.currency
        self.walkin_email_domain = walkin_email_domain or draft.walkin_email_domain
        self.on_committed = on_committed
        self.catalog = catalog

    @property
    def state(self) -> DraftState:
        return self.draft.state

    def _transition(self, target: DraftState) -> None:
        logger.info(f"[ORDER] {self.draft.state.value} -> {target.value}")
        self.draft.state = target

    def checkout(self) -> Dict[str, Any]:
        """Leave building for review; the order reference is fixed here."""
        with self.draft.lock:
            if self.state != DraftState.BUILDING:
                raise InvalidTransitionError(self.state.value, DraftState.REVIEWING.value)
            self.draft.cart.commit_pending_input()
            if not self.draft.order_reference:
                self.draft.order_reference = generate_order_reference()
            self._transition(DraftState.REVIEWING)
        return self.draft.summary()

    def cancel(self) -> None:
        with self.draft.lock:
            if self.state != DraftState.REVIEWING:
                raise InvalidTransitionError(self.state.value, DraftState.BUILDING.value)
            self._transition(DraftState.BUILDING)

    def submit(self) -> Receipt:
        """
        Send the reviewed draft to the backend.

        Raises:
            SubmissionInProgressError: a submission is already running
            InvalidTransitionError: the draft is not under review
            ValidationError: field errors (draft stays in review)
            BackendError: customer or order creation failed (draft stays in review)
        """
        with self.draft.lock:
            if self.state == DraftState.SUBMITTING:
                raise SubmissionInProgressError()
            if self.state != DraftState.REVIEWING:
                raise InvalidTransitionError(self.state.value, DraftState.SUBMITTING.value)

            self.draft.recompute(force=True)
            errors = validate_draft(self.draft)
            if errors:
                logger.info(f"[ORDER] Validation failed: {', '.join(errors)}")
                raise ValidationError(errors)

            self._transition(DraftState.SUBMITTING)

        try:
            customer_id = self._resolve_customer()
            payload = build_order_payload(self.draft, customer_id, self.currency)
            confirmation = self.backend.create_order(payload)
        except BackendError as e:
            logger.error(f"[ORDER] Submission failed for {self.draft.order_reference}: {e.message}")
            self._transition(DraftState.REVIEWING)
            raise
        except Exception:
            logger.exception(f"[ORDER] Unexpected error submitting {self.draft.order_reference}")
            self._transition(DraftState.REVIEWING)
            raise

        return self._commit(payload, confirmation)

    def _resolve_customer(self) -> int:
        """Current customer id, creating a walk-in record when none is selected."""
        customer = self.draft.customer
        if customer is not None and customer.id is not None:
            return customer.id

        fields = build_walk_in_fields(self.walkin_email_domain)
        try:
            created = self.backend.create_customer(fields)
        except DuplicateCustomerError:
            raise
        except BackendError as e:
            raise BackendError(WALKIN_FAILURE_MESSAGE, status=e.status) from e
        if created.id is None:
            raise BackendError(WALKIN_FAILURE_MESSAGE)

        # Kept on the draft so a retry after a failed order reuses it
        self.draft.customer = created.model_copy(update={'is_walk_in': True})
        logger.info(f"[ORDER] Walk-in customer {created.id} created")
        return created.id

    def _commit(self, payload: OrderPayload, confirmation) -> Receipt:
        self._transition(DraftState.COMMITTED)
        try:
            receipt = build_receipt(
                payload,
                self.draft.cart.lines,
                confirmation,
                order_reference=self.draft.order_reference,
                customer=self.draft.customer,
            )
        except Exception:
            # The order exists on the backend; never leave the draft behind it
            logger.exception(f"[ORDER] Receipt build failed for order {confirmation.id}")
            self.draft.reset()
            raise
        logger.info(f"[ORDER] Order {confirmation.id} committed ({receipt.invoice_number})")

        if self.catalog is not None:
            self.catalog.invalidate_products()
        if self.on_committed is not None:
            try:
                self.on_committed(receipt)
            except Exception as e:
                logger.error(f"[ORDER] Receipt hook failed for order {confirmation.id}: {e}")

        self.draft.reset()
        self.draft.notifier.success(ORDER_SAVED_MESSAGE)
        return receipt
