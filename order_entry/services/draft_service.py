"""Draft Service - the order being built at one terminal (cart, customer, payment, discounts)."""
import logging
import threading
import time
from collections import OrderedDict
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from order_entry.exceptions import BusinessLogicError, NotFoundError, SubmissionInProgressError
from order_entry.models import Customer, Discount, DraftState, LineItem, PaymentMethod, PaymentStatus
from order_entry.models.customer import WALKIN_EMAIL_DOMAIN
from order_entry.models.product import DEFAULT_CURRENCY
from order_entry.models.types import utcnow
from order_entry.models.user_role import PRIVILEGED_ROLES
from order_entry.services.cart_service import Cart
from order_entry.services.discount_service import (
    DiscountSelection, auto_apply_discounts, calculate_discount_amount, counts_as_walk_in,
    eligible_discounts, normalize_tiers, preview_savings
)
from order_entry.services.notification_service import Notifier
from order_entry.services.pricing_service import (
    DEFAULT_PARTIAL_PAYMENT_RATIO, DEFAULT_TAX_RATE, OrderTotals, calculate_totals
)
from order_entry.utils.formatters import money, payment_status_label
from order_entry.utils.number_format import to_decimal

logger = logging.getLogger(__name__)

DEFAULT_DRAFT_IDLE_TIMEOUT = 8 * 60 * 60  # seconds
DEFAULT_MAX_OPEN_DRAFTS = 500

DiscountLoader = Callable[[PaymentStatus], List[Discount]]


class OrderDraft:
    """
    Mutable order draft.

    Every mutation marks the draft dirty; derived values (eligible discounts,
    discount amount, totals) are rebuilt by recompute() on the next read.
    Auto-apply only runs when the eligibility picture changes, so repeated
    reads never re-add a discount the cashier removed.
    """

    def __init__(
        self,
        catalog=None,
        role: Optional[str] = None,
        currency: str = DEFAULT_CURRENCY,
        tax_rate: Decimal = DEFAULT_TAX_RATE,
        partial_payment_ratio: Decimal = DEFAULT_PARTIAL_PAYMENT_RATIO,
        bottle_return_tiers: Optional[Mapping] = None,
        walkin_email_domain: str = WALKIN_EMAIL_DOMAIN,
        privileged_roles: Iterable[str] = PRIVILEGED_ROLES,
        discount_loader: Optional[DiscountLoader] = None,
        clock: Callable[[], datetime] = utcnow
    ):
        self.catalog = catalog
        self.role = role
        self.currency = currency
        self.tax_rate = to_decimal(tax_rate)
        self.partial_payment_ratio = to_decimal(partial_payment_ratio)
        self.bottle_return_tiers = normalize_tiers(bottle_return_tiers)
        self.walkin_email_domain = walkin_email_domain
        self.clock = clock
        if discount_loader is None and catalog is not None:
            discount_loader = catalog.refresh_discounts
        self.discount_loader = discount_loader

        self.notifier = Notifier()
        self.cart = Cart(self.notifier, privileged_roles)
        self.cart.subscribe(self._mark_dirty)
        self.selection = DiscountSelection()

        self.state = DraftState.BUILDING
        # Guards state changes; one draft is shared by every request of its session
        self.lock = threading.Lock()
        self.customer: Optional[Customer] = None
        self.payment_method: Optional[PaymentMethod] = PaymentMethod.CASH
        self.payment_status: Optional[PaymentStatus] = PaymentStatus.COMPLETE
        self.notes: Optional[str] = None
        self.order_reference: Optional[str] = None
        self.available_discounts: List[Discount] = []
        self._discounts_status: Optional[PaymentStatus] = None

        self._dirty = True
        self._eligible: List[Discount] = []
        self._eligibility_signature = None
        self._discount_amount = Decimal('0')
        self._totals: Optional[OrderTotals] = None

    # -----------------------------------------------------
    # Bookkeeping
    # -----------------------------------------------------

    def _mark_dirty(self) -> None:
        self._dirty = True

    def _ensure_editable(self) -> None:
        """Refuse edits mid-submission; an edit during review reopens the draft."""
        with self.lock:
            if self.state == DraftState.SUBMITTING:
                raise SubmissionInProgressError()
            if self.state == DraftState.REVIEWING:
                logger.info("[ORDER] reviewing -> building (draft edited)")
                self.state = DraftState.BUILDING

    def recompute(self, force: bool = False) -> None:
        """Rebuild derived values if anything changed (or when forced)."""
        if not self._dirty and not force:
            return

        now = self.clock()
        lines = self.cart.lines
        status = self.payment_status or PaymentStatus.COMPLETE
        self._eligible = eligible_discounts(
            self.available_discounts, lines, self.customer, status, now, self.walkin_email_domain
        )

        signature = (
            tuple(d.id for d in self._eligible),
            bool(lines),
            counts_as_walk_in(self.customer, self.walkin_email_domain),
        )
        if signature != self._eligibility_signature:
            self._eligibility_signature = signature
            applied = auto_apply_discounts(
                self._eligible, self.selection, self.customer, lines, self.walkin_email_domain
            )
            for discount in applied:
                self.notifier.success(f"{discount.name} discount applied automatically")

        self._discount_amount = calculate_discount_amount(self.selection, lines, now, self.bottle_return_tiers)
        self._totals = calculate_totals(
            self.cart.subtotal(), self._discount_amount, status,
            self.tax_rate, self.partial_payment_ratio
        )
        self._dirty = False

    @property
    def eligible_discounts(self) -> List[Discount]:
        self.recompute()
        return list(self._eligible)

    @property
    def discount_amount(self) -> Decimal:
        self.recompute()
        return self._discount_amount

    @property
    def totals(self) -> OrderTotals:
        self.recompute()
        return self._totals

    # -----------------------------------------------------
    # Cart
    # -----------------------------------------------------

    def add_item(self, product, via_barcode: bool = False) -> LineItem:
        self._ensure_editable()
        return self.cart.add_item(product, self.role, via_barcode=via_barcode)

    def add_product(self, product_id: int) -> LineItem:
        """Add a product from the catalog snapshot by id."""
        return self.add_item(self._require_catalog().get_product(product_id))

    def add_by_barcode(self, barcode: str) -> LineItem:
        """Scanner entry: exact (trimmed) barcode match against the catalog snapshot."""
        self._ensure_editable()
        product = self._require_catalog().find_by_barcode(barcode)
        logger.info(f"[CART] Barcode {product.barcode} matched product {product.id}")
        return self.add_item(product, via_barcode=True)

    def set_quantity(self, product_id: int, quantity: int) -> Optional[LineItem]:
        self._ensure_editable()
        return self.cart.set_quantity(product_id, quantity)

    def enter_quantity(self, product_id: int, text, commit: bool = False) -> Optional[LineItem]:
        self._ensure_editable()
        return self.cart.enter_quantity(product_id, text, commit=commit)

    def apply_quick_quantity(self, product_id: int, quantity: int) -> Optional[LineItem]:
        self._ensure_editable()
        return self.cart.apply_quick_quantity(product_id, quantity)

    def remove_item(self, product_id: int) -> None:
        self._ensure_editable()
        self.cart.remove_item(product_id)

    # -----------------------------------------------------
    # Customer, payment, notes
    # -----------------------------------------------------

    def set_customer(self, customer: Optional[Customer]) -> None:
        """Switch customer; a walk-in (or none) keeps only bottle-return discounts."""
        self._ensure_editable()
        self.customer = customer
        if counts_as_walk_in(customer, self.walkin_email_domain):
            removed = self.selection.retain_bottle_returns()
            if removed:
                names = ', '.join(d.name for d in removed)
                self.notifier.info(f"Removed discounts not available to walk-in customers: {names}")
        self._mark_dirty()

    def select_customer(self, customer_id: Optional[int]) -> Optional[Customer]:
        customer = self._require_catalog().get_customer(customer_id) if customer_id else None
        self.set_customer(customer)
        return customer

    def set_payment_method(self, method) -> None:
        self._ensure_editable()
        self.payment_method = PaymentMethod(method) if method else None

    def set_payment_status(self, status) -> None:
        """
        Change payment status.

        Moving to a partial payment drops every selected discount; the
        discount list is reloaded for the new status either way.
        """
        self._ensure_editable()
        new_status = PaymentStatus(status) if status else None
        if new_status == self.payment_status:
            return
        self.payment_status = new_status
        if new_status == PaymentStatus.PENDING and len(self.selection):
            self.selection.clear()
            self.notifier.info('Discounts cleared for partial payment')
        if new_status is not None:
            self.load_discounts()
        self._mark_dirty()

    def set_notes(self, notes: Optional[str]) -> None:
        self._ensure_editable()
        self.notes = (notes or '').strip() or None

    # -----------------------------------------------------
    # Discounts
    # -----------------------------------------------------

    def load_discounts(self) -> List[Discount]:
        """Fetch the discount catalog for the current payment status."""
        status = self.payment_status or PaymentStatus.COMPLETE
        if self.discount_loader is not None:
            self.available_discounts = list(self.discount_loader(status))
            self._discounts_status = status
            logger.info(f"[DISCOUNT] Loaded {len(self.available_discounts)} discounts for {status.value}")
        self._mark_dirty()
        return self.available_discounts

    def set_available_discounts(self, discounts: Iterable[Discount]) -> None:
        self.available_discounts = list(discounts)
        self._mark_dirty()

    def toggle_discount(self, discount_id: int) -> bool:
        """
        Select or deselect a discount; returns True when it ends up selected.

        Deselecting is always allowed. Selecting requires the discount to be
        eligible right now and respects the one-bottle-return rule.
        """
        self._ensure_editable()
        if self.selection.is_selected(discount_id):
            removed = self.selection.deselect(discount_id)
            self._mark_dirty()
            self.notifier.info(f"{removed.name} removed")
            return False

        discount = next((d for d in self.available_discounts if d.id == discount_id), None)
        if discount is None:
            raise NotFoundError('Discount not found.')
        if discount.id not in {d.id for d in self.eligible_discounts}:
            raise BusinessLogicError(f"{discount.name} is not available for this order")

        self.selection.select(discount)
        self._mark_dirty()
        self.notifier.success(f"{discount.name} applied")
        return True

    # -----------------------------------------------------
    # Lifecycle
    # -----------------------------------------------------

    def reset(self) -> None:
        """Back to an empty draft after an order is committed."""
        self.cart.clear()
        self.selection.clear()
        self.customer = None
        self.payment_method = PaymentMethod.CASH
        self.payment_status = PaymentStatus.COMPLETE
        self.notes = None
        self.order_reference = None
        self._eligibility_signature = None
        self.state = DraftState.BUILDING
        if self._discounts_status not in (None, PaymentStatus.COMPLETE):
            self.load_discounts()
        self._mark_dirty()

    def summary(self) -> Dict[str, Any]:
        """JSON-ready view of the draft for the order form."""
        totals = self.totals
        lines = self.cart.lines
        selected_ids = [d.id for d in self.selection]
        return {
            'state': self.state.value,
            'order_reference': self.order_reference,
            'customer': self.customer.model_dump(mode='json') if self.customer else None,
            'is_walk_in': counts_as_walk_in(self.customer, self.walkin_email_domain),
            'payment_method': self.payment_method.value if self.payment_method else None,
            'payment_status': self.payment_status.value if self.payment_status else None,
            'payment_status_label': payment_status_label(self.payment_status) if self.payment_status else None,
            'notes': self.notes,
            'items': [
                {
                    **line.model_dump(mode='json'),
                    'total': float(line.total),
                    'pending_input': self.cart.pending_input(line.product_id),
                }
                for line in lines
            ],
            'item_count': self.cart.line_count(),
            'unit_count': self.cart.unit_count(),
            'discounts': [
                {
                    'id': d.id,
                    'name': d.name,
                    'type': d.type.value,
                    'value': float(d.value),
                    'auto_apply': d.auto_apply,
                    'selected': d.id in selected_ids,
                    'savings': money(preview_savings(d, lines, self.bottle_return_tiers), self.currency),
                }
                for d in self._eligible
            ],
            'selected_discount_ids': selected_ids,
            'totals': totals.model_dump(mode='json'),
            'display': {name: money(value, self.currency) for name, value in totals.model_dump().items()},
        }

    def _require_catalog(self):
        if self.catalog is None:
            raise BusinessLogicError('Catalog is not loaded')
        return self.catalog


def build_draft(config: Mapping, catalog=None, role: Optional[str] = None) -> OrderDraft:
    """New draft wired to the app configuration."""
    draft = OrderDraft(
        catalog=catalog,
        role=role,
        currency=config.get('DEFAULT_CURRENCY', DEFAULT_CURRENCY),
        tax_rate=config.get('TAX_RATE', DEFAULT_TAX_RATE),
        partial_payment_ratio=config.get('PARTIAL_PAYMENT_RATIO', DEFAULT_PARTIAL_PAYMENT_RATIO),
        bottle_return_tiers=config.get('BOTTLE_RETURN_TIERS'),
        walkin_email_domain=config.get('WALKIN_EMAIL_DOMAIN', WALKIN_EMAIL_DOMAIN),
        privileged_roles=config.get('PRIVILEGED_ROLES', PRIVILEGED_ROLES),
    )
    if catalog is not None:
        draft.load_discounts()
    return draft


class DraftRegistry:
    """
    One draft per terminal session, held in process memory.

    Drafts idle longer than idle_timeout seconds are dropped, and the least
    recently used ones go first once max_drafts is reached. A draft in the
    middle of a submission is never evicted.
    """

    def __init__(
        self,
        idle_timeout: Optional[float] = DEFAULT_DRAFT_IDLE_TIMEOUT,
        max_drafts: Optional[int] = DEFAULT_MAX_OPEN_DRAFTS,
        clock: Callable[[], float] = time.monotonic
    ):
        self._drafts: 'OrderedDict[str, OrderDraft]' = OrderedDict()
        self._last_used: Dict[str, float] = {}
        self._lock = threading.Lock()
        self.idle_timeout = idle_timeout
        self.max_drafts = max_drafts
        self.clock = clock

    def get_or_create(self, key: str, factory: Callable[[], OrderDraft]) -> OrderDraft:
        with self._lock:
            now = self.clock()
            self._expire(now)
            draft = self._drafts.get(key)
            if draft is None:
                self._make_room()
                draft = factory()
                self._drafts[key] = draft
                logger.info(f"[ORDER] New draft for session {key[:8]}")
            self._drafts.move_to_end(key)
            self._last_used[key] = now
            return draft

    def discard(self, key: str) -> bool:
        """Forget a session's draft; True when one was held."""
        with self._lock:
            return self._remove(key)

    def _remove(self, key: str) -> bool:
        self._last_used.pop(key, None)
        return self._drafts.pop(key, None) is not None

    def _evictable(self, key: str) -> bool:
        return self._drafts[key].state != DraftState.SUBMITTING

    def _expire(self, now: float) -> None:
        if not self.idle_timeout:
            return
        stale = [
            key for key, used in self._last_used.items()
            if now - used > self.idle_timeout and self._evictable(key)
        ]
        for key in stale:
            self._remove(key)
        if stale:
            logger.info(f"[ORDER] Dropped {len(stale)} idle drafts")

    def _make_room(self) -> None:
        if not self.max_drafts:
            return
        for key in list(self._drafts):
            if len(self._drafts) < self.max_drafts:
                break
            if self._evictable(key):
                self._remove(key)
                logger.warning(f"[ORDER] Draft limit reached, dropped session {key[:8]}")

    def __len__(self):
        return len(self._drafts)
