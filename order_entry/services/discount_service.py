"""
Discount evaluation for the order form.

Eligibility is a pure function of (discount catalog, cart lines, customer,
payment status, now). Selection state lives in DiscountSelection, which
enforces the one-bottle-return rule.
"""
import logging
from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterable, Iterator, List, Mapping, Optional

from order_entry.exceptions import DiscountConflictError
from order_entry.models import Customer, Discount, DiscountType, LineItem, PaymentStatus
from order_entry.models.customer import WALKIN_EMAIL_DOMAIN, is_walk_in_customer
from order_entry.models.types import utcnow

logger = logging.getLogger(__name__)

# Bottles returned -> currency amount off; counts outside the table earn nothing
DEFAULT_BOTTLE_RETURN_TIERS: Dict[int, Decimal] = {
    1: Decimal('1000'),
    2: Decimal('2000'),
    3: Decimal('3000'),
    4: Decimal('4000'),
}


def normalize_tiers(tiers: Optional[Mapping]) -> Dict[int, Decimal]:
    """Accept tier tables from config (int/str keys, numeric values)."""
    if tiers is None:
        return dict(DEFAULT_BOTTLE_RETURN_TIERS)
    return {int(count): Decimal(str(amount)) for count, amount in tiers.items()}


def counts_as_walk_in(customer: Optional[Customer], email_domain: str = WALKIN_EMAIL_DOMAIN) -> bool:
    """No customer selected means the order will go out under a walk-in record."""
    return customer is None or is_walk_in_customer(customer, email_domain)


def matching_lines(discount: Discount, lines: Iterable[LineItem]) -> List[LineItem]:
    """Lines whose product type is in the discount allowlist (all lines without one)."""
    return [line for line in lines if discount.applies_to(line.product_type)]


def matching_subtotal(discount: Discount, lines: Iterable[LineItem]) -> Decimal:
    return sum((line.total for line in matching_lines(discount, lines)), Decimal('0'))


def bottle_return_amount(count: Optional[int], tiers: Optional[Mapping] = None) -> Decimal:
    if not count:
        return Decimal('0')
    return normalize_tiers(tiers).get(count, Decimal('0'))


def is_discount_eligible(
    discount: Discount,
    lines: List[LineItem],
    customer: Optional[Customer],
    payment_status: PaymentStatus,
    now: datetime,
    email_domain: str = WALKIN_EMAIL_DOMAIN
) -> bool:
    """Apply the eligibility gates in order; the first failing gate excludes the discount."""
    # 1. Customer gate: bottle returns are open to everyone, the rest not to walk-ins
    if not discount.is_bottle_return and counts_as_walk_in(customer, email_domain):
        return False

    # 2. Active flag and validity window
    if not discount.is_active or not discount.is_within_window(now):
        return False

    # 3. Product-type allowlist needs at least one matching line
    matching = matching_lines(discount, lines)
    if discount.product_types and not matching:
        return False

    # 4. Minimum purchase over the matching lines only
    subtotal = sum((line.total for line in matching), Decimal('0'))
    if discount.min_purchase_amount and subtotal < discount.min_purchase_amount:
        return False

    # 5. Partial payments only accept discounts that opt in
    if payment_status == PaymentStatus.PENDING and not discount.allow_partial_payment:
        return False

    return True


def eligible_discounts(
    discounts: Iterable[Discount],
    lines: List[LineItem],
    customer: Optional[Customer],
    payment_status: PaymentStatus,
    now: Optional[datetime] = None,
    email_domain: str = WALKIN_EMAIL_DOMAIN
) -> List[Discount]:
    """Filter the discount catalog down to the discounts the current draft qualifies for."""
    now = now or utcnow()
    return [
        discount for discount in discounts
        if is_discount_eligible(discount, lines, customer, payment_status, now, email_domain)
    ]


def discount_contribution(
    discount: Discount,
    lines: List[LineItem],
    now: Optional[datetime] = None,
    tiers: Optional[Mapping] = None
) -> Decimal:
    """
    Amount a selected discount takes off right now.

    Conditions are re-checked because the cart may have changed since the
    discount was selected; a discount that no longer qualifies contributes
    zero without being deselected.
    """
    now = now or utcnow()
    matching = matching_lines(discount, lines)
    if not matching:
        return Decimal('0')

    subtotal = sum((line.total for line in matching), Decimal('0'))
    if discount.min_purchase_amount and subtotal < discount.min_purchase_amount:
        return Decimal('0')
    if not discount.is_within_window(now):
        return Decimal('0')

    if discount.type == DiscountType.PERCENTAGE:
        return subtotal * discount.value / Decimal('100')
    if discount.type == DiscountType.FIXED_AMOUNT:
        return min(discount.value, subtotal)
    if discount.type == DiscountType.BOTTLE_RETURN:
        tier_amount = bottle_return_amount(discount.bottle_return_count, tiers)
        return min(tier_amount, subtotal) if tier_amount else Decimal('0')
    return Decimal('0')


def calculate_discount_amount(
    selected: Iterable[Discount],
    lines: List[LineItem],
    now: Optional[datetime] = None,
    tiers: Optional[Mapping] = None
) -> Decimal:
    """Sum of per-discount contributions; each discount is capped on its own only."""
    now = now or utcnow()
    return sum((discount_contribution(d, lines, now, tiers) for d in selected), Decimal('0'))


def preview_savings(discount: Discount, lines: List[LineItem], tiers: Optional[Mapping] = None) -> Decimal:
    """'Save up to' figure shown next to an eligible discount before it is selected."""
    subtotal = matching_subtotal(discount, lines)
    if discount.type == DiscountType.PERCENTAGE:
        return subtotal * discount.value / Decimal('100')
    if discount.type == DiscountType.FIXED_AMOUNT:
        return min(discount.value, subtotal)
    return min(bottle_return_amount(discount.bottle_return_count, tiers), subtotal)


class DiscountSelection:
    """Discounts chosen for one draft, in selection order."""

    def __init__(self):
        self._selected: Dict[int, Discount] = {}

    def select(self, discount: Discount) -> None:
        if discount.id in self._selected:
            return
        if discount.is_bottle_return and self.bottle_return() is not None:
            raise DiscountConflictError()
        self._selected[discount.id] = discount

    def deselect(self, discount_id: int) -> Optional[Discount]:
        return self._selected.pop(discount_id, None)

    def toggle(self, discount: Discount) -> bool:
        """Flip membership; returns True when the discount ends up selected."""
        if discount.id in self._selected:
            self.deselect(discount.id)
            return False
        self.select(discount)
        return True

    def clear(self) -> List[Discount]:
        removed = list(self._selected.values())
        self._selected.clear()
        return removed

    def retain_bottle_returns(self) -> List[Discount]:
        """Drop every non bottle-return discount; returns what was removed."""
        removed = [d for d in self._selected.values() if not d.is_bottle_return]
        for discount in removed:
            del self._selected[discount.id]
        return removed

    def bottle_return(self) -> Optional[Discount]:
        return next((d for d in self._selected.values() if d.is_bottle_return), None)

    def is_selected(self, discount_id: int) -> bool:
        return discount_id in self._selected

    @property
    def discounts(self) -> List[Discount]:
        return list(self._selected.values())

    def __iter__(self) -> Iterator[Discount]:
        return iter(self.discounts)

    def __len__(self):
        return len(self._selected)


def auto_apply_discounts(
    eligible: Iterable[Discount],
    selection: DiscountSelection,
    customer: Optional[Customer],
    lines: List[LineItem],
    email_domain: str = WALKIN_EMAIL_DOMAIN
) -> List[Discount]:
    """
    Select eligible auto-apply discounts that are not selected yet.

    Only runs for a real (non walk-in) customer with items in the cart, and
    never adds a second bottle return. Returns the newly applied discounts.
    """
    if counts_as_walk_in(customer, email_domain) or not lines:
        return []

    applied = []
    for discount in eligible:
        if not discount.auto_apply or selection.is_selected(discount.id):
            continue
        if discount.is_bottle_return and selection.bottle_return() is not None:
            continue
        selection.select(discount)
        applied.append(discount)
        logger.info(f"[DISCOUNT] Auto-applied discount {discount.id} ({discount.type.value})")
    return applied
