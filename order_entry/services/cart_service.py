"""Cart Service - in-memory cart lines with stock ceilings."""
import logging
from decimal import Decimal
from typing import Callable, Dict, Iterable, Iterator, List, Optional

from order_entry.exceptions import (
    BusinessLogicError, InsufficientStockError, NotFoundError, OutOfStockError, ValidationError
)
from order_entry.models import LineItem, Product
from order_entry.models.user_role import PRIVILEGED_ROLES
from order_entry.services.notification_service import Notifier
from order_entry.utils.number_format import parse_quantity

logger = logging.getLogger(__name__)

# Product type whose quantity field accepts free typing (e.g. "50" ml decants)
FREE_ENTRY_PRODUCT_TYPE = 'perfume'
QUICK_QUANTITIES = (30, 50, 100)


class Cart:
    """
    Ordered collection of line items keyed by product id.

    Invariant: every line satisfies 0 < quantity <= available_stock. Requests
    above the ceiling are rejected (add) or clamped with a warning (set).
    """

    def __init__(self, notifier: Optional[Notifier] = None, privileged_roles: Iterable[str] = PRIVILEGED_ROLES):
        self._lines: Dict[int, LineItem] = {}
        self._pending_input: Dict[int, str] = {}
        self._listeners: List[Callable[[], None]] = []
        self.notifier = notifier if notifier is not None else Notifier()
        self.privileged_roles = frozenset(privileged_roles)

    # -----------------------------------------------------
    # Observers
    # -----------------------------------------------------

    def subscribe(self, listener: Callable[[], None]) -> None:
        """Register a callback fired after every change to the lines."""
        self._listeners.append(listener)

    def _changed(self) -> None:
        for listener in self._listeners:
            listener()

    # -----------------------------------------------------
    # Mutations
    # -----------------------------------------------------

    def add_item(self, product: Product, role=None, via_barcode: bool = False) -> LineItem:
        """Add one unit of product, or create its line with the role's stock ceiling."""
        line = self._lines.get(product.id)

        if line:
            if line.quantity >= line.available_stock:
                logger.info(f"[CART] Stock limit reached for product {product.id} ({line.available_stock})")
                raise InsufficientStockError(line.name, line.available_stock)
            line.quantity += 1
            self._changed()
            return line

        available = product.available_stock(role, self.privileged_roles)
        if available <= 0:
            logger.info(f"[CART] Rejected out-of-stock product {product.id}")
            raise OutOfStockError(product.name)

        line = LineItem.from_product(product, available, via_barcode=via_barcode)
        self._lines[product.id] = line
        if via_barcode:
            self.notifier.success(f"Added {product.name} to order via barcode scan")
        else:
            self.notifier.success(f"Added {product.name} to cart")
        self._changed()
        return line

    def set_quantity(self, product_id: int, quantity: int) -> Optional[LineItem]:
        """
        Set a line quantity.

        Zero or less removes the line (returns None). Quantities above the
        captured stock are clamped to it and a warning is queued.
        """
        line = self._require_line(product_id)
        quantity = int(quantity)
        self._pending_input.pop(product_id, None)

        if quantity <= 0:
            self.remove_item(product_id)
            return None

        if quantity > line.available_stock:
            quantity = line.available_stock
            self.notifier.warning(f"Cannot exceed stock for {line.name}. Available: {line.available_stock}")
            logger.info(f"[CART] Clamped product {product_id} to {line.available_stock}")

        if line.quantity != quantity:
            line.quantity = quantity
            self._changed()
        return line

    def enter_quantity(self, product_id: int, text, commit: bool = False) -> Optional[LineItem]:
        """
        Apply a quantity typed into the line's input.

        Free-entry products keep the raw text while the cashier types and are
        only validated on commit (blur / Enter). Other products validate on
        every change. Either way the stock clamp applies.
        """
        line = self._require_line(product_id)
        parsed = parse_quantity(text)

        if line.product_type == FREE_ENTRY_PRODUCT_TYPE and not commit:
            self._pending_input[product_id] = '' if text is None else str(text)
            if parsed is not None and 1 <= parsed <= line.available_stock:
                line.quantity = parsed
                self._changed()
            return line

        if parsed is None:
            if commit:
                return self.set_quantity(product_id, 1)
            raise ValidationError({'quantity': 'Quantity must be a whole number'})

        return self.set_quantity(product_id, max(parsed, 1))

    def apply_quick_quantity(self, product_id: int, quantity: int) -> Optional[LineItem]:
        """Shortcut buttons (30 / 50 / 100) offered on free-entry lines."""
        line = self._require_line(product_id)
        if line.product_type != FREE_ENTRY_PRODUCT_TYPE:
            raise BusinessLogicError(f'Quick quantities are only available for {FREE_ENTRY_PRODUCT_TYPE} products')
        if quantity not in QUICK_QUANTITIES:
            raise BusinessLogicError(f'Quick quantity must be one of {", ".join(map(str, QUICK_QUANTITIES))}')
        return self.set_quantity(product_id, quantity)

    def commit_pending_input(self) -> None:
        """Validate any quantity still being typed (the form is leaving the line)."""
        for product_id, text in list(self._pending_input.items()):
            if product_id in self._lines:
                self.enter_quantity(product_id, text, commit=True)
        self._pending_input.clear()

    def remove_item(self, product_id: int) -> None:
        """Remove line from cart (no-op when absent)."""
        self._pending_input.pop(product_id, None)
        if self._lines.pop(product_id, None) is not None:
            self._changed()

    def clear(self) -> None:
        had_lines = bool(self._lines)
        self._lines.clear()
        self._pending_input.clear()
        if had_lines:
            self._changed()

    # -----------------------------------------------------
    # Queries
    # -----------------------------------------------------

    @property
    def lines(self) -> List[LineItem]:
        return list(self._lines.values())

    def get(self, product_id: int) -> Optional[LineItem]:
        return self._lines.get(product_id)

    def pending_input(self, product_id: int) -> Optional[str]:
        """Uncommitted text for a free-entry line, if the cashier is mid-typing."""
        return self._pending_input.get(product_id)

    def subtotal(self) -> Decimal:
        return sum((line.total for line in self._lines.values()), Decimal('0'))

    def line_count(self) -> int:
        return len(self._lines)

    def unit_count(self) -> int:
        return sum(line.quantity for line in self._lines.values())

    def is_empty(self) -> bool:
        return not self._lines

    def __iter__(self) -> Iterator[LineItem]:
        return iter(self.lines)

    def __len__(self):
        return len(self._lines)

    def _require_line(self, product_id: int) -> LineItem:
        line = self._lines.get(product_id)
        if not line:
            raise NotFoundError('Product is not in the cart.')
        return line
