"""Catalog Service - in-memory snapshot of products, customers and discounts."""
import logging
from typing import Callable, List, Optional, Type, TypeVar

from flask import Flask
from pydantic import BaseModel, ValidationError as SchemaError

from order_entry.exceptions import BackendError, CatalogUnavailableError, NotFoundError
from order_entry.models import Customer, Discount, PaymentStatus, Product
from order_entry.services.backend_client import BackendClient
from order_entry.services.cache_service import CacheService, get_cache

logger = logging.getLogger(__name__)

ModelT = TypeVar('ModelT', bound=BaseModel)

CATALOG_MODULE = 'catalog'


class CatalogCache:
    """
    Snapshot of the backend catalog used by the order form.

    Product and customer loads that fail keep the previous snapshot and raise
    CatalogUnavailableError for the UI to surface. Discount loads that fail
    degrade to an empty list: discounts are optional for an order.
    """

    def __init__(
        self,
        backend: BackendClient,
        cache: Optional[CacheService] = None,
        scope: str = 'default',
        ttl: Optional[int] = None
    ):
        self.backend = backend
        self.cache = cache
        self.scope = scope
        self.ttl = ttl
        self.products: List[Product] = []
        self.customers: List[Customer] = []
        self.discounts: List[Discount] = []
        self.discounts_status: Optional[PaymentStatus] = None

    def _load(self, key: str, loader: Callable[[], List[ModelT]], model: Type[ModelT]) -> List[ModelT]:
        """Load through the shared cache when one is configured."""
        if self.cache is None or not self.cache.is_available():
            return loader()
        rows = self.cache.memoize(
            self.scope, CATALOG_MODULE, key,
            lambda: [item.model_dump() for item in loader()],
            self.ttl
        )
        return [model.model_validate(row) for row in rows]

    def refresh_products(self) -> List[Product]:
        try:
            products = self._load('products', self.backend.list_products, Product)
        except (BackendError, SchemaError) as e:
            message = getattr(e, 'message', str(e))
            logger.error(f"[CATALOG] Product refresh failed, keeping {len(self.products)} cached: {message}")
            raise CatalogUnavailableError(f"Failed to load products: {message}") from e
        self.products = products
        return products

    def refresh_customers(self) -> List[Customer]:
        try:
            customers = self._load('customers', self.backend.list_customers, Customer)
        except (BackendError, SchemaError) as e:
            message = getattr(e, 'message', str(e))
            logger.error(f"[CATALOG] Customer refresh failed, keeping {len(self.customers)} cached: {message}")
            raise CatalogUnavailableError(f"Failed to load customers: {message}") from e
        self.customers = customers
        return customers

    def refresh_discounts(self, payment_status: PaymentStatus = PaymentStatus.COMPLETE) -> List[Discount]:
        """Reload active discounts for a payment status; failures yield an empty list."""
        status = PaymentStatus(payment_status)
        try:
            discounts = self._load(
                f'discounts:{status.value}',
                lambda: self.backend.list_discounts(active=True, payment_status=status),
                Discount
            )
        except (BackendError, SchemaError) as e:
            logger.warning(f"[CATALOG] Discounts unavailable ({e}); continuing without discounts")
            discounts = []
        self.discounts = discounts
        self.discounts_status = status
        return discounts

    def refresh(self, payment_status: PaymentStatus = PaymentStatus.COMPLETE) -> None:
        """Reload everything; discounts first so a product failure still leaves them fresh."""
        self.refresh_discounts(payment_status)
        self.refresh_customers()
        self.refresh_products()

    def invalidate(self) -> None:
        """Drop every shared catalog entry for this scope."""
        if self.cache is not None:
            self.cache.invalidate_module(self.scope, CATALOG_MODULE)

    def invalidate_products(self) -> None:
        """Stock changed on the backend (an order was placed)."""
        if self.cache is not None:
            self.cache.delete(self.scope, CATALOG_MODULE, 'products')

    # -----------------------------------------------------
    # Lookups
    # -----------------------------------------------------

    def get_product(self, product_id: int) -> Product:
        product = next((p for p in self.products if p.id == product_id), None)
        if not product:
            raise NotFoundError('Product not found.')
        return product

    def get_customer(self, customer_id: int) -> Customer:
        customer = next((c for c in self.customers if c.id == customer_id), None)
        if not customer:
            raise NotFoundError('Customer not found.')
        return customer

    def find_by_barcode(self, barcode: str) -> Product:
        code = (barcode or '').strip()
        if not code:
            raise NotFoundError('Barcode is empty.')
        product = next((p for p in self.products if p.barcode == code), None)
        if not product:
            raise NotFoundError(f'No product found with barcode: {code}')
        return product

    def search_products(self, term: str = '', limit: Optional[int] = None) -> List[Product]:
        """Case-insensitive match on name, SKU or barcode."""
        needle = (term or '').strip().lower()[:100]
        if not needle:
            results = list(self.products)
        else:
            results = [
                p for p in self.products
                if needle in p.name.lower()
                or needle in (p.sku or '').lower()
                or needle in (p.barcode or '').lower()
            ]
        return results[:limit] if limit else results

    def search_customers(self, term: str = '', limit: Optional[int] = None) -> List[Customer]:
        """Case-insensitive match on full name, email or phone."""
        needle = (term or '').strip().lower()[:100]
        if not needle:
            results = list(self.customers)
        else:
            results = [
                c for c in self.customers
                if needle in c.full_name.lower()
                or needle in (c.email or '').lower()
                or needle in (c.phone or '').lower()
            ]
        return results[:limit] if limit else results


def init_catalog(app: Flask) -> CatalogCache:
    """Attach the shared catalog snapshot; needs init_backend and init_cache first."""
    catalog = CatalogCache(
        backend=app.extensions['backend'],
        cache=get_cache(),
        scope=app.config.get('CATALOG_SCOPE', 'default'),
        ttl=app.config.get('CACHE_CATALOG_TTL', 60),
    )
    app.extensions['catalog'] = catalog
    return catalog
