import pytest
from datetime import datetime, timezone
from decimal import Decimal

from config import TestConfig
from order_entry import create_app
from order_entry.exceptions import BackendError, DuplicateCustomerError
from order_entry.models import Customer, Discount, OrderConfirmation, Product
from order_entry.services.catalog_service import CatalogCache
from order_entry.services.draft_service import OrderDraft

FIXED_NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


class FakeBackend:
    """In-memory stand-in for BackendClient; records every write."""

    def __init__(self, products=None, customers=None, discounts=None):
        self.products = list(products or [])
        self.customers = list(customers or [])
        self.discounts = list(discounts or [])
        self.created_customers = []
        self.created_orders = []
        self.discount_requests = []
        self.customer_error = None
        self.order_error = None
        self.fail_catalog = False
        self._next_customer_id = 500
        self._next_order_id = 9000

    def list_products(self):
        if self.fail_catalog:
            raise BackendError('Failed to load products', status=503)
        return list(self.products)

    def list_customers(self):
        if self.fail_catalog:
            raise BackendError('Failed to load customers', status=503)
        return list(self.customers)

    def list_discounts(self, active=True, payment_status='complete'):
        self.discount_requests.append(getattr(payment_status, 'value', payment_status))
        if self.fail_catalog:
            raise BackendError('Failed to load discounts', status=503)
        return list(self.discounts)

    def create_customer(self, fields):
        if self.customer_error:
            raise self.customer_error
        self._next_customer_id += 1
        customer = Customer.model_validate({**fields, 'id': self._next_customer_id})
        self.created_customers.append(fields)
        return customer

    def create_order(self, payload):
        if self.order_error:
            raise self.order_error
        self._next_order_id += 1
        self.created_orders.append(payload)
        return OrderConfirmation(id=self._next_order_id, order_number=f'ORD-{self._next_order_id}', status='pending')


# -----------------------------------------------------
# Catalog objects
# -----------------------------------------------------

@pytest.fixture
def lotion():
    """General product with 5 in the shop and 20 across locations."""
    return Product(
        id=1, name='Body Lotion', sku='LOT-001', barcode='6001234500017',
        price=Decimal('1000'), product_type='general', stock_quantity=5, global_quantity=20
    )


@pytest.fixture
def perfume():
    return Product(
        id=2, name='Oud Perfume', sku='PER-002', barcode='6001234500024',
        price=Decimal('100'), product_type='perfume', stock_quantity=80, global_quantity=200
    )


@pytest.fixture
def candle():
    return Product(
        id=3, name='Scented Candle', sku='CAN-003', barcode='6001234500031',
        price=Decimal('5000'), product_type='home', stock_quantity=10
    )


@pytest.fixture
def sold_out():
    return Product(id=4, name='Rose Mist', sku='MIS-004', price=Decimal('3000'), stock_quantity=0)


@pytest.fixture
def regular_customer():
    return Customer(id=10, first_name='Alice', last_name='Uwase', email='alice@example.com', phone='0788000001')


@pytest.fixture
def walk_in_customer():
    return Customer(
        id=11, first_name='Walk-in', last_name='Customer',
        email='walkin1718452800000abc123@urutirose.com', phone='WALKIN-1718452800000-abc123'
    )


@pytest.fixture
def percentage_discount():
    return Discount(id=100, name='Loyalty 10%', type='percentage', value=Decimal('10'))


@pytest.fixture
def fixed_discount():
    return Discount(
        id=101, name='Big Basket 500', type='fixed_amount', value=Decimal('500'),
        min_purchase_amount=Decimal('3000'), allow_partial_payment=True
    )


@pytest.fixture
def bottle_return_two():
    return Discount(id=102, name='Return 2 Bottles', type='bottle_return', bottle_return_count=2)


@pytest.fixture
def bottle_return_one():
    return Discount(id=103, name='Return 1 Bottle', type='bottle_return', bottle_return_count=1)


@pytest.fixture
def auto_discount():
    return Discount(id=104, name='Member 5%', type='percentage', value=Decimal('5'), auto_apply=True)


@pytest.fixture
def products(lotion, perfume, candle, sold_out):
    return [lotion, perfume, candle, sold_out]


@pytest.fixture
def customers(regular_customer, walk_in_customer):
    return [regular_customer, walk_in_customer]


@pytest.fixture
def discounts(percentage_discount, fixed_discount, bottle_return_two, bottle_return_one):
    return [percentage_discount, fixed_discount, bottle_return_two, bottle_return_one]


# -----------------------------------------------------
# Services
# -----------------------------------------------------

@pytest.fixture
def backend(products, customers, discounts):
    return FakeBackend(products, customers, discounts)


@pytest.fixture
def catalog(backend):
    catalog = CatalogCache(backend)
    catalog.refresh_products()
    catalog.refresh_customers()
    catalog.refresh_discounts()
    return catalog


@pytest.fixture
def draft(catalog):
    """Empty draft over the fake catalog with a frozen clock."""
    draft = OrderDraft(catalog=catalog, clock=lambda: FIXED_NOW)
    draft.load_discounts()
    return draft


# -----------------------------------------------------
# Flask app
# -----------------------------------------------------

@pytest.fixture
def receipts():
    """Receipts handed to the app's receipt hook."""
    return []


@pytest.fixture
def app(backend, receipts):
    """Create application instance for testing."""
    app = create_app(TestConfig, backend=backend, receipt_hook=receipts.append)
    return app


@pytest.fixture
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture
def duplicate_error():
    return DuplicateCustomerError('Customer with this email already exists', status=409)
