"""REST client for the POS backend (products, customers, discounts, orders)."""
import logging
from typing import Any, Dict, List, Optional

import requests
from flask import Flask
from pydantic import ValidationError as SchemaError

from order_entry.exceptions import BackendError, DuplicateCustomerError
from order_entry.models import Customer, Discount, OrderConfirmation, OrderPayload, PaymentStatus, Product

logger = logging.getLogger(__name__)


def _error_message(response: Optional[requests.Response]) -> Optional[str]:
    """Extract the backend's own error text ({"error": ...} or {"message": ...})."""
    if response is None:
        return None
    try:
        data = response.json()
    except ValueError:
        return None
    if isinstance(data, dict):
        return data.get('error') or data.get('message')
    return None


def _unwrap_list(data: Any, key: str) -> List[Dict[str, Any]]:
    """List endpoints answer either {"<key>": [...]} or a bare list."""
    if isinstance(data, dict) and isinstance(data.get(key), list):
        return data[key]
    if isinstance(data, list):
        return data
    logger.warning(f"[BACKEND] Unexpected {key} response format: {type(data).__name__}")
    return []


class BackendClient:
    """Client for the order backend REST API."""

    def __init__(
        self,
        base_url: str,
        access_token: Optional[str] = None,
        timeout: float = 10,
        product_limit: int = 1000,
        discount_limit: int = 50
    ):
        """
        Initialize backend client.

        Args:
            base_url: API root, e.g. http://localhost:5000/api
            access_token: Bearer token sent with every request (optional)
            timeout: Seconds before a request is abandoned
            product_limit: Page size used when loading the product catalog
            discount_limit: Page size used when loading discounts
        """
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.product_limit = product_limit
        self.discount_limit = discount_limit
        self.headers = {'Content-Type': 'application/json'}
        if access_token:
            self.headers['Authorization'] = f'Bearer {access_token}'

    def _request(self, method: str, path: str, fallback: str, **kwargs) -> Any:
        """
        Perform a request and return the decoded JSON body.

        Raises:
            BackendError: carrying the backend's message when it sent one,
                `fallback` otherwise.
        """
        url = f"{self.base_url}{path}"
        try:
            response = requests.request(method, url, headers=self.headers, timeout=self.timeout, **kwargs)
            response.raise_for_status()
            return response.json() if response.content else {}
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            message = _error_message(e.response)
            logger.error(f"[BACKEND] {method} {path} failed ({status}): {message or e}")
            raise BackendError(message or fallback, status=status) from e
        except requests.RequestException as e:
            logger.error(f"[BACKEND] {method} {path} unreachable: {e}")
            raise BackendError(fallback) from e
        except ValueError as e:
            logger.error(f"[BACKEND] {method} {path} returned invalid JSON: {e}")
            raise BackendError(fallback) from e

    def list_products(self) -> List[Product]:
        """Fetch the full product catalog (first page sized to hold everything)."""
        data = self._request(
            'GET', '/products', 'Failed to load products',
            params={'page': 1, 'limit': self.product_limit}
        )
        products = [Product.model_validate(item) for item in _unwrap_list(data, 'products')]
        logger.info(f"[BACKEND] Loaded {len(products)} products")
        return products

    def list_customers(self) -> List[Customer]:
        data = self._request('GET', '/customers', 'Failed to load customers')
        customers = [Customer.model_validate(item) for item in _unwrap_list(data, 'customers')]
        logger.info(f"[BACKEND] Loaded {len(customers)} customers")
        return customers

    def list_discounts(self, active: bool = True, payment_status: PaymentStatus = PaymentStatus.COMPLETE) -> List[Discount]:
        """Fetch discounts; some are scoped to a payment status on the backend."""
        data = self._request(
            'GET', '/discounts', 'Failed to load discounts',
            params={
                'is_active': 'true' if active else 'false',
                'limit': self.discount_limit,
                'payment_status': PaymentStatus(payment_status).value,
            }
        )
        return [Discount.model_validate(item) for item in _unwrap_list(data, 'discounts')]

    def create_customer(self, fields: Dict[str, Any]) -> Customer:
        """
        Create a customer record.

        Raises:
            DuplicateCustomerError: backend reports the identity already exists
                (message passed through unchanged)
            BackendError: any other failure
        """
        try:
            data = self._request('POST', '/customers', 'Failed to create customer', json=fields)
        except BackendError as e:
            if e.status == 409 or 'already exists' in e.message:
                raise DuplicateCustomerError(e.message, status=e.status) from e
            raise
        record = data.get('customer', data) if isinstance(data, dict) else data
        try:
            customer = Customer.model_validate(record)
        except SchemaError as e:
            logger.error(f"[BACKEND] Unexpected customer response: {e}")
            raise BackendError('Failed to create customer') from e
        if customer.id is None:
            logger.error("[BACKEND] Customer response carries no id")
            raise BackendError('Failed to create customer')
        logger.info(f"[BACKEND] Customer created: {customer.id}")
        return customer

    def create_order(self, payload: OrderPayload) -> OrderConfirmation:
        data = self._request(
            'POST', '/orders', 'Failed to save order to database',
            json=payload.model_dump(mode='json')
        )
        record = data.get('order', data) if isinstance(data, dict) else data
        try:
            confirmation = OrderConfirmation.model_validate(record)
        except SchemaError as e:
            logger.error(f"[BACKEND] Unexpected order response: {e}")
            raise BackendError('Failed to save order to database') from e
        logger.info(f"[BACKEND] Order created: {confirmation.id}")
        return confirmation


def init_backend(app: Flask, client: Optional[BackendClient] = None) -> BackendClient:
    """Attach a backend client to the app (an injected one wins over config)."""
    backend = client if client is not None else BackendClient(
        base_url=app.config.get('BACKEND_API_URL', 'http://localhost:5000/api'),
        access_token=app.config.get('BACKEND_API_TOKEN'),
        timeout=app.config.get('BACKEND_TIMEOUT', 10),
        product_limit=app.config.get('PRODUCT_FETCH_LIMIT', 1000),
        discount_limit=app.config.get('DISCOUNT_FETCH_LIMIT', 50),
    )
    app.extensions['backend'] = backend
    return backend
