"""Custom exceptions for the order entry engine."""


def _fmt_qty(value):
    return f"{int(value)}" if value % 1 == 0 else f"{value:.2f}".rstrip('0').rstrip('.')


class PosError(Exception):
    """Base exception for all application errors."""
    def __init__(self, message="An internal error occurred", status_code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['status'] = 'error'
        return rv


class BusinessLogicError(PosError):
    """Exception raised for business logic violations."""
    def __init__(self, message, status_code=400, payload=None):
        super().__init__(message, status_code, payload)


class NotFoundError(PosError):
    """Exception raised when a resource is not found."""
    def __init__(self, message="Resource not found", payload=None):
        super().__init__(message, 404, payload)


class InsufficientStockError(BusinessLogicError):
    """Raised when adding one more unit would exceed the stock captured for a line."""
    def __init__(self, product_name, available):
        self.product_name = product_name
        self.available = available
        message = f"Only {_fmt_qty(available)} in stock for {product_name}"
        super().__init__(message, status_code=409)


class OutOfStockError(BusinessLogicError):
    """Raised when a product with no available stock is added to the cart."""
    def __init__(self, product_name):
        self.product_name = product_name
        super().__init__(f"{product_name} is out of stock", status_code=409)


class ValidationError(BusinessLogicError):
    """Raised when a draft fails checkout validation; carries field-level errors."""
    def __init__(self, errors, message='Please fix validation errors before completing the sale'):
        self.errors = dict(errors)
        super().__init__(message, status_code=422, payload={'errors': self.errors})


class DiscountConflictError(BusinessLogicError):
    """Raised when a selection would break the one-bottle-return rule."""
    def __init__(self, message=None):
        super().__init__(
            message or ('Only one bottle return discount can be applied at a time. '
                        'Please remove the existing bottle return discount first.'),
            status_code=409
        )


class InvalidTransitionError(BusinessLogicError):
    """Raised when the order draft is asked to move to a state it cannot reach."""
    def __init__(self, current, target):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move order from {current} to {target}", status_code=409)


class SubmissionInProgressError(BusinessLogicError):
    """Raised on a re-entrant submit while the draft is already submitting."""
    def __init__(self):
        super().__init__('This order is already being submitted', status_code=409)


class BackendError(PosError):
    """Raised when the backend REST API rejects or fails a request."""
    def __init__(self, message, status=None, payload=None):
        self.status = status
        super().__init__(message, 502, payload)


class DuplicateCustomerError(BackendError):
    """Raised when the backend refuses a customer because the identity already exists."""
    def __init__(self, message, status=409, payload=None):
        super().__init__(message, status, payload)
        self.status_code = 409


class CatalogUnavailableError(PosError):
    """Raised when products or customers cannot be loaded from the backend."""
    def __init__(self, message, payload=None):
        super().__init__(message, 503, payload)
