"""
Storefront - Custom Exceptions
================================
Business-level exceptions that can be caught and converted to HTTP responses.
Every class carries a stable `code` and the HTTP status the API maps it to.
"""

from fastapi import status


class StoreError(Exception):
    """Base exception for all business logic errors."""
    code = "error"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str = "Something went wrong."):
        self.message = message
        super().__init__(self.message)


class AuthenticationError(StoreError):
    """Raised when no valid identity accompanies the request."""
    code = "unauthenticated"
    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, message: str = "Not logged in."):
        super().__init__(message)


class ForbiddenError(StoreError):
    """Raised when the actor lacks ownership or role."""
    code = "forbidden"
    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, message: str = "Access denied."):
        super().__init__(message)


class NotFoundError(StoreError):
    """Raised when a requested resource doesn't exist."""
    code = "not_found"
    status_code = status.HTTP_404_NOT_FOUND


class InvalidArgumentError(StoreError):
    """Raised for malformed or missing input."""
    code = "invalid_argument"
    status_code = status.HTTP_400_BAD_REQUEST


class InsufficientStockError(StoreError):
    """Raised when product stock is not enough."""
    code = "insufficient_stock"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, product_name: str = "", available: int = None):
        msg = f"Not enough stock for product: {product_name}" if product_name else "Not enough stock."
        if available is not None:
            msg += f". Available: {available}"
        self.product_name = product_name
        self.available = available
        super().__init__(msg)


class AlreadyPaidError(StoreError):
    code = "already_paid"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self):
        super().__init__("Order is already paid.")


class AlreadyDeliveredError(StoreError):
    code = "already_delivered"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self):
        super().__init__("Order is already delivered.")


class ConflictError(StoreError):
    """Raised when a concurrent update won the race (e.g. stock taken by another order)."""
    code = "conflict"
    status_code = status.HTTP_409_CONFLICT
