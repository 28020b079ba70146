"""
Error kinds raised inside the order placement transaction.

They never leave the transaction: place_order() turns each of them into an
OrderResult with success=False and the error's message.
"""
from typing import Optional


class OrderError(Exception):
    message = "Order failed"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.message)
        self.message = message or self.message


class Unauthenticated(OrderError):
    message = "Authentication failed - no user ID found"


class InvalidRequest(OrderError):
    message = "Invalid data"


class ProductNotFound(OrderError):
    def __init__(self, product_id: str):
        super().__init__(f"Product not found: {product_id}")
        self.product_id = product_id


class UserNotFound(OrderError):
    message = "User not found"


class InsufficientStock(OrderError):
    def __init__(self, product_name: str, available: Optional[int] = None, requested: Optional[int] = None):
        detail = f"Insufficient stock for {product_name}"
        if available is not None and requested is not None:
            detail += f" (available: {available}, requested: {requested})"
        super().__init__(detail)
        self.product_name = product_name


class PersistenceError(OrderError):
    """Wraps a database driver failure; the message is the driver's own."""
