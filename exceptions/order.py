"""
Order-related exceptions.
"""

from enums.error_category import ErrorCategory
from .base import MarketplaceException


class OrderException(MarketplaceException):
    """Base exception for order-related errors."""
    pass


class OrderNotFoundException(OrderException):
    """Raised when order is not found in database."""

    category = ErrorCategory.NOT_FOUND

    def __init__(self, order_id: int | None = None, tracking_code: str | None = None):
        if tracking_code is not None:
            message = f"No orders found for tracking code {tracking_code}"
        else:
            message = f"Order {order_id} not found"
        super().__init__(
            message,
            details={'order_id': order_id, 'tracking_code': tracking_code}
        )
        self.order_id = order_id
        self.tracking_code = tracking_code


class InsufficientStockException(OrderException):
    """Raised when trying to reserve items with insufficient stock."""

    def __init__(self, item_id: int, requested: int, available: int, seller_id: int | None = None):
        super().__init__(
            f"Insufficient stock for item {item_id}: requested {requested}, available {available}",
            details={'item_id': item_id, 'seller_id': seller_id, 'requested': requested, 'available': available}
        )
        self.item_id = item_id
        self.seller_id = seller_id
        self.requested = requested
        self.available = available


class InvalidOrderStateException(OrderException):
    """Raised when order is in invalid state for requested operation."""

    def __init__(self, order_id: int | None, current_state: str, required_state: str):
        super().__init__(
            f"Order {order_id} is in state '{current_state}', required '{required_state}'",
            details={'order_id': order_id, 'current_state': current_state, 'required_state': required_state}
        )
        self.order_id = order_id
        self.current_state = current_state
        self.required_state = required_state


class OrderOwnershipException(OrderException):
    """Raised when a guest attempts to access/modify an order they don't own."""

    category = ErrorCategory.FORBIDDEN

    def __init__(self, order_id: int, guest_id: str):
        super().__init__(
            f"Guest {guest_id} does not have permission to access order {order_id}",
            details={'order_id': order_id, 'guest_id': guest_id}
        )
        self.order_id = order_id
        self.guest_id = guest_id
