"""
Cart-related exceptions.
"""

from enums.error_category import ErrorCategory
from .base import MarketplaceException


class CartException(MarketplaceException):
    """Base exception for cart-related errors."""
    pass


class EmptyCartException(CartException):
    """Raised when trying to checkout with empty or missing cart."""

    def __init__(self, guest_id: str):
        super().__init__(
            f"Cart is empty for guest {guest_id}",
            details={'guest_id': guest_id}
        )
        self.guest_id = guest_id


class CartItemNotFoundException(CartException):
    """Raised when cart line is not in the guest's cart."""

    category = ErrorCategory.NOT_FOUND

    def __init__(self, line_id: int):
        super().__init__(
            f"Cart item {line_id} not found",
            details={'line_id': line_id}
        )
        self.line_id = line_id


class OfferingNotFoundException(CartException):
    """Raised when a seller does not offer the catalog item."""

    category = ErrorCategory.NOT_FOUND

    def __init__(self, seller_id: int, item_id: int):
        super().__init__(
            f"Seller {seller_id} does not offer item {item_id}",
            details={'seller_id': seller_id, 'item_id': item_id}
        )
        self.seller_id = seller_id
        self.item_id = item_id
