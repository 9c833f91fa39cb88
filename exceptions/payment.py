"""
Payment-related exceptions.
"""

from enums.error_category import ErrorCategory
from .base import MarketplaceException


class PaymentException(MarketplaceException):
    """Base exception for payment-related errors."""
    pass


class GatewayInitiationFailedException(PaymentException):
    """
    Raised when the gateway could not start a transaction.

    The orders of the checkout session stay in their pending state with stock
    reserved; payment can be resumed later.
    """

    category = ErrorCategory.RETRY_LATER

    def __init__(self, checkout_session_id: str, reason: str, order_ids: list[int] | None = None):
        super().__init__(
            f"Payment initiation failed for checkout session {checkout_session_id}: {reason}",
            details={'checkout_session_id': checkout_session_id, 'reason': reason, 'order_ids': order_ids or []}
        )
        self.checkout_session_id = checkout_session_id
        self.reason = reason
        self.order_ids = order_ids or []


class PaymentFailedException(PaymentException):
    """Raised when the gateway reports the transaction as not successful."""

    category = ErrorCategory.PAYMENT_FAILED

    def __init__(self, reference: str, gateway_status: str | None = None):
        super().__init__(
            f"Payment verification failed for {reference}",
            details={'reference': reference, 'gateway_status': gateway_status}
        )
        self.reference = reference
        self.gateway_status = gateway_status


class PaymentReferenceNotFoundException(PaymentException):
    category = ErrorCategory.NOT_FOUND

    def __init__(self, reference: str):
        super().__init__(
            f"Transaction reference {reference} not found",
            details={'reference': reference}
        )
        self.reference = reference


class NothingToPayException(PaymentException):
    """Raised when payment is resumed for a session with no payable orders left."""

    def __init__(self, checkout_session_id: str):
        super().__init__(
            f"No orders awaiting payment in checkout session {checkout_session_id}",
            details={'checkout_session_id': checkout_session_id}
        )
        self.checkout_session_id = checkout_session_id
