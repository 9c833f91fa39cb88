"""
Base exception classes for the marketplace ordering backend.
"""

from enums.error_category import ErrorCategory


class MarketplaceException(Exception):
    """
    Base exception for all marketplace errors.

    All custom exceptions in the backend inherit from this class.
    This allows catching all domain exceptions with a single handler.

    Attributes:
        message: Human-readable error message
        details: Optional dict with additional context (entity IDs, states, etc.)
        category: Tells a client how to react (fix input, wait, retry payment, ...)
    """

    category: ErrorCategory = ErrorCategory.INVALID_INPUT

    def __init__(self, message: str, details: dict | None = None):
        """
        Initialize base exception.

        Args:
            message: Human-readable error message
            details: Optional dict with additional context
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return the error message."""
        return self.message

    def __repr__(self) -> str:
        """Return detailed representation with context."""
        if self.details:
            details_str = ', '.join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.__class__.__name__}('{self.message}', {details_str})"
        return f"{self.__class__.__name__}('{self.message}')"

    def to_dict(self) -> dict:
        return {
            'error': self.__class__.__name__,
            'category': self.category.value,
            'message': self.message,
            'details': self.details,
        }


class ValidationException(MarketplaceException):
    """Raised when caller input is malformed. Nothing was changed."""

    def __init__(self, field: str, reason: str):
        super().__init__(
            f"Invalid {field}: {reason}",
            details={'field': field, 'reason': reason}
        )
        self.field = field
        self.reason = reason


class InvalidContactException(ValidationException):
    """Raised when checkout contact or delivery data is invalid."""
    pass


class UnauthorizedException(MarketplaceException):
    """Raised when the caller's identity or role may not act on the target."""

    category = ErrorCategory.FORBIDDEN

    def __init__(self, caller_id: str, action: str):
        super().__init__(
            f"Caller {caller_id} is not allowed to {action}",
            details={'caller_id': caller_id, 'action': action}
        )
        self.caller_id = caller_id
        self.action = action
