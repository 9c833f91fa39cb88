"""
Error Handler Utility for the HTTP surface

Provides centralized error handling for API routes with:
- Automatic exception to HTTP status mapping (by error category)
- A consistent JSON error body
- Logging for debugging

Usage in routes:
    from utils.error_handler import to_http_exception

    try:
        result = await SomeService.some_method(...)
    except MarketplaceException as e:
        raise to_http_exception(e)
"""

import functools
import logging

from fastapi import HTTPException

from enums.error_category import ErrorCategory
from exceptions import (
    MarketplaceException,
    EmptyCartException,
    InsufficientStockException,
    InvalidOrderStateException,
    PrescriptionAlreadyReviewedException,
)

CATEGORY_STATUS_CODES: dict[ErrorCategory, int] = {
    ErrorCategory.INVALID_INPUT: 400,
    ErrorCategory.NOT_FOUND: 404,
    ErrorCategory.FORBIDDEN: 403,
    ErrorCategory.AWAITING_VERIFICATION: 409,
    ErrorCategory.PAYMENT_FAILED: 402,
    ErrorCategory.RETRY_LATER: 502,
}

# State conflicts are reported as 409 even though the caller can fix them
CONFLICT_EXCEPTIONS = (
    EmptyCartException,
    InsufficientStockException,
    InvalidOrderStateException,
    PrescriptionAlreadyReviewedException,
)


def get_status_code(exception: MarketplaceException) -> int:
    if isinstance(exception, CONFLICT_EXCEPTIONS):
        return 409
    return CATEGORY_STATUS_CODES.get(exception.category, 400)


def to_http_exception(exception: MarketplaceException) -> HTTPException:
    """
    Convert service exception to an HTTPException with a structured body.

    Example:
        try:
            order = await CheckoutService.resume_checkout(...)
        except OrderNotFoundException as e:
            raise to_http_exception(e)  # 404 {"error": "OrderNotFoundException", ...}
    """
    logging.warning(f"Service error handled: {type(exception).__name__} - {str(exception)}")
    return HTTPException(status_code=get_status_code(exception), detail=exception.to_dict())


def handle_unexpected_error(exception: Exception) -> HTTPException:
    """
    Handle unexpected exceptions (non-MarketplaceException).

    Logs the full exception and hides internals from the client.
    """
    logging.error(f"Unexpected error: {type(exception).__name__} - {str(exception)}", exc_info=True)
    return HTTPException(status_code=500, detail={
        'error': 'InternalError',
        'category': ErrorCategory.RETRY_LATER.value,
        'message': 'Unexpected error, please try again later',
        'details': {},
    })


def safe_service_call(route_func):
    """
    Decorator for routes to automatically convert service exceptions.

    Usage:
        @router.post("/cart/items")
        @safe_service_call
        async def add_item(...):
            return await CartService.add_item(...)
    """
    @functools.wraps(route_func)
    async def wrapper(*args, **kwargs):
        try:
            return await route_func(*args, **kwargs)
        except HTTPException:
            raise
        except MarketplaceException as e:
            raise to_http_exception(e)
        except Exception as e:
            raise handle_unexpected_error(e)

    return wrapper
