"""
Custom exceptions for the marketplace ordering backend.

This module provides a hierarchy of custom exceptions for consistent error handling
throughout the application.

Exception Hierarchy:
--------------------
MarketplaceException (base)
├── ValidationException
│   └── InvalidContactException
├── UnauthorizedException
├── CartException
│   ├── EmptyCartException
│   ├── CartItemNotFoundException
│   └── OfferingNotFoundException
├── OrderException
│   ├── OrderNotFoundException
│   ├── InsufficientStockException
│   ├── InvalidOrderStateException
│   └── OrderOwnershipException
├── PrescriptionException
│   ├── PrescriptionNotFoundException
│   ├── PrescriptionRequiredException
│   ├── PrescriptionCoverageIncompleteException
│   ├── PrescriptionNotVerifiedException
│   └── PrescriptionAlreadyReviewedException
└── PaymentException
    ├── GatewayInitiationFailedException
    ├── PaymentFailedException
    ├── PaymentReferenceNotFoundException
    └── NothingToPayException

Every exception carries a `category` (see enums.error_category.ErrorCategory)
so clients can tell "fix your input" from "wait for review" from "payment failed".

Usage:
------
Services raise specific exceptions:
    raise OrderNotFoundException(order_id=123)

The HTTP layer converts them with utils.error_handler.to_http_exception().
"""

from .base import MarketplaceException, ValidationException, InvalidContactException, UnauthorizedException
from .cart import CartException, EmptyCartException, CartItemNotFoundException, OfferingNotFoundException
from .order import (
    OrderException,
    OrderNotFoundException,
    InsufficientStockException,
    InvalidOrderStateException,
    OrderOwnershipException
)
from .prescription import (
    PrescriptionException,
    PrescriptionNotFoundException,
    PrescriptionRequiredException,
    PrescriptionCoverageIncompleteException,
    PrescriptionNotVerifiedException,
    PrescriptionAlreadyReviewedException
)
from .payment import (
    PaymentException,
    GatewayInitiationFailedException,
    PaymentFailedException,
    PaymentReferenceNotFoundException,
    NothingToPayException
)

__all__ = [
    # Base
    'MarketplaceException',
    'ValidationException',
    'InvalidContactException',
    'UnauthorizedException',

    # Cart
    'CartException',
    'EmptyCartException',
    'CartItemNotFoundException',
    'OfferingNotFoundException',

    # Order
    'OrderException',
    'OrderNotFoundException',
    'InsufficientStockException',
    'InvalidOrderStateException',
    'OrderOwnershipException',

    # Prescription
    'PrescriptionException',
    'PrescriptionNotFoundException',
    'PrescriptionRequiredException',
    'PrescriptionCoverageIncompleteException',
    'PrescriptionNotVerifiedException',
    'PrescriptionAlreadyReviewedException',

    # Payment
    'PaymentException',
    'GatewayInitiationFailedException',
    'PaymentFailedException',
    'PaymentReferenceNotFoundException',
    'NothingToPayException',
]
