"""
Prescription-related exceptions.
"""

from enums.error_category import ErrorCategory
from .base import MarketplaceException


class PrescriptionException(MarketplaceException):
    """Base exception for prescription-related errors."""
    pass


class PrescriptionNotFoundException(PrescriptionException):
    category = ErrorCategory.NOT_FOUND

    def __init__(self, prescription_id: int):
        super().__init__(
            f"Prescription {prescription_id} not found",
            details={'prescription_id': prescription_id}
        )
        self.prescription_id = prescription_id


class PrescriptionRequiredException(PrescriptionException):
    """Raised when prescription items are checked out with no verified document and no upload."""

    def __init__(self, item_ids: list[int]):
        super().__init__(
            f"A prescription is required for items {item_ids}",
            details={'item_ids': item_ids}
        )
        self.item_ids = item_ids


class PrescriptionCoverageIncompleteException(PrescriptionException):
    """Raised when the verified prescription covers only some required items and nothing new was uploaded."""

    def __init__(self, prescription_id: int, uncovered_item_ids: list[int]):
        super().__init__(
            f"Prescription {prescription_id} does not cover items {uncovered_item_ids}",
            details={'prescription_id': prescription_id, 'uncovered_item_ids': uncovered_item_ids}
        )
        self.prescription_id = prescription_id
        self.uncovered_item_ids = uncovered_item_ids


class PrescriptionNotVerifiedException(PrescriptionException):
    """Raised when an operation needs a verified prescription but review is still open (or failed)."""

    category = ErrorCategory.AWAITING_VERIFICATION

    def __init__(self, prescription_id: int, status: str):
        super().__init__(
            f"Prescription {prescription_id} is {status}, not verified",
            details={'prescription_id': prescription_id, 'status': status}
        )
        self.prescription_id = prescription_id
        self.status = status


class PrescriptionAlreadyReviewedException(PrescriptionException):
    def __init__(self, prescription_id: int, status: str):
        super().__init__(
            f"Prescription {prescription_id} is already processed ({status})",
            details={'prescription_id': prescription_id, 'status': status}
        )
        self.prescription_id = prescription_id
        self.status = status
