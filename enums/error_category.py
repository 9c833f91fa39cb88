from enum import Enum


class ErrorCategory(str, Enum):
    INVALID_INPUT = "invalid_input"                   # Retry with different input
    RETRY_LATER = "retry_later"                       # Transient, same request may succeed later
    AWAITING_VERIFICATION = "awaiting_verification"   # Wait for prescription review
    PAYMENT_FAILED = "payment_failed"                 # Payment did not go through, try again
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
