from enum import Enum


class ReconciliationOutcome(str, Enum):
    COMPLETED = "completed"                        # Every matching order is confirmed and paid
    PENDING_PRESCRIPTION = "pending_prescription"  # Paid, but some orders wait for prescription review


class CheckoutOutcome(str, Enum):
    PAYMENT_REQUIRED = "payment_required"                # Redirect to the gateway authorization URL
    AWAITING_VERIFICATION = "awaiting_verification"      # Everything is prescription-gated, nothing to charge
