from enum import Enum


class PrescriptionStatus(str, Enum):
    """
    Review status of an uploaded prescription document.

    PENDING: Uploaded, waiting for an operator to review it
    VERIFIED: Accepted, covered items may be purchased
    REJECTED: Declined, the guest has to upload a replacement
    """
    PENDING = "PENDING"
    VERIFIED = "VERIFIED"
    REJECTED = "REJECTED"
