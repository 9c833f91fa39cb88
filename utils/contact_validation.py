"""
Contact and Reference Validation Utility

Validates checkout input before anything is written:
- Email format (optional field)
- Phone normalization to E.164 and validation
- Address requirement for delivery methods that ship
- Payment reference and tracking code formats
"""

import logging
import re

import config
from enums.fulfillment_method import FulfillmentMethod
from exceptions import InvalidContactException, ValidationException
from models.checkout import CheckoutContactDTO

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
E164_PATTERN = re.compile(r'^\+[1-9]\d{7,14}$')
TRACKING_CODE_PATTERN = re.compile(r'^TRK-SESSION-\d+-\d+$')
REFERENCE_PREFIXES = ("order_", "session_")


def is_valid_email(email: str) -> bool:
    return EMAIL_PATTERN.match(email) is not None


def normalize_phone(phone: str) -> str:
    """
    Normalize a phone number to E.164.

    Everything except digits and "+" is stripped. A leading trunk "0" is
    replaced by the default country code, a bare country code gets a "+".

    Example:
        >>> normalize_phone("0903 161 5501")
        '+2349031615501'
        >>> normalize_phone("234-903-161-5501")
        '+2349031615501'
    """
    cleaned = re.sub(r'[^+\d]', '', phone)
    country_code = config.DEFAULT_PHONE_COUNTRY_CODE
    if cleaned.startswith('0'):
        cleaned = f"+{country_code}{cleaned[1:]}"
    elif cleaned.startswith(country_code):
        cleaned = f"+{cleaned}"
    return cleaned


def is_valid_phone(phone: str) -> bool:
    return E164_PATTERN.match(normalize_phone(phone)) is not None


def validate_contact(contact: CheckoutContactDTO) -> CheckoutContactDTO:
    """
    Validate checkout contact and delivery data.

    Returns:
        A copy of the contact with trimmed fields, the phone in E.164 form
        and an empty email turned into None.

    Raises:
        InvalidContactException: Naming the first offending field
    """
    name = (contact.name or "").strip()
    if not name:
        raise InvalidContactException("name", "name is required")

    email = (contact.email or "").strip() or None
    if email is not None and not is_valid_email(email):
        raise InvalidContactException("email", "email format is invalid")

    phone = (contact.phone or "").strip()
    if not phone:
        raise InvalidContactException("phone", "phone is required")
    if not is_valid_phone(phone):
        raise InvalidContactException("phone", "phone number format is invalid (e.g. 09031615501 or +2349031615501)")

    method = contact.fulfillment_method
    address = (contact.address or "").strip() or None
    if method.requires_address and address is None:
        raise InvalidContactException("address", f"address is required for {method.value}")
    if method == FulfillmentMethod.UNSPECIFIED:
        raise InvalidContactException("fulfillment_method", "a fulfillment method must be chosen")

    return CheckoutContactDTO(
        name=name,
        email=email,
        phone=normalize_phone(phone),
        address=address,
        fulfillment_method=method,
    )


def validate_payment_reference(reference: str | None) -> str:
    if (not isinstance(reference, str) or not reference.startswith(REFERENCE_PREFIXES)
            or len(reference) <= 10):
        raise ValidationException("reference", "must start with 'order_' or 'session_'")
    return reference


def validate_tracking_code(tracking_code: str | None) -> str:
    if not isinstance(tracking_code, str) or TRACKING_CODE_PATTERN.match(tracking_code) is None:
        raise ValidationException("tracking_code", "expected format TRK-SESSION-<id>-<timestamp>")
    return tracking_code


def validate_quantity(quantity) -> int:
    # bool is an int subclass, reject it explicitly
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        raise ValidationException("quantity", "must be a positive integer")
    return quantity
