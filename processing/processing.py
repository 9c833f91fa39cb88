import hashlib
import hmac
import json
import logging

from fastapi import APIRouter, Request, HTTPException

import config
from db import get_db_session
from exceptions import MarketplaceException
from services.payment import PaymentService

logger = logging.getLogger(__name__)

processing_router = APIRouter(prefix="/payments")


def verify_signature(x_signature_header: str | None, payload: bytes) -> bool:
    """
    Validate HMAC-SHA512 signature from the payment gateway webhook.

    Security: Missing signature header is treated as authentication failure.
    Only valid signatures are accepted.

    Args:
        x_signature_header: x-paystack-signature header from webhook request
        payload: Raw request body bytes

    Returns:
        bool: True if signature is valid, False otherwise
    """
    if x_signature_header is None:
        logger.warning("Payment webhook rejected: Missing x-paystack-signature header")
        return False
    if not config.PAYSTACK_SECRET_KEY:
        logger.error("Payment webhook rejected: PAYSTACK_SECRET_KEY is not configured")
        return False

    secret_key = config.PAYSTACK_SECRET_KEY.encode("utf-8")
    generated_signature = hmac.new(secret_key, payload, hashlib.sha512).hexdigest()

    # Use timing-safe comparison to prevent timing attacks
    return hmac.compare_digest(generated_signature, x_signature_header)


@processing_router.post("/webhook")
async def payment_event(request: Request):
    """
    Webhook endpoint for gateway payment notifications.

    Only charge.success is acted on: the transaction is verified with the gateway
    again and reconciled on behalf of the guest who owns its orders. Other events
    are acknowledged and ignored.
    """
    request_body = await request.body()

    if verify_signature(request.headers.get("x-paystack-signature"), request_body) is False:
        logger.error("WEBHOOK SECURITY CHECK FAILED - Invalid HMAC signature")
        raise HTTPException(status_code=403, detail="Invalid signature")

    try:
        event = json.loads(request_body)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid JSON body")

    event_type = event.get("event")
    reference = (event.get("data") or {}).get("reference")
    logger.info(f"Payment webhook received: event={event_type} reference={reference}")

    if event_type != "charge.success" or not reference:
        return {"status": "ignored"}

    async with get_db_session() as session:
        try:
            _, orders = await PaymentService.resolve_orders(reference, session)
            result = await PaymentService.reconcile_payment(orders[0].guest_id, reference, session)
        except MarketplaceException as e:
            # Acknowledge anyway; the gateway would otherwise retry an event we can never apply
            logger.warning(f"Payment webhook for {reference} not applied: {type(e).__name__} - {e}")
            return {"status": "rejected", "error": type(e).__name__}

    logger.info(f"Payment webhook for {reference} reconciled: {result.outcome.value}")
    return {"status": "ok", "outcome": result.outcome.value}
