"""
API router for the guest, operator and seller facing operations.

Identity is resolved upstream and handed in as headers:
- X-Guest-Id: the guest browsing, checking out and paying
- X-Caller-Id / X-Caller-Role: operator or seller staff

Every route runs one service call on its own session and converts
MarketplaceException into a JSON error body (see utils/error_handler.py).
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Header, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from db import get_db_session
from enums.caller_role import CallerRole
from enums.consent_type import ConsentType
from enums.fulfillment_method import FulfillmentMethod
from enums.order_status import OrderStatus
from enums.prescription_status import PrescriptionStatus
from exceptions import ValidationException
from models.checkout import CheckoutContactDTO
from models.identity import CallerIdentity
from models.prescription import PrescriptionItemDTO
from services.cart import CartService
from services.consent import ConsentService
from services.checkout import CheckoutService, summarize_order
from services.fulfillment import FulfillmentService
from services.payment import PaymentService
from services.prescription import PrescriptionService
from services.tracking import TrackingService
from utils.error_handler import safe_service_call

logger = logging.getLogger(__name__)

api_router = APIRouter(prefix="/api", tags=["api"])


async def get_session():
    async with get_db_session() as session:
        yield session


SessionDep = Annotated[AsyncSession, Depends(get_session)]


def get_guest_id(x_guest_id: Annotated[str | None, Header()] = None) -> str:
    if x_guest_id is None or not x_guest_id.strip():
        raise ValidationException("X-Guest-Id", "header is required")
    return x_guest_id.strip()


def get_caller_identity(x_caller_id: Annotated[str | None, Header()] = None,
                        x_caller_role: Annotated[str | None, Header()] = None) -> CallerIdentity:
    if not x_caller_id or not x_caller_role:
        raise ValidationException("X-Caller-Id", "caller id and role headers are required")
    try:
        role = CallerRole(x_caller_role.strip().lower())
    except ValueError:
        raise ValidationException("X-Caller-Role", f"unknown role '{x_caller_role}'")
    return CallerIdentity(caller_id=x_caller_id.strip(), role=role)


class AddCartItemPayload(BaseModel):
    seller_id: int = Field(..., gt=0)
    item_id: int = Field(..., gt=0)
    quantity: int = 1


class UpdateCartItemPayload(BaseModel):
    quantity: int


class CheckoutPayload(BaseModel):
    name: str | None = None
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    fulfillment_method: str = FulfillmentMethod.PICKUP.value
    prescription_file_url: str | None = None


class ResumePayload(BaseModel):
    email: str | None = None


class ReconcilePayload(BaseModel):
    reference: str


class PrescriptionUploadPayload(BaseModel):
    file_url: str
    email: str | None = None
    phone: str | None = None


class CoveredItemPayload(BaseModel):
    catalog_item_id: int
    quantity: int = 1
    dosage_instructions: str | None = None


class ReviewPayload(BaseModel):
    decision: PrescriptionStatus


class ConsentPayload(BaseModel):
    consent_type: ConsentType
    granted: bool


class FulfillmentPayload(BaseModel):
    status: OrderStatus


# Cart

@api_router.get("/cart")
@safe_service_call
async def get_cart(session: SessionDep, x_guest_id: Annotated[str | None, Header()] = None):
    return await CartService.get_cart(get_guest_id(x_guest_id), session)


@api_router.post("/cart/items")
@safe_service_call
async def add_cart_item(payload: AddCartItemPayload, session: SessionDep,
                        x_guest_id: Annotated[str | None, Header()] = None):
    return await CartService.add_item(get_guest_id(x_guest_id), payload.seller_id, payload.item_id,
                                      payload.quantity, session)


@api_router.patch("/cart/items/{line_id}")
@safe_service_call
async def update_cart_item(line_id: int, payload: UpdateCartItemPayload, session: SessionDep,
                           x_guest_id: Annotated[str | None, Header()] = None):
    return await CartService.update_item(get_guest_id(x_guest_id), line_id, payload.quantity, session)


@api_router.delete("/cart/items/{line_id}")
@safe_service_call
async def remove_cart_item(line_id: int, session: SessionDep,
                           x_guest_id: Annotated[str | None, Header()] = None):
    return await CartService.remove_item(get_guest_id(x_guest_id), line_id, session)


# Consent

@api_router.post("/consents", status_code=201)
@safe_service_call
async def record_consent(payload: ConsentPayload, session: SessionDep,
                         x_guest_id: Annotated[str | None, Header()] = None):
    return await ConsentService.record(get_guest_id(x_guest_id), payload.consent_type, payload.granted, session)


# Checkout

@api_router.post("/checkout")
@safe_service_call
async def checkout(payload: CheckoutPayload, session: SessionDep,
                   x_guest_id: Annotated[str | None, Header()] = None):
    try:
        fulfillment_method = FulfillmentMethod.from_string(payload.fulfillment_method)
    except ValueError as e:
        raise ValidationException("fulfillment_method", str(e))
    contact = CheckoutContactDTO(
        name=payload.name,
        email=payload.email,
        phone=payload.phone,
        address=payload.address,
        fulfillment_method=fulfillment_method,
    )
    return await CheckoutService.checkout(get_guest_id(x_guest_id), contact, payload.prescription_file_url, session)


@api_router.post("/orders/{order_id}/resume-payment")
@safe_service_call
async def resume_payment(order_id: int, payload: ResumePayload, session: SessionDep,
                         x_guest_id: Annotated[str | None, Header()] = None):
    return await CheckoutService.resume_checkout(get_guest_id(x_guest_id), order_id, payload.email, session)


@api_router.get("/orders/{order_id}/session")
@safe_service_call
async def get_session_details(order_id: int, session: SessionDep,
                              x_guest_id: Annotated[str | None, Header()] = None):
    return await CheckoutService.get_session_details(get_guest_id(x_guest_id), order_id, session)


# Payment

@api_router.post("/payments/reconcile")
@safe_service_call
async def reconcile_payment(payload: ReconcilePayload, session: SessionDep,
                            x_guest_id: Annotated[str | None, Header()] = None):
    return await PaymentService.reconcile_payment(get_guest_id(x_guest_id), payload.reference, session)


@api_router.get("/payments/callback")
@safe_service_call
async def payment_callback(session: SessionDep, reference: str = Query(...),
                           x_guest_id: Annotated[str | None, Header()] = None):
    """Browser redirect target after the gateway page; the gateway appends ?reference=..."""
    return await PaymentService.reconcile_payment(get_guest_id(x_guest_id), reference, session)


# Prescriptions

@api_router.post("/prescriptions")
@safe_service_call
async def upload_prescription(payload: PrescriptionUploadPayload, session: SessionDep,
                              x_guest_id: Annotated[str | None, Header()] = None):
    return await PrescriptionService.upload(get_guest_id(x_guest_id), payload.file_url, session,
                                            email=payload.email, phone=payload.phone)


@api_router.post("/prescriptions/{prescription_id}/items")
@safe_service_call
async def add_prescription_items(prescription_id: int, payload: list[CoveredItemPayload], session: SessionDep,
                                 x_caller_id: Annotated[str | None, Header()] = None,
                                 x_caller_role: Annotated[str | None, Header()] = None):
    items = [PrescriptionItemDTO(**item.model_dump()) for item in payload]
    return await PrescriptionService.add_covered_items(get_caller_identity(x_caller_id, x_caller_role),
                                                       prescription_id, items, session)


@api_router.post("/prescriptions/{prescription_id}/review")
@safe_service_call
async def review_prescription(prescription_id: int, payload: ReviewPayload, session: SessionDep,
                              x_caller_id: Annotated[str | None, Header()] = None,
                              x_caller_role: Annotated[str | None, Header()] = None):
    return await PrescriptionService.review(get_caller_identity(x_caller_id, x_caller_role),
                                            prescription_id, payload.decision, session)


@api_router.post("/orders/{order_id}/prescription")
@safe_service_call
async def replace_prescription(order_id: int, payload: PrescriptionUploadPayload, session: SessionDep,
                               x_guest_id: Annotated[str | None, Header()] = None):
    return await PrescriptionService.replace_for_order(get_guest_id(x_guest_id), order_id, payload.file_url,
                                                       session)


# Tracking and fulfillment

@api_router.get("/tracking/{tracking_code}")
@safe_service_call
async def track_orders(tracking_code: str, session: SessionDep):
    orders = await TrackingService.get_orders_by_tracking_code(tracking_code, session)
    return [summarize_order(order) for order in orders]


@api_router.post("/orders/{order_id}/status")
@safe_service_call
async def advance_order(order_id: int, payload: FulfillmentPayload, session: SessionDep,
                        x_caller_id: Annotated[str | None, Header()] = None,
                        x_caller_role: Annotated[str | None, Header()] = None):
    order = await FulfillmentService.advance(get_caller_identity(x_caller_id, x_caller_role), order_id,
                                             payload.status, session)
    return summarize_order(order)
