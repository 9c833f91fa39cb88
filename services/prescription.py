from datetime import datetime
import logging
from typing import Iterable

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from db import session_commit
from enums.caller_role import CallerRole
from enums.order_status import OrderStatus
from enums.payment_status import PaymentStatus
from enums.prescription_status import PrescriptionStatus
from exceptions import (
    ValidationException,
    OrderNotFoundException,
    InvalidOrderStateException,
    PrescriptionNotFoundException,
    PrescriptionAlreadyReviewedException,
)
from models.identity import CallerIdentity
from models.orderItem import OrderLineDetailDTO
from models.prescription import PrescriptionDTO, PrescriptionItemDTO
from repositories.catalog_item import CatalogItemRepository
from repositories.order import OrderRepository
from repositories.orderItem import OrderItemRepository
from repositories.prescription import PrescriptionRepository
from services.consent import ConsentService
from utils.contact_validation import normalize_phone, validate_quantity
from utils.order_state_machine import OrderStateMachine
from utils.permission_utils import require_operator, require_order_owner

logger = logging.getLogger(__name__)


class PrescriptionService:
    """
    Prescription gate: documents, their review, and which catalog items they cover.

    Review is an operator action. A verified document releases the orders
    waiting on it; a rejected one leaves them waiting for a replacement.
    """

    @staticmethod
    def is_covered(required_item_ids: Iterable[int], covered_item_ids: Iterable[int]) -> bool:
        """True iff every required item is in the covered set (a superset still covers)."""
        return set(required_item_ids).issubset(set(covered_item_ids))

    @staticmethod
    async def get_latest_verified(guest_id: str, session: AsyncSession | Session) -> PrescriptionDTO | None:
        return await PrescriptionRepository.get_latest_by_status(guest_id, PrescriptionStatus.VERIFIED, session)

    @staticmethod
    async def get_covered_item_ids(prescription_id: int, session: AsyncSession | Session) -> set[int]:
        return await PrescriptionRepository.get_covered_item_ids(prescription_id, session)

    @staticmethod
    async def upload(guest_id: str, file_url: str, session: AsyncSession | Session,
                     email: str | None = None, phone: str | None = None) -> PrescriptionDTO:
        """Standalone upload ahead of checkout; coverage is attached later by an operator."""
        await ConsentService.require_data_sharing(guest_id, session)
        prescription_id = await PrescriptionService.create_document(guest_id, file_url, [], session,
                                                                    email=email, phone=phone)
        await session_commit(session)
        return await PrescriptionRepository.get_by_id(prescription_id, session)

    @staticmethod
    async def create_document(guest_id: str, file_url: str, covered_lines: list[OrderLineDetailDTO],
                              session: AsyncSession | Session,
                              email: str | None = None, phone: str | None = None) -> int:
        """
        Create a PENDING document covering exactly the given lines.

        Does not commit; checkout and replacement run it inside their own transaction.
        """
        file_url = (file_url or "").strip()
        if not file_url:
            raise ValidationException("prescription_file_url", "a document URL is required")

        prescription_id = await PrescriptionRepository.create(PrescriptionDTO(
            guest_id=guest_id,
            file_url=file_url,
            status=PrescriptionStatus.PENDING,
            email=email or None,
            phone=normalize_phone(phone) if phone else None,
        ), session)

        # A cart holds one line per (seller, item); the same item from two sellers merges into one covered row
        covered: dict[int, int] = {}
        for line in covered_lines:
            covered[line.catalog_item_id] = covered.get(line.catalog_item_id, 0) + line.quantity
        await PrescriptionRepository.add_items([
            PrescriptionItemDTO(prescription_id=prescription_id, catalog_item_id=item_id, quantity=quantity)
            for item_id, quantity in covered.items()
        ], session)

        logger.info(f"Prescription {prescription_id} uploaded by guest {guest_id} "
                    f"covering items {sorted(covered)}")
        return prescription_id

    @staticmethod
    async def add_covered_items(identity: CallerIdentity, prescription_id: int, items: list[PrescriptionItemDTO],
                                session: AsyncSession | Session) -> list[PrescriptionItemDTO]:
        """Operator transcribes what a pending document authorizes."""
        require_operator(identity, "edit prescription coverage")

        prescription = await PrescriptionRepository.get_by_id(prescription_id, session)
        if prescription is None:
            raise PrescriptionNotFoundException(prescription_id)
        if prescription.status != PrescriptionStatus.PENDING:
            raise PrescriptionAlreadyReviewedException(prescription_id, prescription.status.value)

        existing = await PrescriptionRepository.get_covered_item_ids(prescription_id, session)
        catalog_items = await CatalogItemRepository.get_by_ids([item.catalog_item_id for item in items], session)
        for item in items:
            validate_quantity(item.quantity)
            if item.catalog_item_id not in catalog_items:
                raise ValidationException("catalog_item_id", f"catalog item {item.catalog_item_id} does not exist")
            if item.catalog_item_id in existing:
                raise ValidationException("catalog_item_id", f"item {item.catalog_item_id} is already covered")

        await PrescriptionRepository.add_items([
            PrescriptionItemDTO(
                prescription_id=prescription_id,
                catalog_item_id=item.catalog_item_id,
                quantity=item.quantity,
                dosage_instructions=item.dosage_instructions,
            ) for item in items
        ], session)
        await session_commit(session)
        logger.info(f"Operator {identity.caller_id} added items {[i.catalog_item_id for i in items]} "
                    f"to prescription {prescription_id}")
        return await PrescriptionRepository.get_items(prescription_id, session)

    @staticmethod
    async def review(identity: CallerIdentity, prescription_id: int, decision: PrescriptionStatus,
                     session: AsyncSession | Session) -> PrescriptionDTO:
        """
        Verify or reject a pending document.

        VERIFIED moves every PENDING_PRESCRIPTION order on the document to PENDING,
        or straight to CONFIRMED when its payment was already captured.
        REJECTED leaves the orders waiting for a replacement document.
        """
        require_operator(identity, "review prescriptions")
        if decision not in (PrescriptionStatus.VERIFIED, PrescriptionStatus.REJECTED):
            raise ValidationException("decision", "must be VERIFIED or REJECTED")

        prescription = await PrescriptionRepository.get_by_id(prescription_id, session)
        if prescription is None:
            raise PrescriptionNotFoundException(prescription_id)
        if prescription.status != PrescriptionStatus.PENDING:
            raise PrescriptionAlreadyReviewedException(prescription_id, prescription.status.value)

        reviewed = await PrescriptionRepository.set_review(prescription_id, decision, identity.caller_id,
                                                           datetime.now(), session)
        if not reviewed:
            current = await PrescriptionRepository.get_by_id(prescription_id, session)
            raise PrescriptionAlreadyReviewedException(prescription_id, current.status.value)

        released_order_ids = []
        if decision == PrescriptionStatus.VERIFIED:
            waiting_orders = await OrderRepository.get_by_prescription(
                prescription_id, OrderStatus.PENDING_PRESCRIPTION, session
            )
            for order in waiting_orders:
                if order.payment_status == PaymentStatus.PAID:
                    new_status = OrderStatus.CONFIRMED
                else:
                    new_status = OrderStatus.PENDING
                OrderStateMachine.assert_transition(order.id, order.status, new_status, CallerRole.OPERATOR.value)
                updated = await OrderRepository.update_status(order.id, OrderStatus.PENDING_PRESCRIPTION, new_status,
                                                              session)
                if not updated:
                    logger.info(f"Order {order.id} left PENDING_PRESCRIPTION before review, not released")
                    continue
                released_order_ids.append(order.id)

        await session_commit(session)
        logger.info(f"Prescription {prescription_id} {decision.value} by {identity.caller_id}; "
                    f"released orders {released_order_ids}")
        return await PrescriptionRepository.get_by_id(prescription_id, session)

    @staticmethod
    async def replace_for_order(guest_id: str, order_id: int, file_url: str,
                                session: AsyncSession | Session) -> PrescriptionDTO:
        """
        Attach a new document to an order whose prescription was rejected.

        The new document covers exactly the order's prescription-required lines.
        """
        await ConsentService.require_data_sharing(guest_id, session)
        order = await OrderRepository.get_by_id(order_id, session)
        if order is None or order.status == OrderStatus.CART:
            raise OrderNotFoundException(order_id)
        require_order_owner(order, guest_id)
        if order.status != OrderStatus.PENDING_PRESCRIPTION:
            raise InvalidOrderStateException(order_id, order.status.value, OrderStatus.PENDING_PRESCRIPTION.value)

        if order.prescription_id is not None:
            current = await PrescriptionRepository.get_by_id(order.prescription_id, session)
            if current is not None and current.status != PrescriptionStatus.REJECTED:
                raise ValidationException(
                    "prescription", f"current prescription is {current.status.value}, only a rejected one can be replaced"
                )

        lines = await OrderItemRepository.get_details_by_order_id(order_id, session)
        required_lines = [line for line in lines if line.prescription_required]
        if not required_lines:
            raise ValidationException("order_id", "order has no items that need a prescription")

        prescription_id = await PrescriptionService.create_document(
            guest_id, file_url, required_lines, session, email=order.email, phone=order.phone
        )
        await OrderRepository.update(order_id, session, prescription_id=prescription_id)
        await session_commit(session)
        logger.info(f"Order {order_id} relinked from prescription {order.prescription_id} to {prescription_id}")
        return await PrescriptionRepository.get_by_id(prescription_id, session)
