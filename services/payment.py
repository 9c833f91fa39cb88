from datetime import datetime
import logging

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from db import session_commit, session_rollback
from enums.order_status import OrderStatus
from enums.payment_status import PaymentStatus
from enums.prescription_status import PrescriptionStatus
from enums.reconciliation_outcome import ReconciliationOutcome
from exceptions import (
    InvalidOrderStateException,
    PaymentFailedException,
    PaymentReferenceNotFoundException,
    UnauthorizedException,
)
from gateway import GatewayError, PaymentGateway, get_gateway
from models.checkout import ReconciliationResultDTO
from models.order import OrderDTO
from repositories.checkout_session import CheckoutSessionRepository
from repositories.order import OrderRepository
from repositories.orderItem import OrderItemRepository
from repositories.prescription import PrescriptionRepository
from services.checkout import summarize_order
from services.prescription import PrescriptionService
from utils.contact_validation import validate_payment_reference
from utils.order_state_machine import OrderStateMachine

logger = logging.getLogger(__name__)

RECONCILABLE_STATUSES = (OrderStatus.PENDING, OrderStatus.PENDING_PRESCRIPTION)
SETTLED_STATUSES = (OrderStatus.CONFIRMED, OrderStatus.PENDING_PRESCRIPTION)


def generate_tracking_code(order_ids: list[int]) -> str:
    """TRK-SESSION-<lowest sibling order id>-<epoch milliseconds>"""
    timestamp_ms = int(datetime.now().timestamp() * 1000)
    return f"TRK-SESSION-{min(order_ids)}-{timestamp_ms}"


class PaymentService:

    @staticmethod
    async def resolve_orders(reference: str, session: AsyncSession | Session) -> tuple[str, list[OrderDTO]]:
        """
        Find the gateway transaction reference and the sibling orders a reference stands for.

        A reference may be:
        - a transaction reference (session_...) recorded at checkout
        - an order payment reference included in such a transaction
        - a single order's payment reference with no transaction recorded

        Returns:
            (transaction reference to verify, orders)

        Raises:
            ValidationException: Malformed reference
            PaymentReferenceNotFoundException: Nothing matches
        """
        validate_payment_reference(reference)

        if reference.startswith("session_"):
            checkout_session = await CheckoutSessionRepository.get_by_transaction_reference(reference, session)
        else:
            checkout_session = await CheckoutSessionRepository.get_by_payment_reference(reference, session)

        if checkout_session is not None:
            transaction_reference = checkout_session.transaction_reference
            orders = await OrderRepository.get_by_payment_references(checkout_session.payment_references, session)
        else:
            transaction_reference = reference
            order = await OrderRepository.get_by_payment_reference(reference, session)
            orders = [order] if order is not None else []

        if not orders:
            raise PaymentReferenceNotFoundException(reference)
        return transaction_reference, orders

    @staticmethod
    async def reconcile_payment(guest_id: str, reference: str, session: AsyncSession | Session,
                                gateway: PaymentGateway | None = None) -> ReconciliationResultDTO:
        """
        Verify a payment at the gateway and advance every sibling order it settles.

        Flow:
        1. Resolve the sibling orders, keep only the calling guest's
        2. Already paid: return the recorded state (no gateway call)
        3. Gateway says no: mark siblings FAILED, commit, raise PaymentFailedException
        4. Gateway says yes: one tracking code per checkout session; each sibling goes to
           CONFIRMED, or stays/moves to PENDING_PRESCRIPTION while its prescription is
           unverified; all in one commit

        Idempotent: repeated calls for a settled transaction return the same state and
        tracking code.
        """
        transaction_reference, orders = await PaymentService.resolve_orders(reference, session)

        owned_orders = [order for order in orders if order.guest_id == guest_id]
        if not owned_orders:
            raise UnauthorizedException(guest_id, f"reconcile payment {reference}")

        if all(order.payment_status == PaymentStatus.PAID for order in owned_orders):
            logger.info(f"Payment {transaction_reference} already reconciled, returning recorded state")
            return PaymentService._build_result(reference, owned_orders)

        eligible_orders = [order for order in owned_orders
                           if order.status in RECONCILABLE_STATUSES and order.payment_status != PaymentStatus.PAID]
        if not eligible_orders:
            blocked = owned_orders[0]
            raise InvalidOrderStateException(blocked.id, blocked.status.value, OrderStatus.PENDING.value)

        gateway = gateway or get_gateway()
        try:
            verification = await gateway.verify(transaction_reference)
            success, gateway_status = verification.success, verification.status
        except GatewayError as e:
            logger.error(f"Payment {transaction_reference}: verification request failed: {e}")
            success, gateway_status = False, "unverifiable"

        if not success:
            for order in eligible_orders:
                await OrderRepository.update(order.id, session, payment_status=PaymentStatus.FAILED)
            await session_commit(session)
            logger.warning(f"Payment {transaction_reference} not successful ({gateway_status}); "
                           f"orders {[o.id for o in eligible_orders]} marked FAILED")
            raise PaymentFailedException(reference, gateway_status)

        try:
            await PaymentService._apply_success(eligible_orders, session)
            await session_commit(session)
        except Exception:
            await session_rollback(session)
            raise

        refreshed = [await OrderRepository.get_by_id(order.id, session) for order in owned_orders]
        return PaymentService._build_result(reference, refreshed)

    @staticmethod
    async def _apply_success(orders: list[OrderDTO], session: AsyncSession | Session) -> None:
        checkout_session_id = orders[0].checkout_session_id
        tracking_code = None
        if checkout_session_id is not None:
            tracking_code = await OrderRepository.get_session_tracking_code(checkout_session_id, session)
        if tracking_code is None:
            sibling_ids = [order.id for order in orders]
            if checkout_session_id is not None:
                siblings = await OrderRepository.get_by_checkout_session(checkout_session_id, session)
                sibling_ids = [order.id for order in siblings]
            tracking_code = generate_tracking_code(sibling_ids)

        paid_at = datetime.now()
        for order in orders:
            if await PaymentService._prescription_cleared(order, session):
                new_status = OrderStatus.CONFIRMED
            else:
                new_status = OrderStatus.PENDING_PRESCRIPTION

            values = dict(payment_status=PaymentStatus.PAID, paid_at=paid_at, tracking_code=tracking_code)
            if new_status == order.status:
                await OrderRepository.update(order.id, session, **values)
                logger.info(f"Order {order.id}: payment captured, still waiting for prescription review")
                continue

            OrderStateMachine.assert_transition(order.id, order.status, new_status)
            updated = await OrderRepository.update_status(order.id, order.status, new_status, session, **values)
            if not updated:
                current = await OrderRepository.get_by_id(order.id, session)
                if current.payment_status == PaymentStatus.PAID and current.status in SETTLED_STATUSES:
                    logger.info(f"Order {order.id}: already reconciled by a concurrent call, skipping")
                    continue
                raise InvalidOrderStateException(order.id, current.status.value, order.status.value)

        logger.info(f"Payment reconciled for orders {[o.id for o in orders]}, tracking code {tracking_code}")

    @staticmethod
    async def _prescription_cleared(order: OrderDTO, session: AsyncSession | Session) -> bool:
        """False while a prescription-required line lacks a verified document covering it."""
        lines = await OrderItemRepository.get_details_by_order_id(order.id, session)
        required_item_ids = {line.catalog_item_id for line in lines if line.prescription_required}
        if not required_item_ids:
            return True
        if order.prescription_id is None:
            return False
        prescription = await PrescriptionRepository.get_by_id(order.prescription_id, session)
        if prescription is None or prescription.status != PrescriptionStatus.VERIFIED:
            return False
        covered_item_ids = await PrescriptionRepository.get_covered_item_ids(order.prescription_id, session)
        return PrescriptionService.is_covered(required_item_ids, covered_item_ids)

    @staticmethod
    def _build_result(reference: str, orders: list[OrderDTO]) -> ReconciliationResultDTO:
        if any(order.status == OrderStatus.PENDING_PRESCRIPTION for order in orders):
            outcome = ReconciliationOutcome.PENDING_PRESCRIPTION
        else:
            outcome = ReconciliationOutcome.COMPLETED
        tracking_code = next((order.tracking_code for order in orders if order.tracking_code), None)
        return ReconciliationResultDTO(
            outcome=outcome,
            reference=reference,
            tracking_code=tracking_code,
            orders=[summarize_order(order) for order in orders],
        )
