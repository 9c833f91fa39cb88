from decimal import Decimal, ROUND_HALF_UP
import logging
from uuid import uuid4

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

import config
from db import session_commit, session_rollback
from enums.order_status import OrderStatus
from enums.payment_status import PaymentStatus
from enums.prescription_status import PrescriptionStatus
from enums.reconciliation_outcome import CheckoutOutcome
from exceptions import (
    EmptyCartException,
    InvalidContactException,
    InvalidOrderStateException,
    OrderNotFoundException,
    PrescriptionRequiredException,
    PrescriptionCoverageIncompleteException,
    PrescriptionNotVerifiedException,
    GatewayInitiationFailedException,
    NothingToPayException,
)
from gateway import GatewayError, PaymentGateway, get_gateway
from models.checkout import (
    CheckoutContactDTO,
    CheckoutOrderSummaryDTO,
    CheckoutResultDTO,
    SessionDetailsDTO,
)
from models.checkout_session import CheckoutSessionDTO
from models.order import OrderDTO
from models.orderItem import OrderItemDTO, OrderLineDetailDTO
from repositories.checkout_session import CheckoutSessionRepository
from repositories.order import OrderRepository
from repositories.orderItem import OrderItemRepository
from repositories.prescription import PrescriptionRepository
from services.consent import ConsentService
from services.inventory import InventoryLedger
from services.prescription import PrescriptionService
from utils.contact_validation import is_valid_email, validate_contact
from utils.permission_utils import require_order_owner

logger = logging.getLogger(__name__)


def to_minor_units(amount: Decimal) -> int:
    """Decimal amount to the smallest currency unit, rounded half-up."""
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def summarize_order(order: OrderDTO) -> CheckoutOrderSummaryDTO:
    return CheckoutOrderSummaryDTO(
        order_id=order.id,
        seller_id=order.seller_id,
        status=order.status,
        payment_status=order.payment_status,
        total_price=order.total_price,
        payment_reference=order.payment_reference,
        prescription_id=order.prescription_id,
        tracking_code=order.tracking_code,
    )


class CheckoutService:

    @staticmethod
    async def checkout(guest_id: str, contact: CheckoutContactDTO, prescription_file_url: str | None,
                       session: AsyncSession | Session, gateway: PaymentGateway | None = None) -> CheckoutResultDTO:
        """
        Split the guest's cart into orders, reserve stock and start payment.

        Flow:
        1. Validate contact data (nothing is written before this passes)
        2. Decide prescription coverage for every prescription-required line
        3. Create a new pending document for uncovered lines (if a file was supplied)
        4. Per seller, one order per bucket: verified-covered (PENDING),
           newly-covered (PENDING_PRESCRIPTION), no prescription (PENDING)
        5. Reserve stock for every line (all-or-nothing)
        6. Delete the cart, commit
        7. Initiate payment for the PENDING orders, if they sum to more than zero

        Args:
            guest_id: Owning guest
            contact: Name, email, phone, address and fulfillment method
            prescription_file_url: Opaque URL of an uploaded prescription, or None
            session: Database session
            gateway: Payment gateway, defaults to gateway.get_gateway()

        Returns:
            CheckoutResultDTO with outcome PAYMENT_REQUIRED (authorization URL set)
            or AWAITING_VERIFICATION (nothing to charge yet)

        Raises:
            UnauthorizedException: no DATA_SHARING consent on record
            InvalidContactException, EmptyCartException, PrescriptionRequiredException,
            PrescriptionCoverageIncompleteException, InsufficientStockException:
                nothing was changed
            GatewayInitiationFailedException: orders were created and stay reserved; resume later
        """
        await ConsentService.require_data_sharing(guest_id, session)
        contact = validate_contact(contact)

        cart = await OrderRepository.get_cart(guest_id, session)
        if cart is None:
            raise EmptyCartException(guest_id)
        lines = await OrderItemRepository.get_details_by_order_id(cart.id, session)
        if not lines:
            raise EmptyCartException(guest_id)

        verified_prescription, covered_item_ids = await CheckoutService._resolve_coverage(
            guest_id, lines, prescription_file_url, session
        )
        uncovered_lines = [line for line in lines
                           if line.prescription_required and line.catalog_item_id not in covered_item_ids]

        checkout_session_id = uuid4().hex
        created_orders: list[OrderDTO] = []
        new_prescription_id = None
        try:
            if uncovered_lines:
                new_prescription_id = await PrescriptionService.create_document(
                    guest_id, prescription_file_url, uncovered_lines, session,
                    email=contact.email, phone=contact.phone
                )
            elif prescription_file_url:
                logger.info(f"Checkout {checkout_session_id}: uploaded file ignored, verified prescription "
                            f"{verified_prescription.id if verified_prescription else None} covers every item")

            for seller_id, seller_lines in CheckoutService._group_by_seller(lines).items():
                buckets = CheckoutService._partition(seller_lines, covered_item_ids)
                for bucket_name, bucket_lines in buckets.items():
                    if not bucket_lines:
                        continue
                    if bucket_name == "verified":
                        status, prescription_id = OrderStatus.PENDING, verified_prescription.id
                    elif bucket_name == "new":
                        status, prescription_id = OrderStatus.PENDING_PRESCRIPTION, new_prescription_id
                    else:
                        status, prescription_id = OrderStatus.PENDING, None
                    order = await CheckoutService._create_order(
                        guest_id, seller_id, contact, status, prescription_id, checkout_session_id,
                        bucket_lines, session
                    )
                    created_orders.append(order)

            cart_deleted = await OrderRepository.delete_cart(cart.id, session)
            if not cart_deleted:
                raise EmptyCartException(guest_id)

            await session_commit(session)
        except Exception as e:
            await session_rollback(session)
            logger.warning(f"Checkout {checkout_session_id} for guest {guest_id} rolled back: "
                           f"{type(e).__name__} - {e}")
            raise

        logger.info(f"Checkout {checkout_session_id}: guest {guest_id} cart {cart.id} split into orders "
                    f"{[(o.id, o.status.value) for o in created_orders]}")

        payable_orders = [order for order in created_orders if order.status == OrderStatus.PENDING]
        payable_total = sum((order.total_price for order in payable_orders), Decimal("0"))
        result = CheckoutResultDTO(
            outcome=CheckoutOutcome.AWAITING_VERIFICATION,
            checkout_session_id=checkout_session_id,
            orders=[summarize_order(order) for order in created_orders],
            payable_total=payable_total,
            prescription_id=new_prescription_id,
        )
        if payable_total <= 0:
            logger.info(f"Checkout {checkout_session_id}: nothing payable, awaiting prescription verification")
            return result

        payment_references = [order.payment_reference for order in payable_orders]
        email = contact.email or CheckoutService._placeholder_email(guest_id)
        checkout_session = await CheckoutService._initiate_payment(
            checkout_session_id, payable_total, email, payment_references,
            [order.id for order in payable_orders], session, gateway
        )
        await session_commit(session)

        result.outcome = CheckoutOutcome.PAYMENT_REQUIRED
        result.authorization_url = checkout_session.authorization_url
        result.transaction_reference = checkout_session.transaction_reference
        return result

    @staticmethod
    async def resume_checkout(guest_id: str, order_id: int, email: str | None, session: AsyncSession | Session,
                              gateway: PaymentGateway | None = None) -> CheckoutResultDTO:
        """
        Start a new gateway transaction for the still-payable orders of an order's checkout session.

        Used after a prescription was verified (the original checkout had nothing to charge)
        or after a failed payment / gateway outage. Every payable order gets a fresh payment reference.
        """
        order = await OrderRepository.get_by_id(order_id, session)
        if order is None or order.status == OrderStatus.CART:
            raise OrderNotFoundException(order_id)
        require_order_owner(order, guest_id)
        if order.status != OrderStatus.PENDING:
            raise InvalidOrderStateException(order_id, order.status.value, OrderStatus.PENDING.value)
        if order.prescription_id is not None:
            prescription = await PrescriptionRepository.get_by_id(order.prescription_id, session)
            if prescription is None or prescription.status != PrescriptionStatus.VERIFIED:
                raise PrescriptionNotVerifiedException(
                    order.prescription_id, prescription.status.value if prescription else "missing"
                )

        email = (email or "").strip() or None
        if email is not None and not is_valid_email(email):
            raise InvalidContactException("email", "email format is invalid")

        payable_orders = await CheckoutService._get_payable_orders(order.checkout_session_id, session)
        if not payable_orders:
            raise NothingToPayException(order.checkout_session_id)
        payable_total = sum((o.total_price for o in payable_orders), Decimal("0"))

        new_references = {o.id: f"order_{o.id}_{uuid4().hex}" for o in payable_orders}
        email = email or order.email or CheckoutService._placeholder_email(guest_id)
        checkout_session = await CheckoutService._initiate_payment(
            order.checkout_session_id, payable_total, email, list(new_references.values()),
            [o.id for o in payable_orders], session, gateway
        )
        for payable_order in payable_orders:
            await OrderRepository.update(payable_order.id, session,
                                         payment_reference=new_references[payable_order.id],
                                         payment_status=PaymentStatus.PENDING)
        await session_commit(session)
        logger.info(f"Checkout {order.checkout_session_id}: payment resumed for orders {list(new_references)}")

        refreshed = [await OrderRepository.get_by_id(o.id, session) for o in payable_orders]
        return CheckoutResultDTO(
            outcome=CheckoutOutcome.PAYMENT_REQUIRED,
            checkout_session_id=order.checkout_session_id,
            orders=[summarize_order(o) for o in refreshed],
            payable_total=payable_total,
            authorization_url=checkout_session.authorization_url,
            transaction_reference=checkout_session.transaction_reference,
        )

    @staticmethod
    async def get_session_details(guest_id: str, order_id: int, session: AsyncSession | Session) -> SessionDetailsDTO:
        """Still-payable orders of the order's checkout session and their total."""
        await ConsentService.require_data_sharing(guest_id, session)
        order = await OrderRepository.get_by_id(order_id, session)
        if order is None or order.status == OrderStatus.CART:
            raise OrderNotFoundException(order_id)
        require_order_owner(order, guest_id)

        payable_orders = await CheckoutService._get_payable_orders(order.checkout_session_id, session)
        return SessionDetailsDTO(
            checkout_session_id=order.checkout_session_id,
            orders=[summarize_order(o) for o in payable_orders],
            payable_total=sum((o.total_price for o in payable_orders), Decimal("0")),
        )

    @staticmethod
    async def _resolve_coverage(guest_id: str, lines: list[OrderLineDetailDTO], prescription_file_url: str | None,
                                session: AsyncSession | Session):
        """
        Find the verified document covering the cart's prescription items.

        Returns:
            (verified PrescriptionDTO or None, set of item ids it covers)

        Raises:
            PrescriptionRequiredException: Nothing covers the required items and no file was supplied
            PrescriptionCoverageIncompleteException: The verified document covers only some and no file was supplied
        """
        required_item_ids = {line.catalog_item_id for line in lines if line.prescription_required}
        if not required_item_ids:
            return None, set()

        verified = await PrescriptionService.get_latest_verified(guest_id, session)
        covered_item_ids = await PrescriptionService.get_covered_item_ids(verified.id, session) if verified else set()

        if PrescriptionService.is_covered(required_item_ids, covered_item_ids):
            return verified, covered_item_ids

        if not (prescription_file_url or "").strip():
            uncovered = sorted(required_item_ids - covered_item_ids)
            if verified is None or not (required_item_ids & covered_item_ids):
                raise PrescriptionRequiredException(uncovered)
            raise PrescriptionCoverageIncompleteException(verified.id, uncovered)

        return verified, covered_item_ids

    @staticmethod
    def _group_by_seller(lines: list[OrderLineDetailDTO]) -> dict[int, list[OrderLineDetailDTO]]:
        groups: dict[int, list[OrderLineDetailDTO]] = {}
        for line in sorted(lines, key=lambda l: (l.seller_id, l.id)):
            groups.setdefault(line.seller_id, []).append(line)
        return groups

    @staticmethod
    def _partition(lines: list[OrderLineDetailDTO], covered_item_ids: set[int]) -> dict[str, list[OrderLineDetailDTO]]:
        buckets: dict[str, list[OrderLineDetailDTO]] = {"verified": [], "new": [], "none": []}
        for line in lines:
            if not line.prescription_required:
                buckets["none"].append(line)
            elif line.catalog_item_id in covered_item_ids:
                buckets["verified"].append(line)
            else:
                buckets["new"].append(line)
        return buckets

    @staticmethod
    async def _create_order(guest_id: str, seller_id: int, contact: CheckoutContactDTO, status: OrderStatus,
                            prescription_id: int | None, checkout_session_id: str,
                            lines: list[OrderLineDetailDTO], session: AsyncSession | Session) -> OrderDTO:
        total = sum((line.line_total for line in lines), Decimal("0"))
        order_id = await OrderRepository.create(OrderDTO(
            guest_id=guest_id,
            seller_id=seller_id,
            status=status,
            fulfillment_method=contact.fulfillment_method,
            total_price=total,
            customer_name=contact.name,
            email=contact.email,
            phone=contact.phone,
            address=contact.address,
            checkout_session_id=checkout_session_id,
            payment_reference=f"order_{uuid4().hex}",
            payment_status=PaymentStatus.PENDING,
            prescription_id=prescription_id,
        ), session)

        new_lines = [OrderItemDTO(
            order_id=order_id,
            seller_id=line.seller_id,
            catalog_item_id=line.catalog_item_id,
            quantity=line.quantity,
            price=line.price,
        ) for line in lines]
        await OrderItemRepository.create_many(new_lines, session)
        await InventoryLedger.reserve_lines(new_lines, session)
        return await OrderRepository.get_by_id(order_id, session)

    @staticmethod
    async def _get_payable_orders(checkout_session_id: str | None, session: AsyncSession | Session) -> list[OrderDTO]:
        if checkout_session_id is None:
            return []
        orders = await OrderRepository.get_by_checkout_session(checkout_session_id, session,
                                                               statuses=[OrderStatus.PENDING])
        return [order for order in orders if order.payment_status != PaymentStatus.PAID]

    @staticmethod
    async def _initiate_payment(checkout_session_id: str, amount: Decimal, email: str, payment_references: list[str],
                                order_ids: list[int], session: AsyncSession | Session,
                                gateway: PaymentGateway | None) -> CheckoutSessionDTO:
        """Open the gateway transaction and record which order references it settles. Does not commit."""
        gateway = gateway or get_gateway()
        transaction_reference = f"session_{checkout_session_id}_{uuid4().hex}"
        amount_minor = to_minor_units(amount)
        callback_url = f"{config.PAYMENT_CALLBACK_URL}?session={checkout_session_id}"

        try:
            initialization = await gateway.initialize(amount_minor, email, transaction_reference, callback_url)
        except GatewayError as e:
            logger.error(f"Checkout {checkout_session_id}: payment initiation failed for orders {order_ids}: {e}")
            raise GatewayInitiationFailedException(checkout_session_id, str(e), order_ids) from e

        checkout_session = CheckoutSessionDTO(
            transaction_reference=transaction_reference,
            checkout_session_id=checkout_session_id,
            amount_minor=amount_minor,
            authorization_url=initialization.authorization_url,
            payment_references=payment_references,
        )
        await CheckoutSessionRepository.create(checkout_session, session)
        logger.info(f"Checkout {checkout_session_id}: transaction {transaction_reference} opened "
                    f"for {amount_minor} minor units covering orders {order_ids}")
        return checkout_session

    @staticmethod
    def _placeholder_email(guest_id: str) -> str:
        return f"guest-{guest_id}@{config.PAYMENT_PLACEHOLDER_EMAIL_DOMAIN}"
