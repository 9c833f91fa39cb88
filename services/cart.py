import logging
from decimal import Decimal

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from db import session_commit, session_rollback
from enums.order_status import OrderStatus
from exceptions.cart import CartItemNotFoundException, OfferingNotFoundException
from exceptions.order import InsufficientStockException
from models.cart import CartSellerGroupDTO, CartViewDTO
from models.order import OrderDTO
from models.orderItem import OrderItemDTO
from repositories.catalog_item import SellerRepository
from repositories.order import OrderRepository
from repositories.orderItem import OrderItemRepository
from repositories.seller_offering import SellerOfferingRepository
from services.inventory import InventoryLedger
from utils.contact_validation import validate_quantity

logger = logging.getLogger(__name__)


class CartService:
    """
    The guest's mutable basket: one Order row in status CART plus its lines.

    Stock is only pre-checked here; nothing is reserved before checkout.
    Every mutation recomputes the cart total, and a cart left without lines
    is deleted.
    """

    @staticmethod
    async def add_item(guest_id: str, seller_id: int, item_id: int, quantity: int,
                       session: AsyncSession | Session) -> CartViewDTO:
        validate_quantity(quantity)

        offering = await SellerOfferingRepository.get(seller_id, item_id, session)
        if offering is None:
            raise OfferingNotFoundException(seller_id, item_id)

        cart = await CartService._get_or_create_cart(guest_id, session)
        existing_line = await OrderItemRepository.get_line(cart.id, seller_id, item_id, session)
        new_quantity = quantity + (existing_line.quantity if existing_line else 0)

        if not await InventoryLedger.has_stock(seller_id, item_id, new_quantity, session):
            await session_rollback(session)
            raise InsufficientStockException(item_id, requested=new_quantity, available=offering.stock,
                                             seller_id=seller_id)

        if existing_line is None:
            # Price snapshot: later offering price changes don't touch this line
            await OrderItemRepository.create(OrderItemDTO(
                order_id=cart.id,
                seller_id=seller_id,
                catalog_item_id=item_id,
                quantity=quantity,
                price=offering.price
            ), session)
        else:
            await OrderItemRepository.update_line(existing_line.id, session, quantity=new_quantity)

        await OrderRepository.recalculate_total(cart.id, session)
        await session_commit(session)
        logger.info(f"Cart {cart.id}: guest {guest_id} added {quantity} x item {item_id} from seller {seller_id}")
        return await CartService.get_cart(guest_id, session)

    @staticmethod
    async def update_item(guest_id: str, line_id: int, quantity: int,
                          session: AsyncSession | Session) -> CartViewDTO:
        validate_quantity(quantity)

        cart, line = await CartService._get_cart_line(guest_id, line_id, session)
        offering = await SellerOfferingRepository.get(line.seller_id, line.catalog_item_id, session)
        if offering is None or offering.stock < quantity:
            raise InsufficientStockException(line.catalog_item_id, requested=quantity,
                                             available=offering.stock if offering else 0,
                                             seller_id=line.seller_id)

        await OrderItemRepository.update_line(line.id, session, quantity=quantity, price=offering.price)
        await OrderRepository.recalculate_total(cart.id, session)
        await session_commit(session)
        logger.info(f"Cart {cart.id}: line {line_id} set to quantity {quantity}")
        return await CartService.get_cart(guest_id, session)

    @staticmethod
    async def remove_item(guest_id: str, line_id: int, session: AsyncSession | Session) -> CartViewDTO:
        cart, line = await CartService._get_cart_line(guest_id, line_id, session)

        await OrderItemRepository.delete_line(line.id, session)
        remaining_lines = await OrderRepository.recalculate_total(cart.id, session)
        if remaining_lines == 0:
            await OrderRepository.delete_cart(cart.id, session)
            logger.info(f"Cart {cart.id}: last line removed, cart deleted")
        await session_commit(session)
        return await CartService.get_cart(guest_id, session)

    @staticmethod
    async def get_cart(guest_id: str, session: AsyncSession | Session) -> CartViewDTO:
        """Lines grouped by seller with subtotals. Never mutates."""
        cart = await OrderRepository.get_cart(guest_id, session)
        if cart is None:
            return CartViewDTO(guest_id=guest_id)

        lines = await OrderItemRepository.get_details_by_order_id(cart.id, session)
        sellers = await SellerRepository.get_by_ids(sorted({line.seller_id for line in lines}), session)

        groups: dict[int, CartSellerGroupDTO] = {}
        for line in lines:
            group = groups.get(line.seller_id)
            if group is None:
                seller = sellers.get(line.seller_id)
                group = CartSellerGroupDTO(seller_id=line.seller_id, seller_name=seller.name if seller else None)
                groups[line.seller_id] = group
            group.lines.append(line)
            group.subtotal += line.line_total

        return CartViewDTO(
            order_id=cart.id,
            guest_id=guest_id,
            groups=list(groups.values()),
            total=sum((group.subtotal for group in groups.values()), Decimal("0"))
        )

    @staticmethod
    async def _get_or_create_cart(guest_id: str, session: AsyncSession | Session) -> OrderDTO:
        cart = await OrderRepository.get_cart(guest_id, session)
        if cart is not None:
            return cart
        try:
            cart_id = await OrderRepository.create(OrderDTO(guest_id=guest_id, status=OrderStatus.CART), session)
        except IntegrityError:
            # A concurrent request created the guest's cart first (one-cart-per-guest index)
            await session_rollback(session)
            cart = await OrderRepository.get_cart(guest_id, session)
            if cart is None:
                raise
            return cart
        logger.info(f"Cart {cart_id} created for guest {guest_id}")
        return await OrderRepository.get_by_id(cart_id, session)

    @staticmethod
    async def _get_cart_line(guest_id: str, line_id: int,
                             session: AsyncSession | Session) -> tuple[OrderDTO, OrderItemDTO]:
        cart = await OrderRepository.get_cart(guest_id, session)
        line = await OrderItemRepository.get_by_id(line_id, session) if cart is not None else None
        if cart is None or line is None or line.order_id != cart.id:
            raise CartItemNotFoundException(line_id)
        return cart, line
