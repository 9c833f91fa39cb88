from datetime import datetime
from decimal import Decimal
import logging

from sqlalchemy import select, update, delete, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from db import session_execute, session_flush
from enums.order_status import OrderStatus
from models.order import Order, OrderDTO
from models.orderItem import OrderItem

logger = logging.getLogger(__name__)


class OrderRepository:
    @staticmethod
    async def create(order_dto: OrderDTO, session: AsyncSession | Session) -> int:
        order = Order(**order_dto.model_dump(exclude_none=True))
        session.add(order)
        await session_flush(session)
        return order.id

    @staticmethod
    async def get_by_id(order_id: int, session: AsyncSession | Session) -> OrderDTO | None:
        stmt = select(Order).where(Order.id == order_id).execution_options(populate_existing=True)
        order = await session_execute(stmt, session)
        order = order.scalar()
        if order is not None:
            return OrderDTO.model_validate(order, from_attributes=True)
        return None

    @staticmethod
    async def get_cart(guest_id: str, session: AsyncSession | Session) -> OrderDTO | None:
        stmt = select(Order).where(Order.guest_id == guest_id, Order.status == OrderStatus.CART)
        order = await session_execute(stmt, session)
        order = order.scalar()
        if order is not None:
            return OrderDTO.model_validate(order, from_attributes=True)
        return None

    @staticmethod
    async def delete_cart(order_id: int, session: AsyncSession | Session) -> bool:
        """
        Delete a cart row and its lines, guarded by status.

        Returns:
            False if the row is no longer a cart (e.g. a concurrent checkout already split it)
        """
        stmt = delete(Order).where(Order.id == order_id, Order.status == OrderStatus.CART)
        result = await session_execute(stmt, session)
        if result.rowcount != 1:
            return False
        # Lines cascade in the database; this covers engines without FK enforcement
        await session_execute(
            delete(OrderItem).where(OrderItem.order_id == order_id),
            session
        )
        return True

    @staticmethod
    async def get_by_payment_reference(payment_reference: str, session: AsyncSession | Session) -> OrderDTO | None:
        stmt = select(Order).where(Order.payment_reference == payment_reference)
        order = await session_execute(stmt, session)
        order = order.scalar()
        if order is not None:
            return OrderDTO.model_validate(order, from_attributes=True)
        return None

    @staticmethod
    async def get_by_payment_references(payment_references: list[str],
                                        session: AsyncSession | Session) -> list[OrderDTO]:
        if not payment_references:
            return []
        stmt = select(Order).where(Order.payment_reference.in_(payment_references)).order_by(Order.id)
        orders = await session_execute(stmt, session)
        return [OrderDTO.model_validate(order, from_attributes=True) for order in orders.scalars().all()]

    @staticmethod
    async def get_by_checkout_session(checkout_session_id: str, session: AsyncSession | Session,
                                      statuses: list[OrderStatus] | None = None) -> list[OrderDTO]:
        stmt = select(Order).where(Order.checkout_session_id == checkout_session_id)
        if statuses:
            stmt = stmt.where(Order.status.in_(statuses))
        stmt = stmt.order_by(Order.id)
        orders = await session_execute(stmt, session)
        return [OrderDTO.model_validate(order, from_attributes=True) for order in orders.scalars().all()]

    @staticmethod
    async def get_session_tracking_code(checkout_session_id: str, session: AsyncSession | Session) -> str | None:
        stmt = select(Order.tracking_code).where(
            Order.checkout_session_id == checkout_session_id,
            Order.tracking_code.is_not(None)
        ).limit(1)
        result = await session_execute(stmt, session)
        return result.scalar()

    @staticmethod
    async def get_by_tracking_code(tracking_code: str, statuses: list[OrderStatus],
                                   session: AsyncSession | Session) -> list[OrderDTO]:
        stmt = select(Order).where(
            Order.tracking_code == tracking_code,
            Order.status.in_(statuses)
        ).order_by(Order.id)
        orders = await session_execute(stmt, session)
        return [OrderDTO.model_validate(order, from_attributes=True) for order in orders.scalars().all()]

    @staticmethod
    async def get_by_prescription(prescription_id: int, status: OrderStatus,
                                  session: AsyncSession | Session) -> list[OrderDTO]:
        stmt = select(Order).where(Order.prescription_id == prescription_id, Order.status == status).order_by(Order.id)
        orders = await session_execute(stmt, session)
        return [OrderDTO.model_validate(order, from_attributes=True) for order in orders.scalars().all()]

    @staticmethod
    async def get_timed_out(status: OrderStatus, created_before: datetime,
                            session: AsyncSession | Session) -> list[OrderDTO]:
        stmt = select(Order).where(
            Order.status == status,
            Order.created_at < created_before
        ).order_by(Order.created_at)
        orders = await session_execute(stmt, session)
        return [OrderDTO.model_validate(order, from_attributes=True) for order in orders.scalars().all()]

    @staticmethod
    async def update(order_id: int, session: AsyncSession | Session, **values) -> None:
        stmt = update(Order).where(Order.id == order_id).values(updated_at=datetime.now(), **values)
        await session_execute(stmt, session)

    @staticmethod
    async def update_status(order_id: int, expected_status: OrderStatus, new_status: OrderStatus,
                            session: AsyncSession | Session, **values) -> bool:
        """
        Compare-and-set status change.

        Returns:
            False if the order left expected_status in the meantime
        """
        stmt = update(Order).where(Order.id == order_id, Order.status == expected_status) \
            .values(status=new_status, updated_at=datetime.now(), **values)
        result = await session_execute(stmt, session)
        return result.rowcount == 1

    @staticmethod
    async def recalculate_total(order_id: int, session: AsyncSession | Session) -> int:
        """
        Recompute total_price from the order's lines.

        Returns:
            Number of remaining lines
        """
        stmt = select(
            func.count(OrderItem.id),
            func.coalesce(func.sum(OrderItem.price * OrderItem.quantity), 0)
        ).where(OrderItem.order_id == order_id)
        result = await session_execute(stmt, session)
        line_count, total = result.one()
        # SQLite sums NUMERIC as float
        total_price = Decimal(str(total)).quantize(Decimal("0.01"))
        await OrderRepository.update(order_id, session, total_price=total_price)
        return line_count
