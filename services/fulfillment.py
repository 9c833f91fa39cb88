import logging

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from db import session_commit
from enums.order_status import OrderStatus
from exceptions import OrderNotFoundException, InvalidOrderStateException, UnauthorizedException
from models.identity import CallerIdentity
from models.order import OrderDTO
from repositories.order import OrderRepository
from utils.order_state_machine import OrderStateMachine
from utils.permission_utils import can_manage_order

logger = logging.getLogger(__name__)


class FulfillmentService:
    @staticmethod
    async def advance(identity: CallerIdentity, order_id: int, new_status: OrderStatus,
                      session: AsyncSession | Session) -> OrderDTO:
        """
        Move a confirmed order through processing, shipping/pickup and delivery.

        Sellers may only act on their own orders, operators on any.
        """
        order = await OrderRepository.get_by_id(order_id, session)
        if order is None or order.status == OrderStatus.CART:
            raise OrderNotFoundException(order_id)
        if not can_manage_order(identity, order):
            raise UnauthorizedException(identity.caller_id, f"update order {order_id}")

        OrderStateMachine.assert_transition(order.id, order.status, new_status, identity.role.value)
        updated = await OrderRepository.update_status(order.id, order.status, new_status, session)
        if not updated:
            current = await OrderRepository.get_by_id(order_id, session)
            raise InvalidOrderStateException(order_id, current.status.value, order.status.value)

        await session_commit(session)
        logger.info(f"Order {order_id} moved to {new_status.value} by {identity.role.value} {identity.caller_id}")
        return await OrderRepository.get_by_id(order_id, session)
