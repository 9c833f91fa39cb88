import logging

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from enums.order_status import OrderStatus
from exceptions import OrderNotFoundException
from models.order import OrderDTO
from repositories.order import OrderRepository
from utils.contact_validation import validate_tracking_code

logger = logging.getLogger(__name__)

# Tracking codes are only handed out once payment is captured
TRACKABLE_STATUSES = [
    OrderStatus.PENDING_PRESCRIPTION,
    OrderStatus.CONFIRMED,
    OrderStatus.PROCESSING,
    OrderStatus.SHIPPED,
    OrderStatus.READY_FOR_PICKUP,
    OrderStatus.DELIVERED,
    OrderStatus.CANCELLED,
]


class TrackingService:
    @staticmethod
    async def get_orders_by_tracking_code(tracking_code: str, session: AsyncSession | Session) -> list[OrderDTO]:
        validate_tracking_code(tracking_code)
        orders = await OrderRepository.get_by_tracking_code(tracking_code, TRACKABLE_STATUSES, session)
        if not orders:
            raise OrderNotFoundException(tracking_code=tracking_code)
        logger.debug(f"Tracking code {tracking_code} resolved to orders {[o.id for o in orders]}")
        return orders
