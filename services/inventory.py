import logging
from typing import Iterable

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from exceptions.order import InsufficientStockException
from models.orderItem import OrderItemDTO
from repositories.seller_offering import SellerOfferingRepository

logger = logging.getLogger(__name__)


class InventoryLedger:
    """
    Sole writer of SellerOffering.stock.

    Every mutation is a single conditional UPDATE, never read-modify-write.
    The ledger does not commit; the caller's transaction decides whether
    reservations stick.
    """

    @staticmethod
    async def reserve(seller_id: int, item_id: int, quantity: int, session: AsyncSession | Session) -> None:
        """
        Take `quantity` units out of stock.

        Raises:
            InsufficientStockException: Stock was lower than quantity (or the offering does not exist).
                Nothing was changed.
        """
        reserved = await SellerOfferingRepository.decrement_stock_if_available(seller_id, item_id, quantity, session)
        if not reserved:
            available = await SellerOfferingRepository.get_stock(seller_id, item_id, session)
            logger.warning(f"Reservation refused: seller {seller_id} item {item_id} "
                           f"requested {quantity}, available {available or 0}")
            raise InsufficientStockException(item_id, requested=quantity, available=available or 0,
                                             seller_id=seller_id)
        logger.debug(f"Reserved {quantity} x item {item_id} at seller {seller_id}")

    @staticmethod
    async def release(seller_id: int, item_id: int, quantity: int, session: AsyncSession | Session) -> None:
        """Return `quantity` units to stock. Never raises for a missing offering."""
        released = await SellerOfferingRepository.increment_stock(seller_id, item_id, quantity, session)
        if not released:
            logger.warning(f"Release skipped: seller {seller_id} no longer offers item {item_id} "
                           f"({quantity} units not returned)")
            return
        logger.debug(f"Released {quantity} x item {item_id} at seller {seller_id}")

    @staticmethod
    async def reserve_lines(lines: Iterable[OrderItemDTO], session: AsyncSession | Session) -> None:
        """
        Reserve every line, stopping at the first refusal.

        Reservations made before the refusal are still pending in the session;
        the caller must roll back to undo them.
        """
        for line in lines:
            await InventoryLedger.reserve(line.seller_id, line.catalog_item_id, line.quantity, session)

    @staticmethod
    async def release_lines(lines: Iterable[OrderItemDTO], session: AsyncSession | Session) -> None:
        for line in lines:
            await InventoryLedger.release(line.seller_id, line.catalog_item_id, line.quantity, session)

    @staticmethod
    async def has_stock(seller_id: int, item_id: int, quantity: int, session: AsyncSession | Session) -> bool:
        """Read-only pre-check, not a reservation."""
        stock = await SellerOfferingRepository.get_stock(seller_id, item_id, session)
        return stock is not None and stock >= quantity
