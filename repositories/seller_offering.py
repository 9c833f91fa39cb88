import logging

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from db import session_execute
from models.seller_offering import SellerOffering, SellerOfferingDTO

logger = logging.getLogger(__name__)


class SellerOfferingRepository:
    @staticmethod
    async def get(seller_id: int, catalog_item_id: int, session: AsyncSession | Session) -> SellerOfferingDTO | None:
        stmt = select(SellerOffering).where(
            SellerOffering.seller_id == seller_id,
            SellerOffering.catalog_item_id == catalog_item_id
        )
        offering = await session_execute(stmt, session)
        offering = offering.scalar()
        if offering is not None:
            return SellerOfferingDTO.model_validate(offering, from_attributes=True)
        return None

    @staticmethod
    async def get_stock(seller_id: int, catalog_item_id: int, session: AsyncSession | Session) -> int | None:
        stmt = select(SellerOffering.stock).where(
            SellerOffering.seller_id == seller_id,
            SellerOffering.catalog_item_id == catalog_item_id
        )
        result = await session_execute(stmt, session)
        return result.scalar()

    @staticmethod
    async def create(offering_dto: SellerOfferingDTO, session: AsyncSession | Session) -> None:
        session.add(SellerOffering(**offering_dto.model_dump()))

    @staticmethod
    async def decrement_stock_if_available(seller_id: int, catalog_item_id: int, quantity: int,
                                           session: AsyncSession | Session) -> bool:
        """
        Conditional decrement in a single statement.

        The guard `stock >= quantity` is evaluated by the database together with
        the write, so two concurrent callers can never both take the last unit.

        Returns:
            True if a row was updated, False if stock was insufficient or the offering is missing
        """
        stmt = (
            update(SellerOffering)
            .where(
                SellerOffering.seller_id == seller_id,
                SellerOffering.catalog_item_id == catalog_item_id,
                SellerOffering.stock >= quantity
            )
            .values(stock=SellerOffering.stock - quantity)
        )
        result = await session_execute(stmt, session)
        return result.rowcount == 1

    @staticmethod
    async def increment_stock(seller_id: int, catalog_item_id: int, quantity: int,
                              session: AsyncSession | Session) -> bool:
        stmt = (
            update(SellerOffering)
            .where(
                SellerOffering.seller_id == seller_id,
                SellerOffering.catalog_item_id == catalog_item_id
            )
            .values(stock=SellerOffering.stock + quantity)
        )
        result = await session_execute(stmt, session)
        return result.rowcount == 1
