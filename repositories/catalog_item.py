from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from db import session_execute, session_flush
from models.catalog_item import CatalogItem, CatalogItemDTO
from models.seller import Seller, SellerDTO


class CatalogItemRepository:
    @staticmethod
    async def get_by_id(catalog_item_id: int, session: AsyncSession | Session) -> CatalogItemDTO | None:
        stmt = select(CatalogItem).where(CatalogItem.id == catalog_item_id)
        item = await session_execute(stmt, session)
        item = item.scalar()
        if item is not None:
            return CatalogItemDTO.model_validate(item, from_attributes=True)
        return None

    @staticmethod
    async def get_by_ids(catalog_item_ids: list[int], session: AsyncSession | Session) -> dict[int, CatalogItemDTO]:
        if not catalog_item_ids:
            return {}
        stmt = select(CatalogItem).where(CatalogItem.id.in_(catalog_item_ids))
        items = await session_execute(stmt, session)
        return {
            item.id: CatalogItemDTO.model_validate(item, from_attributes=True)
            for item in items.scalars().all()
        }

    @staticmethod
    async def create(item_dto: CatalogItemDTO, session: AsyncSession | Session) -> int:
        item = CatalogItem(**item_dto.model_dump(exclude_none=True))
        session.add(item)
        await session_flush(session)
        return item.id


class SellerRepository:
    @staticmethod
    async def get_by_ids(seller_ids: list[int], session: AsyncSession | Session) -> dict[int, SellerDTO]:
        if not seller_ids:
            return {}
        stmt = select(Seller).where(Seller.id.in_(seller_ids))
        sellers = await session_execute(stmt, session)
        return {
            seller.id: SellerDTO.model_validate(seller, from_attributes=True)
            for seller in sellers.scalars().all()
        }

    @staticmethod
    async def create(seller_dto: SellerDTO, session: AsyncSession | Session) -> int:
        seller = Seller(**seller_dto.model_dump(exclude_none=True))
        session.add(seller)
        await session_flush(session)
        return seller.id
