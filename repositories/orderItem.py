from sqlalchemy import select, delete, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from db import session_execute, session_flush
from models.catalog_item import CatalogItem
from models.orderItem import OrderItem, OrderItemDTO, OrderLineDetailDTO


class OrderItemRepository:
    @staticmethod
    async def create(order_item: OrderItemDTO, session: AsyncSession | Session) -> int:
        item = OrderItem(**order_item.model_dump(exclude_none=True))
        session.add(item)
        await session_flush(session)
        return item.id

    @staticmethod
    async def create_many(order_items: list[OrderItemDTO], session: AsyncSession | Session) -> None:
        for order_item_dto in order_items:
            session.add(OrderItem(**order_item_dto.model_dump(exclude_none=True, exclude={'id'})))
        await session_flush(session)

    @staticmethod
    async def get_by_id(line_id: int, session: AsyncSession | Session) -> OrderItemDTO | None:
        stmt = select(OrderItem).where(OrderItem.id == line_id)
        item = await session_execute(stmt, session)
        item = item.scalar()
        if item is not None:
            return OrderItemDTO.model_validate(item, from_attributes=True)
        return None

    @staticmethod
    async def get_line(order_id: int, seller_id: int, catalog_item_id: int,
                       session: AsyncSession | Session) -> OrderItemDTO | None:
        stmt = select(OrderItem).where(
            OrderItem.order_id == order_id,
            OrderItem.seller_id == seller_id,
            OrderItem.catalog_item_id == catalog_item_id
        )
        item = await session_execute(stmt, session)
        item = item.scalar()
        if item is not None:
            return OrderItemDTO.model_validate(item, from_attributes=True)
        return None

    @staticmethod
    async def get_by_order_id(order_id: int, session: AsyncSession | Session) -> list[OrderItemDTO]:
        stmt = select(OrderItem).where(OrderItem.order_id == order_id).order_by(OrderItem.id)
        order_items = await session_execute(stmt, session)
        return [OrderItemDTO.model_validate(order_item, from_attributes=True)
                for order_item in order_items.scalars().all()]

    @staticmethod
    async def get_details_by_order_id(order_id: int, session: AsyncSession | Session) -> list[OrderLineDetailDTO]:
        """Lines joined with their catalog item (name, prescription flag)."""
        stmt = select(OrderItem, CatalogItem.name, CatalogItem.prescription_required).join(
            CatalogItem, CatalogItem.id == OrderItem.catalog_item_id
        ).where(OrderItem.order_id == order_id).order_by(OrderItem.seller_id, OrderItem.id)
        rows = await session_execute(stmt, session)
        details = []
        for order_item, item_name, prescription_required in rows.all():
            detail = OrderLineDetailDTO.model_validate(order_item, from_attributes=True)
            detail.item_name = item_name
            detail.prescription_required = bool(prescription_required)
            details.append(detail)
        return details

    @staticmethod
    async def update_line(line_id: int, session: AsyncSession | Session, **values) -> None:
        stmt = update(OrderItem).where(OrderItem.id == line_id).values(**values)
        await session_execute(stmt, session)

    @staticmethod
    async def delete_line(line_id: int, session: AsyncSession | Session) -> None:
        stmt = delete(OrderItem).where(OrderItem.id == line_id)
        await session_execute(stmt, session)
