from decimal import Decimal

from pydantic import BaseModel
from sqlalchemy import Column, Integer, Numeric, ForeignKey, CheckConstraint

from models.base import Base


class SellerOffering(Base):
    __tablename__ = 'seller_offerings'

    seller_id = Column(Integer, ForeignKey('sellers.id', ondelete='CASCADE'), primary_key=True)
    catalog_item_id = Column(Integer, ForeignKey('catalog_items.id', ondelete='CASCADE'), primary_key=True)
    # Only the inventory ledger mutates stock (conditional UPDATE, never read-modify-write)
    stock = Column(Integer, nullable=False, default=0)
    price = Column(Numeric(12, 2), nullable=False)

    __table_args__ = (
        CheckConstraint('stock >= 0', name='ck_seller_offering_stock_non_negative'),
        CheckConstraint('price >= 0', name='ck_seller_offering_price_non_negative'),
    )


class SellerOfferingDTO(BaseModel):
    seller_id: int | None = None
    catalog_item_id: int | None = None
    stock: int | None = None
    price: Decimal | None = None
