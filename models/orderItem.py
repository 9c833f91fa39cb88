from decimal import Decimal

from pydantic import BaseModel
from sqlalchemy import Column, Integer, Numeric, ForeignKey, ForeignKeyConstraint, CheckConstraint, Index
from sqlalchemy.orm import relationship

from models.base import Base


class OrderItem(Base):
    __tablename__ = 'order_items'

    __table_args__ = (
        # Check constraints for data integrity
        CheckConstraint('quantity > 0', name='ck_order_item_positive_quantity'),
        CheckConstraint('price >= 0', name='ck_order_item_non_negative_price'),

        # Every line points at exactly one seller offering
        ForeignKeyConstraint(
            ['seller_id', 'catalog_item_id'],
            ['seller_offerings.seller_id', 'seller_offerings.catalog_item_id'],
        ),

        # Indexes for performance
        Index('ix_order_items_order_id', 'order_id'),

        # One line per offering in the same order (add-to-cart increments quantity instead)
        Index('ix_order_items_unique', 'order_id', 'seller_id', 'catalog_item_id', unique=True),
    )

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey('orders.id', ondelete='CASCADE'), nullable=False)
    seller_id = Column(Integer, nullable=False)
    catalog_item_id = Column(Integer, nullable=False)
    quantity = Column(Integer, nullable=False)
    # Price snapshot taken when the line was added; later offering price changes don't apply
    price = Column(Numeric(12, 2), nullable=False)

    # Relationships
    order = relationship("Order", back_populates="items")


class OrderItemDTO(BaseModel):
    id: int | None = None
    order_id: int | None = None
    seller_id: int | None = None
    catalog_item_id: int | None = None
    quantity: int | None = None
    price: Decimal | None = None

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity


class OrderLineDetailDTO(OrderItemDTO):
    """Order line joined with its catalog item, used by checkout and cart views."""
    item_name: str | None = None
    prescription_required: bool = False
