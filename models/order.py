from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel
from sqlalchemy import Column, Integer, Numeric, DateTime, ForeignKey, String, CheckConstraint, Index, Text, \
    Enum as SQLEnum, text
from sqlalchemy.orm import relationship

from enums.fulfillment_method import FulfillmentMethod
from enums.order_status import OrderStatus
from enums.payment_status import PaymentStatus
from models.base import Base


class Order(Base):
    """
    A guest's cart and, after checkout, one of the orders it was split into.

    The role is decided by `status`: a CART row is the mutable basket (deleted at
    checkout), every other status is a durable order that is never deleted.
    """
    __tablename__ = 'orders'

    id = Column(Integer, primary_key=True, unique=True)
    guest_id = Column(String(64), nullable=False)
    seller_id = Column(Integer, ForeignKey('sellers.id'), nullable=True)  # NULL while CART (mixed sellers)
    status = Column(SQLEnum(OrderStatus), nullable=False, default=OrderStatus.CART)
    fulfillment_method = Column(SQLEnum(FulfillmentMethod), nullable=False, default=FulfillmentMethod.UNSPECIFIED)
    total_price = Column(Numeric(12, 2), nullable=False, default=Decimal("0"))

    # Contact (captured at checkout)
    customer_name = Column(String, nullable=True)
    email = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    address = Column(Text, nullable=True)

    # Checkout / Payment
    checkout_session_id = Column(String(64), nullable=True)  # Shared by sibling orders of one checkout
    payment_reference = Column(String(128), nullable=True, unique=True)
    payment_status = Column(SQLEnum(PaymentStatus), nullable=False, default=PaymentStatus.PENDING)
    prescription_id = Column(Integer, ForeignKey('prescriptions.id'), nullable=True)
    tracking_code = Column(String(64), nullable=True)

    # Timestamps
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)
    paid_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)

    # Cancellation Reason (set by the timeout sweep)
    cancel_reason = Column(Text, nullable=True)

    # Relations
    items = relationship('OrderItem', back_populates='order', cascade='all, delete-orphan', passive_deletes=True)
    prescription = relationship('Prescription', back_populates='orders')

    __table_args__ = (
        CheckConstraint('total_price >= 0', name='check_order_total_price_non_negative'),
        Index('ix_orders_guest_status', 'guest_id', 'status'),
        Index('ix_orders_checkout_session', 'checkout_session_id'),
        Index('ix_orders_tracking_code', 'tracking_code'),
        # At most one CART per guest
        Index(
            'ix_orders_one_cart_per_guest', 'guest_id',
            unique=True,
            sqlite_where=text("status = 'CART'"),
            postgresql_where=text("status = 'CART'"),
        ),
    )


class OrderDTO(BaseModel):
    id: int | None = None
    guest_id: str | None = None
    seller_id: int | None = None
    status: OrderStatus | None = None
    fulfillment_method: FulfillmentMethod | None = None
    total_price: Decimal | None = None
    customer_name: str | None = None
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    checkout_session_id: str | None = None
    payment_reference: str | None = None
    payment_status: PaymentStatus | None = None
    prescription_id: int | None = None
    tracking_code: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    paid_at: datetime | None = None
    cancelled_at: datetime | None = None
    cancel_reason: str | None = None
