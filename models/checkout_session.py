from datetime import datetime

from pydantic import BaseModel
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index, Text

from models.base import Base


class CheckoutSession(Base):
    """
    One payment gateway transaction.

    A single transaction may settle several sibling orders (one per seller /
    prescription bucket), so the order payment references it covers are kept
    in checkout_session_references. A checkout session id can own several
    transactions when payment is resumed.
    """
    __tablename__ = 'checkout_sessions'

    id = Column(Integer, primary_key=True)
    transaction_reference = Column(String(128), nullable=False, unique=True)
    checkout_session_id = Column(String(64), nullable=False)
    amount_minor = Column(Integer, nullable=False)  # Smallest currency unit, as sent to the gateway
    authorization_url = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.now)

    __table_args__ = (
        Index('ix_checkout_sessions_session_id', 'checkout_session_id'),
    )


class CheckoutSessionReference(Base):
    __tablename__ = 'checkout_session_references'

    id = Column(Integer, primary_key=True)
    transaction_reference = Column(
        String(128),
        ForeignKey('checkout_sessions.transaction_reference', ondelete='CASCADE'),
        nullable=False
    )
    payment_reference = Column(String(128), nullable=False)

    __table_args__ = (
        Index('ix_checkout_session_references_payment', 'payment_reference'),
        Index('ix_checkout_session_references_unique', 'transaction_reference', 'payment_reference', unique=True),
    )


class CheckoutSessionDTO(BaseModel):
    id: int | None = None
    transaction_reference: str | None = None
    checkout_session_id: str | None = None
    amount_minor: int | None = None
    authorization_url: str | None = None
    created_at: datetime | None = None
    payment_references: list[str] = []
