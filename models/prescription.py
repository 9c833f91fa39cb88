from datetime import datetime

from pydantic import BaseModel
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, CheckConstraint, Index, Text, \
    Enum as SQLEnum
from sqlalchemy.orm import relationship

from enums.prescription_status import PrescriptionStatus
from models.base import Base


class Prescription(Base):
    __tablename__ = 'prescriptions'

    id = Column(Integer, primary_key=True, unique=True)
    guest_id = Column(String(64), nullable=False)
    file_url = Column(Text, nullable=False)  # Opaque URL from document storage, stored verbatim
    status = Column(SQLEnum(PrescriptionStatus), nullable=False, default=PrescriptionStatus.PENDING)
    email = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    reviewed_by = Column(String(64), nullable=True)
    reviewed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.now)

    items = relationship('PrescriptionItem', back_populates='prescription', cascade='all, delete-orphan')
    orders = relationship('Order', back_populates='prescription')

    __table_args__ = (
        Index('ix_prescriptions_guest_status', 'guest_id', 'status'),
    )


class PrescriptionItem(Base):
    """Catalog item a prescription authorizes (the document's coverage)."""
    __tablename__ = 'prescription_items'

    id = Column(Integer, primary_key=True)
    prescription_id = Column(Integer, ForeignKey('prescriptions.id', ondelete='CASCADE'), nullable=False)
    catalog_item_id = Column(Integer, ForeignKey('catalog_items.id'), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    dosage_instructions = Column(Text, nullable=True)

    prescription = relationship('Prescription', back_populates='items')

    __table_args__ = (
        CheckConstraint('quantity > 0', name='ck_prescription_item_positive_quantity'),
        Index('ix_prescription_items_unique', 'prescription_id', 'catalog_item_id', unique=True),
    )


class PrescriptionDTO(BaseModel):
    id: int | None = None
    guest_id: str | None = None
    file_url: str | None = None
    status: PrescriptionStatus | None = None
    email: str | None = None
    phone: str | None = None
    reviewed_by: str | None = None
    reviewed_at: datetime | None = None
    created_at: datetime | None = None


class PrescriptionItemDTO(BaseModel):
    id: int | None = None
    prescription_id: int | None = None
    catalog_item_id: int | None = None
    quantity: int | None = None
    dosage_instructions: str | None = None
