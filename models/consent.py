from datetime import datetime

from pydantic import BaseModel
from sqlalchemy import Column, Integer, String, DateTime, Boolean, Enum as SQLEnum, Index

from enums.consent_type import ConsentType
from models.base import Base


class PatientConsent(Base):
    """
    Latest consent decision of a guest, one row per consent type.

    Granting again after a revocation updates the row in place.
    """
    __tablename__ = 'patient_consents'

    id = Column(Integer, primary_key=True)
    guest_id = Column(String(128), nullable=False)  # Stored lowercased
    consent_type = Column(SQLEnum(ConsentType), nullable=False)
    granted = Column(Boolean, nullable=False, default=False)
    updated_at = Column(DateTime, nullable=False, default=datetime.now)

    __table_args__ = (
        Index('ix_patient_consents_guest_type', 'guest_id', 'consent_type', unique=True),
    )


class ConsentDTO(BaseModel):
    id: int | None = None
    guest_id: str | None = None
    consent_type: ConsentType | None = None
    granted: bool | None = None
    updated_at: datetime | None = None
