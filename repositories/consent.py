from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from db import session_execute, session_flush
from enums.consent_type import ConsentType
from models.consent import ConsentDTO, PatientConsent


class ConsentRepository:
    @staticmethod
    async def get(guest_id: str, consent_type: ConsentType, session: AsyncSession | Session) -> ConsentDTO | None:
        stmt = select(PatientConsent).where(
            PatientConsent.guest_id == guest_id.lower(),
            PatientConsent.consent_type == consent_type
        ).execution_options(populate_existing=True)
        consent = await session_execute(stmt, session)
        consent = consent.scalar()
        if consent is not None:
            return ConsentDTO.model_validate(consent, from_attributes=True)
        return None

    @staticmethod
    async def upsert(guest_id: str, consent_type: ConsentType, granted: bool,
                     session: AsyncSession | Session) -> None:
        stmt = update(PatientConsent).where(
            PatientConsent.guest_id == guest_id.lower(),
            PatientConsent.consent_type == consent_type
        ).values(granted=granted, updated_at=datetime.now())
        result = await session_execute(stmt, session)
        if result.rowcount == 0:
            session.add(PatientConsent(guest_id=guest_id.lower(), consent_type=consent_type, granted=granted,
                                       updated_at=datetime.now()))
        await session_flush(session)
