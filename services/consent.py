import logging

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from db import session_commit
from enums.consent_type import ConsentType
from exceptions import UnauthorizedException, ValidationException
from models.consent import ConsentDTO
from repositories.consent import ConsentRepository

logger = logging.getLogger(__name__)


class ConsentService:

    @staticmethod
    async def record(guest_id: str, consent_type: ConsentType, granted: bool,
                     session: AsyncSession | Session) -> ConsentDTO:
        """
        Grant or revoke one consent type for a guest.

        Guest ids are matched case-insensitively; the latest decision wins.
        """
        guest_id = (guest_id or "").strip()
        if not guest_id:
            raise ValidationException("guest_id", "is required")
        await ConsentRepository.upsert(guest_id, consent_type, granted, session)
        await session_commit(session)
        logger.info(f"Guest {guest_id} {'granted' if granted else 'revoked'} {consent_type.value} consent")
        return await ConsentRepository.get(guest_id, consent_type, session)

    @staticmethod
    async def has_consent(guest_id: str, consent_type: ConsentType, session: AsyncSession | Session) -> bool:
        consent = await ConsentRepository.get(guest_id, consent_type, session)
        return consent is not None and consent.granted

    @staticmethod
    async def require_data_sharing(guest_id: str, session: AsyncSession | Session) -> None:
        """
        Gate for operations that store or reveal a guest's health data
        (checkout, prescription upload, checkout session details).

        Raises:
            UnauthorizedException: No granted DATA_SHARING consent on record
        """
        if not await ConsentService.has_consent(guest_id, ConsentType.DATA_SHARING, session):
            logger.warning(f"Guest {guest_id} blocked: DATA_SHARING consent missing")
            raise UnauthorizedException(guest_id, "share health data without DATA_SHARING consent")
