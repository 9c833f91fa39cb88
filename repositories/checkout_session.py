from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from db import session_execute, session_flush
from models.checkout_session import CheckoutSession, CheckoutSessionDTO, CheckoutSessionReference


class CheckoutSessionRepository:
    @staticmethod
    async def create(checkout_session_dto: CheckoutSessionDTO, session: AsyncSession | Session) -> int:
        checkout_session = CheckoutSession(
            **checkout_session_dto.model_dump(exclude_none=True, exclude={'id', 'payment_references'})
        )
        session.add(checkout_session)
        await session_flush(session)
        for payment_reference in checkout_session_dto.payment_references:
            session.add(CheckoutSessionReference(
                transaction_reference=checkout_session_dto.transaction_reference,
                payment_reference=payment_reference
            ))
        await session_flush(session)
        return checkout_session.id

    @staticmethod
    async def get_by_transaction_reference(transaction_reference: str,
                                           session: AsyncSession | Session) -> CheckoutSessionDTO | None:
        stmt = select(CheckoutSession).where(CheckoutSession.transaction_reference == transaction_reference)
        checkout_session = await session_execute(stmt, session)
        checkout_session = checkout_session.scalar()
        if checkout_session is None:
            return None
        checkout_session_dto = CheckoutSessionDTO.model_validate(checkout_session, from_attributes=True)
        checkout_session_dto.payment_references = await CheckoutSessionRepository._get_payment_references(
            transaction_reference, session
        )
        return checkout_session_dto

    @staticmethod
    async def get_by_payment_reference(payment_reference: str,
                                       session: AsyncSession | Session) -> CheckoutSessionDTO | None:
        """Latest transaction that covers the given order payment reference."""
        stmt = select(CheckoutSession).join(
            CheckoutSessionReference,
            CheckoutSessionReference.transaction_reference == CheckoutSession.transaction_reference
        ).where(
            CheckoutSessionReference.payment_reference == payment_reference
        ).order_by(CheckoutSession.created_at.desc(), CheckoutSession.id.desc()).limit(1)
        checkout_session = await session_execute(stmt, session)
        checkout_session = checkout_session.scalar()
        if checkout_session is None:
            return None
        checkout_session_dto = CheckoutSessionDTO.model_validate(checkout_session, from_attributes=True)
        checkout_session_dto.payment_references = await CheckoutSessionRepository._get_payment_references(
            checkout_session.transaction_reference, session
        )
        return checkout_session_dto

    @staticmethod
    async def _get_payment_references(transaction_reference: str, session: AsyncSession | Session) -> list[str]:
        stmt = select(CheckoutSessionReference.payment_reference).where(
            CheckoutSessionReference.transaction_reference == transaction_reference
        ).order_by(CheckoutSessionReference.id)
        result = await session_execute(stmt, session)
        return list(result.scalars().all())
