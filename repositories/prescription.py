from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from db import session_execute, session_flush
from enums.prescription_status import PrescriptionStatus
from models.prescription import Prescription, PrescriptionDTO, PrescriptionItem, PrescriptionItemDTO


class PrescriptionRepository:
    @staticmethod
    async def create(prescription_dto: PrescriptionDTO, session: AsyncSession | Session) -> int:
        prescription = Prescription(**prescription_dto.model_dump(exclude_none=True))
        session.add(prescription)
        await session_flush(session)
        return prescription.id

    @staticmethod
    async def get_by_id(prescription_id: int, session: AsyncSession | Session) -> PrescriptionDTO | None:
        stmt = select(Prescription).where(Prescription.id == prescription_id)
        prescription = await session_execute(stmt, session)
        prescription = prescription.scalar()
        if prescription is not None:
            return PrescriptionDTO.model_validate(prescription, from_attributes=True)
        return None

    @staticmethod
    async def get_latest_by_status(guest_id: str, status: PrescriptionStatus,
                                   session: AsyncSession | Session) -> PrescriptionDTO | None:
        stmt = select(Prescription).where(
            Prescription.guest_id == guest_id,
            Prescription.status == status
        ).order_by(Prescription.created_at.desc(), Prescription.id.desc()).limit(1)
        prescription = await session_execute(stmt, session)
        prescription = prescription.scalar()
        if prescription is not None:
            return PrescriptionDTO.model_validate(prescription, from_attributes=True)
        return None

    @staticmethod
    async def set_review(prescription_id: int, status: PrescriptionStatus, reviewed_by: str, reviewed_at,
                         session: AsyncSession | Session) -> bool:
        """Guarded on PENDING so two reviewers cannot both decide."""
        stmt = update(Prescription).where(
            Prescription.id == prescription_id,
            Prescription.status == PrescriptionStatus.PENDING
        ).values(status=status, reviewed_by=reviewed_by, reviewed_at=reviewed_at)
        result = await session_execute(stmt, session)
        return result.rowcount == 1

    @staticmethod
    async def add_items(items: list[PrescriptionItemDTO], session: AsyncSession | Session) -> None:
        for item_dto in items:
            session.add(PrescriptionItem(**item_dto.model_dump(exclude_none=True, exclude={'id'})))
        await session_flush(session)

    @staticmethod
    async def get_items(prescription_id: int, session: AsyncSession | Session) -> list[PrescriptionItemDTO]:
        stmt = select(PrescriptionItem).where(PrescriptionItem.prescription_id == prescription_id) \
            .order_by(PrescriptionItem.id)
        items = await session_execute(stmt, session)
        return [PrescriptionItemDTO.model_validate(item, from_attributes=True) for item in items.scalars().all()]

    @staticmethod
    async def get_covered_item_ids(prescription_id: int, session: AsyncSession | Session) -> set[int]:
        stmt = select(PrescriptionItem.catalog_item_id).where(PrescriptionItem.prescription_id == prescription_id)
        result = await session_execute(stmt, session)
        return set(result.scalars().all())
