"""Recruitment letter and deployment repositories.

used_quota on a letter is a cache; the API recalculates it from the
letter's deployments after every create or status change.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from agencyops.db.tables import DeploymentRow, RecruitmentLetterRow
from agencyops.models.common import utc_now


class RecruitmentLetterRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, *, letter_id: UUID, employer_id: UUID,
                     letter_number: str, approved_quota: int,
                     quota_male: int = 0, quota_female: int = 0,
                     can_circulate: bool = False,
                     issue_date: date | None = None,
                     expiry_date: date | None = None) -> RecruitmentLetterRow:
        row = RecruitmentLetterRow(
            letter_id=letter_id, employer_id=employer_id,
            letter_number=letter_number, approved_quota=approved_quota,
            quota_male=quota_male, quota_female=quota_female,
            can_circulate=can_circulate, used_quota=0,
            issue_date=issue_date, expiry_date=expiry_date,
            created_at=utc_now(),
        )
        self._session.add(row)
        await self._session.flush()
        return row

    async def get(self, letter_id: UUID) -> RecruitmentLetterRow | None:
        return await self._session.get(RecruitmentLetterRow, letter_id)

    async def get_for_update(self, letter_id: UUID) -> RecruitmentLetterRow | None:
        """Fetch the letter with a row lock (no-op on SQLite)."""
        result = await self._session.execute(
            select(RecruitmentLetterRow)
            .where(RecruitmentLetterRow.letter_id == letter_id)
            .with_for_update()
        )
        return result.scalars().first()

    async def list_by_employer(self, employer_id: UUID) -> list[RecruitmentLetterRow]:
        result = await self._session.execute(
            select(RecruitmentLetterRow)
            .where(RecruitmentLetterRow.employer_id == employer_id)
            .order_by(RecruitmentLetterRow.created_at)
        )
        return list(result.scalars().all())

    async def set_used_quota(self, letter_id: UUID, used: int) -> RecruitmentLetterRow | None:
        row = await self.get(letter_id)
        if row is not None:
            row.used_quota = used
            await self._session.flush()
        return row


class DeploymentRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, *, deployment_id: UUID, employer_id: UUID,
                     worker_name: str, worker_nationality: str,
                     start_date: date,
                     worker_gender: str | None = None,
                     passport_expiry: date | None = None,
                     end_date: date | None = None,
                     recruitment_letter_id: UUID | None = None,
                     dormitory_name: str | None = None,
                     dormitory_rent: Decimal = Decimal("0"),
                     dormitory_management_fee: Decimal = Decimal("0"),
                     status: str = "pending") -> DeploymentRow:
        now = utc_now()
        row = DeploymentRow(
            deployment_id=deployment_id, employer_id=employer_id,
            recruitment_letter_id=recruitment_letter_id,
            worker_name=worker_name, worker_nationality=worker_nationality,
            worker_gender=worker_gender, passport_expiry=passport_expiry,
            start_date=start_date, end_date=end_date,
            dormitory_name=dormitory_name, dormitory_rent=dormitory_rent,
            dormitory_management_fee=dormitory_management_fee,
            status=status, created_at=now, updated_at=now,
        )
        self._session.add(row)
        await self._session.flush()
        return row

    async def get(self, deployment_id: UUID) -> DeploymentRow | None:
        return await self._session.get(DeploymentRow, deployment_id)

    async def list_by_letter(self, letter_id: UUID) -> list[DeploymentRow]:
        result = await self._session.execute(
            select(DeploymentRow).where(DeploymentRow.recruitment_letter_id == letter_id)
        )
        return list(result.scalars().all())

    async def update(self, deployment_id: UUID, **changes) -> DeploymentRow | None:
        row = await self.get(deployment_id)
        if row is not None:
            for field, value in changes.items():
                setattr(row, field, value)
            row.updated_at = utc_now()
            await self._session.flush()
        return row
