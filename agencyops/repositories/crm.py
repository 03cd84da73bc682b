"""CRM repositories: leads, employers, labor counts, system comments.

Repos take AsyncSession, call add()/flush() only. The session dependency
handles commit/rollback (Unit-of-Work).
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from agencyops.db.tables import (
    EmployerLaborCountRow,
    EmployerRow,
    LeadRow,
    SystemCommentRow,
)
from agencyops.models.common import utc_now


class LeadRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, *, lead_id: UUID, company_name: str,
                     tax_id: str | None = None, industry: str | None = None,
                     address: str | None = None, contact_person: str | None = None,
                     phone: str | None = None, email: str | None = None,
                     estimated_worker_count: int | None = None,
                     status: str = "NEW") -> LeadRow:
        now = utc_now()
        row = LeadRow(
            lead_id=lead_id, company_name=company_name, tax_id=tax_id,
            industry=industry, address=address, contact_person=contact_person,
            phone=phone, email=email,
            estimated_worker_count=estimated_worker_count, status=status,
            created_at=now, updated_at=now,
        )
        self._session.add(row)
        await self._session.flush()
        return row

    async def get(self, lead_id: UUID) -> LeadRow | None:
        return await self._session.get(LeadRow, lead_id)

    async def get_by_tax_id(self, tax_id: str) -> LeadRow | None:
        result = await self._session.execute(
            select(LeadRow).where(LeadRow.tax_id == tax_id)
        )
        return result.scalars().first()

    async def list_all(self, status: str | None = None) -> list[LeadRow]:
        stmt = select(LeadRow).order_by(LeadRow.updated_at.desc())
        if status is not None:
            stmt = stmt.where(LeadRow.status == status)
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def mark_won(self, lead_id: UUID, employer_id: UUID) -> LeadRow | None:
        row = await self.get(lead_id)
        if row is not None:
            row.status = "WON"
            row.converted_employer_id = employer_id
            row.updated_at = utc_now()
            await self._session.flush()
        return row


class EmployerRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, *, employer_id: UUID, company_name: str, tax_id: str,
                     industry_type: str, created_by: str,
                     industry_code: str | None = None,
                     address: str = "", invoice_address: str = "",
                     factory_address: str | None = None,
                     phone: str | None = None, email: str | None = None,
                     responsible_person: str | None = None,
                     allocation_rate: Decimal | None = None,
                     foreign_worker_quota: int | None = None,
                     compliance_standard: str = "NONE",
                     origin_lead_id: UUID | None = None) -> EmployerRow:
        now = utc_now()
        row = EmployerRow(
            employer_id=employer_id, company_name=company_name, tax_id=tax_id,
            industry_type=industry_type, industry_code=industry_code,
            address=address, invoice_address=invoice_address,
            factory_address=factory_address, phone=phone, email=email,
            responsible_person=responsible_person,
            allocation_rate=allocation_rate,
            foreign_worker_quota=foreign_worker_quota,
            compliance_standard=compliance_standard,
            origin_lead_id=origin_lead_id, created_by=created_by,
            created_at=now, updated_at=now,
        )
        self._session.add(row)
        await self._session.flush()
        return row

    async def get(self, employer_id: UUID) -> EmployerRow | None:
        return await self._session.get(EmployerRow, employer_id)

    async def get_by_tax_id(self, tax_id: str) -> EmployerRow | None:
        result = await self._session.execute(
            select(EmployerRow).where(EmployerRow.tax_id == tax_id)
        )
        return result.scalars().first()

    async def list_all(self) -> list[EmployerRow]:
        result = await self._session.execute(
            select(EmployerRow).order_by(EmployerRow.company_name)
        )
        return list(result.scalars().all())

    async def record_labor_count(self, *, employer_id: UUID, year: int,
                                 month: int, count: int) -> EmployerLaborCountRow:
        row = EmployerLaborCountRow(
            employer_id=employer_id, year=year, month=month, count=count,
            created_at=utc_now(),
        )
        self._session.add(row)
        await self._session.flush()
        return row

    async def latest_labor_count(self, employer_id: UUID) -> EmployerLaborCountRow | None:
        result = await self._session.execute(
            select(EmployerLaborCountRow)
            .where(EmployerLaborCountRow.employer_id == employer_id)
            .order_by(EmployerLaborCountRow.year.desc(), EmployerLaborCountRow.month.desc())
            .limit(1)
        )
        return result.scalars().first()


class SystemCommentRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, *, comment_id: UUID, record_id: UUID,
                     record_table: str, content: str,
                     created_by: str) -> SystemCommentRow:
        row = SystemCommentRow(
            comment_id=comment_id, record_id=record_id,
            record_table=record_table, content=content,
            created_by=created_by, created_at=utc_now(),
        )
        self._session.add(row)
        await self._session.flush()
        return row

    async def list_for_record(self, record_id: UUID) -> list[SystemCommentRow]:
        result = await self._session.execute(
            select(SystemCommentRow)
            .where(SystemCommentRow.record_id == record_id)
            .order_by(SystemCommentRow.created_at)
        )
        return list(result.scalars().all())
