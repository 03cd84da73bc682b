"""FastAPI CRM lead endpoints.

POST /v1/leads                    — create lead
GET  /v1/leads                    — list leads (optional ?status=)
GET  /v1/leads/{lead_id}          — lead detail
POST /v1/leads/{lead_id}/convert  — convert a lead into an employer

Conversion is validated in full before anything is written; the employer,
its first labor count, the quota comment, and the WON lead are committed
together by the request's Unit-of-Work.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from agencyops.api.dependencies import (
    get_comment_repo,
    get_employer_repo,
    get_lead_repo,
)
from agencyops.api.employers import EmployerResponse, employer_response
from agencyops.crm.conversion import ConversionRequest, validate_conversion
from agencyops.db.tables import LeadRow
from agencyops.models.common import Industry, LeadStatus, new_uuid7, utc_now
from agencyops.repositories.crm import (
    EmployerRepository,
    LeadRepository,
    SystemCommentRepository,
)

router = APIRouter(prefix="/v1/leads", tags=["crm"])

logger = structlog.get_logger()


# ---------------------------------------------------------------------------
# Request / Response schemas
# ---------------------------------------------------------------------------


class CreateLeadRequest(BaseModel):
    company_name: str = Field(..., min_length=1)
    tax_id: str | None = None
    industry: Industry | None = None
    address: str | None = None
    contact_person: str | None = None
    phone: str | None = None
    email: str | None = None
    estimated_worker_count: int | None = Field(default=None, ge=0)


class LeadResponse(BaseModel):
    lead_id: str
    company_name: str
    tax_id: str | None = None
    industry: str | None = None
    address: str | None = None
    contact_person: str | None = None
    phone: str | None = None
    email: str | None = None
    estimated_worker_count: int | None = None
    status: str
    converted_employer_id: str | None = None
    created_at: datetime
    updated_at: datetime


class ConvertLeadRequest(BaseModel):
    tax_id: str
    industry_code: str | None = None
    industry_type: str | None = None
    invoice_address: str | None = None
    factory_address: str | None = None
    avg_domestic_workers: int | None = None
    allocation_rate: Decimal | None = None
    base_rate: Decimal | None = None
    extra_rate: Decimal | None = None
    apply_extra: bool = False
    compliance_standard: str = "NONE"
    operator_id: str = "system"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _lead_response(row: LeadRow) -> LeadResponse:
    return LeadResponse(
        lead_id=str(row.lead_id),
        company_name=row.company_name,
        tax_id=row.tax_id,
        industry=row.industry,
        address=row.address,
        contact_person=row.contact_person,
        phone=row.phone,
        email=row.email,
        estimated_worker_count=row.estimated_worker_count,
        status=row.status,
        converted_employer_id=(
            str(row.converted_employer_id) if row.converted_employer_id else None
        ),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.post("", status_code=201, response_model=LeadResponse)
async def create_lead(
    body: CreateLeadRequest,
    repo: LeadRepository = Depends(get_lead_repo),
) -> LeadResponse:
    if body.tax_id and await repo.get_by_tax_id(body.tax_id) is not None:
        raise HTTPException(
            status_code=409,
            detail=f"A lead with tax ID {body.tax_id} already exists.",
        )

    row = await repo.create(
        lead_id=new_uuid7(),
        company_name=body.company_name,
        tax_id=body.tax_id,
        industry=body.industry.value if body.industry else None,
        address=body.address,
        contact_person=body.contact_person,
        phone=body.phone,
        email=body.email,
        estimated_worker_count=body.estimated_worker_count,
    )
    return _lead_response(row)


@router.get("", response_model=list[LeadResponse])
async def list_leads(
    status: LeadStatus | None = Query(default=None),
    repo: LeadRepository = Depends(get_lead_repo),
) -> list[LeadResponse]:
    rows = await repo.list_all(status=status.value if status else None)
    return [_lead_response(row) for row in rows]


@router.get("/{lead_id}", response_model=LeadResponse)
async def get_lead(
    lead_id: UUID,
    repo: LeadRepository = Depends(get_lead_repo),
) -> LeadResponse:
    row = await repo.get(lead_id)
    if row is None:
        raise HTTPException(status_code=404, detail="Lead not found.")
    return _lead_response(row)


@router.post("/{lead_id}/convert", status_code=201, response_model=EmployerResponse)
async def convert_lead(
    lead_id: UUID,
    body: ConvertLeadRequest,
    lead_repo: LeadRepository = Depends(get_lead_repo),
    employer_repo: EmployerRepository = Depends(get_employer_repo),
    comment_repo: SystemCommentRepository = Depends(get_comment_repo),
) -> EmployerResponse:
    """Convert a lead into an employer with its initial 3K5 quota."""
    lead = await lead_repo.get(lead_id)
    if lead is None:
        raise HTTPException(status_code=404, detail="Lead not found.")
    if lead.status == LeadStatus.WON:
        raise HTTPException(status_code=409, detail="Lead already converted.")

    try:
        plan = validate_conversion(
            ConversionRequest(
                tax_id=body.tax_id,
                industry_code=body.industry_code,
                industry_type=body.industry_type,
                invoice_address=body.invoice_address,
                factory_address=body.factory_address,
                avg_domestic_workers=body.avg_domestic_workers,
                allocation_rate=body.allocation_rate,
                base_rate=body.base_rate,
                extra_rate=body.extra_rate,
                apply_extra=body.apply_extra,
                compliance_standard=body.compliance_standard,
            ),
            lead_address=lead.address,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    if await employer_repo.get_by_tax_id(plan.tax_id) is not None:
        raise HTTPException(
            status_code=409,
            detail=f"An employer with tax ID {plan.tax_id} already exists.",
        )

    employer = await employer_repo.create(
        employer_id=new_uuid7(),
        company_name=lead.company_name,
        tax_id=plan.tax_id,
        industry_type=plan.industry_type.value,
        industry_code=plan.industry_code,
        address=plan.invoice_address,
        invoice_address=plan.invoice_address,
        factory_address=plan.factory_address,
        phone=lead.phone,
        email=lead.email,
        responsible_person=lead.contact_person,
        allocation_rate=plan.allocation_rate,
        foreign_worker_quota=plan.foreign_worker_quota,
        compliance_standard=plan.compliance_standard.value,
        origin_lead_id=lead.lead_id,
        created_by=body.operator_id,
    )

    if plan.avg_domestic_workers:
        today = utc_now()
        await employer_repo.record_labor_count(
            employer_id=employer.employer_id,
            year=today.year,
            month=today.month,
            count=plan.avg_domestic_workers,
        )

    content = f"Created from Lead: {lead.company_name} (Lead ID: {lead.lead_id})"
    if plan.quota_note:
        content += f" | {plan.quota_note}"
    await comment_repo.create(
        comment_id=new_uuid7(),
        record_id=employer.employer_id,
        record_table="employers",
        content=content,
        created_by=body.operator_id,
    )

    await lead_repo.mark_won(lead.lead_id, employer.employer_id)

    logger.info(
        "lead_converted",
        lead_id=str(lead.lead_id),
        employer_id=str(employer.employer_id),
        quota=plan.foreign_worker_quota,
    )
    return employer_response(employer)
