"""FastAPI employer and recruitment-letter endpoints.

GET  /v1/employers                                   — list employers
GET  /v1/employers/{employer_id}                     — employer detail
GET  /v1/employers/{employer_id}/quota               — current 3K5 quota
POST /v1/employers/{employer_id}/recruitment-letters — register a letter
GET  /v1/employers/{employer_id}/recruitment-letters — list letters
GET  /v1/recruitment-letters/{letter_id}/availability — can one more worker be deployed
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from agencyops.api.dependencies import (
    get_deployment_repo,
    get_employer_repo,
    get_letter_repo,
)
from agencyops.db.tables import EmployerRow, RecruitmentLetterRow
from agencyops.models.common import Gender, new_uuid7
from agencyops.quota.allocator import calculate_3k5_quota, describe_quota
from agencyops.quota.letters import (
    DeploymentUsage,
    LetterQuotaPolicy,
    check_quota_availability,
)
from agencyops.repositories.crm import EmployerRepository
from agencyops.repositories.recruitment import (
    DeploymentRepository,
    RecruitmentLetterRepository,
)

router = APIRouter(prefix="/v1/employers", tags=["employers"])
letters_router = APIRouter(prefix="/v1/recruitment-letters", tags=["employers"])


# ---------------------------------------------------------------------------
# Request / Response schemas
# ---------------------------------------------------------------------------


class EmployerResponse(BaseModel):
    employer_id: str
    company_name: str
    tax_id: str
    industry_type: str
    industry_code: str | None = None
    address: str
    invoice_address: str
    factory_address: str | None = None
    phone: str | None = None
    email: str | None = None
    responsible_person: str | None = None
    allocation_rate: Decimal | None = None
    foreign_worker_quota: int | None = None
    compliance_standard: str
    origin_lead_id: str | None = None
    created_by: str
    created_at: datetime


class EmployerQuotaResponse(BaseModel):
    employer_id: str
    domestic_worker_count: int | None = None
    year: int | None = None
    month: int | None = None
    allocation_rate: Decimal | None = None
    quota: int | None = None
    arithmetic: str = ""


class CreateLetterRequest(BaseModel):
    letter_number: str = Field(..., min_length=1)
    approved_quota: int = Field(..., ge=0)
    quota_male: int = Field(default=0, ge=0)
    quota_female: int = Field(default=0, ge=0)
    can_circulate: bool = False
    issue_date: date | None = None
    expiry_date: date | None = None


class LetterResponse(BaseModel):
    letter_id: str
    employer_id: str
    letter_number: str
    approved_quota: int
    quota_male: int
    quota_female: int
    can_circulate: bool
    used_quota: int
    issue_date: date | None = None
    expiry_date: date | None = None


class AvailabilityResponse(BaseModel):
    letter_id: str
    available: bool
    used: int
    remaining: int
    reason: str = ""


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def employer_response(row: EmployerRow) -> EmployerResponse:
    return EmployerResponse(
        employer_id=str(row.employer_id),
        company_name=row.company_name,
        tax_id=row.tax_id,
        industry_type=row.industry_type,
        industry_code=row.industry_code,
        address=row.address,
        invoice_address=row.invoice_address,
        factory_address=row.factory_address,
        phone=row.phone,
        email=row.email,
        responsible_person=row.responsible_person,
        allocation_rate=row.allocation_rate,
        foreign_worker_quota=row.foreign_worker_quota,
        compliance_standard=row.compliance_standard,
        origin_lead_id=str(row.origin_lead_id) if row.origin_lead_id else None,
        created_by=row.created_by,
        created_at=row.created_at,
    )


def _letter_response(row: RecruitmentLetterRow) -> LetterResponse:
    return LetterResponse(
        letter_id=str(row.letter_id),
        employer_id=str(row.employer_id),
        letter_number=row.letter_number,
        approved_quota=row.approved_quota,
        quota_male=row.quota_male,
        quota_female=row.quota_female,
        can_circulate=row.can_circulate,
        used_quota=row.used_quota,
        issue_date=row.issue_date,
        expiry_date=row.expiry_date,
    )


def letter_policy(row: RecruitmentLetterRow) -> LetterQuotaPolicy:
    return LetterQuotaPolicy(
        approved_quota=row.approved_quota,
        can_circulate=row.can_circulate,
        quota_male=row.quota_male,
        quota_female=row.quota_female,
    )


async def letter_usages(
    letter_id: UUID,
    deployment_repo: DeploymentRepository,
) -> list[DeploymentUsage]:
    rows = await deployment_repo.list_by_letter(letter_id)
    return [DeploymentUsage(status=row.status, gender=row.worker_gender) for row in rows]


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.get("", response_model=list[EmployerResponse])
async def list_employers(
    repo: EmployerRepository = Depends(get_employer_repo),
) -> list[EmployerResponse]:
    rows = await repo.list_all()
    return [employer_response(row) for row in rows]


@router.get("/{employer_id}", response_model=EmployerResponse)
async def get_employer(
    employer_id: UUID,
    repo: EmployerRepository = Depends(get_employer_repo),
) -> EmployerResponse:
    row = await repo.get(employer_id)
    if row is None:
        raise HTTPException(status_code=404, detail="Employer not found.")
    return employer_response(row)


@router.get("/{employer_id}/quota", response_model=EmployerQuotaResponse)
async def get_employer_quota(
    employer_id: UUID,
    repo: EmployerRepository = Depends(get_employer_repo),
) -> EmployerQuotaResponse:
    """3K5 quota from the latest recorded domestic headcount."""
    row = await repo.get(employer_id)
    if row is None:
        raise HTTPException(status_code=404, detail="Employer not found.")

    labor = await repo.latest_labor_count(employer_id)
    response = EmployerQuotaResponse(
        employer_id=str(employer_id),
        allocation_rate=row.allocation_rate,
    )
    if labor is None:
        return response

    response.domestic_worker_count = labor.count
    response.year = labor.year
    response.month = labor.month
    if row.allocation_rate is not None:
        response.quota = calculate_3k5_quota(labor.count, row.allocation_rate)
        response.arithmetic = describe_quota(labor.count, row.allocation_rate)
    return response


@router.post(
    "/{employer_id}/recruitment-letters",
    status_code=201,
    response_model=LetterResponse,
)
async def create_recruitment_letter(
    employer_id: UUID,
    body: CreateLetterRequest,
    employer_repo: EmployerRepository = Depends(get_employer_repo),
    letter_repo: RecruitmentLetterRepository = Depends(get_letter_repo),
) -> LetterResponse:
    if await employer_repo.get(employer_id) is None:
        raise HTTPException(status_code=404, detail="Employer not found.")
    if body.quota_male + body.quota_female > body.approved_quota:
        raise HTTPException(
            status_code=400,
            detail="Gender quotas exceed the approved quota.",
        )
    if body.issue_date and body.expiry_date and body.expiry_date < body.issue_date:
        raise HTTPException(status_code=400, detail="Expiry date precedes issue date.")

    row = await letter_repo.create(
        letter_id=new_uuid7(),
        employer_id=employer_id,
        letter_number=body.letter_number,
        approved_quota=body.approved_quota,
        quota_male=body.quota_male,
        quota_female=body.quota_female,
        can_circulate=body.can_circulate,
        issue_date=body.issue_date,
        expiry_date=body.expiry_date,
    )
    return _letter_response(row)


@router.get("/{employer_id}/recruitment-letters", response_model=list[LetterResponse])
async def list_recruitment_letters(
    employer_id: UUID,
    employer_repo: EmployerRepository = Depends(get_employer_repo),
    letter_repo: RecruitmentLetterRepository = Depends(get_letter_repo),
) -> list[LetterResponse]:
    if await employer_repo.get(employer_id) is None:
        raise HTTPException(status_code=404, detail="Employer not found.")
    rows = await letter_repo.list_by_employer(employer_id)
    return [_letter_response(row) for row in rows]


@letters_router.get("/{letter_id}/availability", response_model=AvailabilityResponse)
async def get_letter_availability(
    letter_id: UUID,
    gender: Gender | None = Query(default=None),
    letter_repo: RecruitmentLetterRepository = Depends(get_letter_repo),
    deployment_repo: DeploymentRepository = Depends(get_deployment_repo),
) -> AvailabilityResponse:
    row = await letter_repo.get(letter_id)
    if row is None:
        raise HTTPException(status_code=404, detail="Recruitment letter not found.")

    result = check_quota_availability(
        letter_policy(row),
        await letter_usages(letter_id, deployment_repo),
        worker_gender=gender,
    )
    return AvailabilityResponse(
        letter_id=str(letter_id),
        available=result.available,
        used=result.used,
        remaining=result.remaining,
        reason=result.reason,
    )
