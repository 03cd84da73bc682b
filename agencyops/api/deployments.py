"""FastAPI deployment endpoints.

POST  /v1/deployments                                 — deploy a worker
GET   /v1/deployments/{deployment_id}                 — deployment detail
PATCH /v1/deployments/{deployment_id}                 — update contract/worker/dormitory
POST  /v1/deployments/{deployment_id}/billing-plan    — generate the billing plan

A deployment under a recruitment letter must fit the letter's quota. Any
change to a field the billing generator reads flags the deployment's plan
NEEDS_REVIEW so finance re-simulates it.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from agencyops.api.dependencies import (
    get_billing_plan_repo,
    get_deployment_repo,
    get_employer_repo,
    get_letter_repo,
)
from agencyops.api.employers import letter_policy, letter_usages
from agencyops.billing.generator import DeploymentContext, calculate_plan_items
from agencyops.config.settings import Settings, get_settings
from agencyops.db.tables import DeploymentRow
from agencyops.models.billing import BillingPlan
from agencyops.models.common import (
    BillingPlanStatus,
    DeploymentStatus,
    Gender,
    ReviewStatus,
    new_uuid7,
)
from agencyops.quota.letters import check_quota_availability, counted_usages
from agencyops.repositories.billing import BillingPlanRepository, plan_from_rows
from agencyops.repositories.crm import EmployerRepository
from agencyops.repositories.recruitment import (
    DeploymentRepository,
    RecruitmentLetterRepository,
)

router = APIRouter(prefix="/v1/deployments", tags=["deployments"])

logger = structlog.get_logger()

# Fields the billing generator reads; changing one invalidates the plan.
BILLING_FIELDS = (
    "start_date",
    "end_date",
    "passport_expiry",
    "worker_nationality",
    "dormitory_rent",
    "dormitory_management_fee",
)


# ---------------------------------------------------------------------------
# Request / Response schemas
# ---------------------------------------------------------------------------


class CreateDeploymentRequest(BaseModel):
    employer_id: UUID
    recruitment_letter_id: UUID | None = None
    worker_name: str = Field(..., min_length=1)
    worker_nationality: str = Field(default="IDN", min_length=3, max_length=3)
    worker_gender: Gender | None = None
    passport_expiry: date | None = None
    start_date: date
    end_date: date | None = None
    dormitory_name: str | None = None
    dormitory_rent: Decimal = Field(default=Decimal("0"), ge=0)
    dormitory_management_fee: Decimal = Field(default=Decimal("0"), ge=0)
    status: DeploymentStatus = DeploymentStatus.PENDING


class UpdateDeploymentRequest(BaseModel):
    worker_nationality: str | None = Field(default=None, min_length=3, max_length=3)
    passport_expiry: date | None = None
    start_date: date | None = None
    end_date: date | None = None
    dormitory_name: str | None = None
    dormitory_rent: Decimal | None = Field(default=None, ge=0)
    dormitory_management_fee: Decimal | None = Field(default=None, ge=0)
    status: DeploymentStatus | None = None


class DeploymentResponse(BaseModel):
    deployment_id: str
    employer_id: str
    recruitment_letter_id: str | None = None
    worker_name: str
    worker_nationality: str
    worker_gender: str | None = None
    passport_expiry: date | None = None
    start_date: date
    end_date: date | None = None
    dormitory_name: str | None = None
    dormitory_rent: Decimal
    dormitory_management_fee: Decimal
    status: str


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _deployment_response(row: DeploymentRow) -> DeploymentResponse:
    return DeploymentResponse(
        deployment_id=str(row.deployment_id),
        employer_id=str(row.employer_id),
        recruitment_letter_id=(
            str(row.recruitment_letter_id) if row.recruitment_letter_id else None
        ),
        worker_name=row.worker_name,
        worker_nationality=row.worker_nationality,
        worker_gender=row.worker_gender,
        passport_expiry=row.passport_expiry,
        start_date=row.start_date,
        end_date=row.end_date,
        dormitory_name=row.dormitory_name,
        dormitory_rent=row.dormitory_rent,
        dormitory_management_fee=row.dormitory_management_fee,
        status=row.status,
    )


def deployment_context(row: DeploymentRow) -> DeploymentContext:
    return DeploymentContext(
        start_date=row.start_date,
        end_date=row.end_date,
        passport_expiry=row.passport_expiry,
        worker_nationality=row.worker_nationality,
        dormitory_rent=Decimal(row.dormitory_rent or 0),
        dormitory_management_fee=Decimal(row.dormitory_management_fee or 0),
    )


async def _refresh_used_quota(
    letter_id: UUID,
    letter_repo: RecruitmentLetterRepository,
    deployment_repo: DeploymentRepository,
) -> None:
    letter = await letter_repo.get(letter_id)
    if letter is None:
        return
    usages = await letter_usages(letter_id, deployment_repo)
    await letter_repo.set_used_quota(
        letter_id, len(counted_usages(letter_policy(letter), usages))
    )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.post("", status_code=201, response_model=DeploymentResponse)
async def create_deployment(
    body: CreateDeploymentRequest,
    employer_repo: EmployerRepository = Depends(get_employer_repo),
    letter_repo: RecruitmentLetterRepository = Depends(get_letter_repo),
    deployment_repo: DeploymentRepository = Depends(get_deployment_repo),
) -> DeploymentResponse:
    if await employer_repo.get(body.employer_id) is None:
        raise HTTPException(status_code=404, detail="Employer not found.")
    if body.end_date is not None and body.end_date < body.start_date:
        raise HTTPException(status_code=400, detail="End date precedes start date.")

    if body.recruitment_letter_id is not None:
        letter = await letter_repo.get_for_update(body.recruitment_letter_id)
        if letter is None:
            raise HTTPException(status_code=404, detail="Recruitment letter not found.")
        if letter.employer_id != body.employer_id:
            raise HTTPException(
                status_code=400,
                detail="Recruitment letter belongs to another employer.",
            )
        result = check_quota_availability(
            letter_policy(letter),
            await letter_usages(letter.letter_id, deployment_repo),
            worker_gender=body.worker_gender,
        )
        if not result.available:
            raise HTTPException(status_code=409, detail=result.reason)

    row = await deployment_repo.create(
        deployment_id=new_uuid7(),
        employer_id=body.employer_id,
        recruitment_letter_id=body.recruitment_letter_id,
        worker_name=body.worker_name,
        worker_nationality=body.worker_nationality,
        worker_gender=body.worker_gender.value if body.worker_gender else None,
        passport_expiry=body.passport_expiry,
        start_date=body.start_date,
        end_date=body.end_date,
        dormitory_name=body.dormitory_name,
        dormitory_rent=body.dormitory_rent,
        dormitory_management_fee=body.dormitory_management_fee,
        status=body.status.value,
    )

    if body.recruitment_letter_id is not None:
        await _refresh_used_quota(body.recruitment_letter_id, letter_repo, deployment_repo)

    return _deployment_response(row)


@router.get("/{deployment_id}", response_model=DeploymentResponse)
async def get_deployment(
    deployment_id: UUID,
    repo: DeploymentRepository = Depends(get_deployment_repo),
) -> DeploymentResponse:
    row = await repo.get(deployment_id)
    if row is None:
        raise HTTPException(status_code=404, detail="Deployment not found.")
    return _deployment_response(row)


@router.patch("/{deployment_id}", response_model=DeploymentResponse)
async def update_deployment(
    deployment_id: UUID,
    body: UpdateDeploymentRequest,
    deployment_repo: DeploymentRepository = Depends(get_deployment_repo),
    letter_repo: RecruitmentLetterRepository = Depends(get_letter_repo),
    plan_repo: BillingPlanRepository = Depends(get_billing_plan_repo),
) -> DeploymentResponse:
    """Update a deployment; billing-relevant changes flag its plan for review."""
    row = await deployment_repo.get(deployment_id)
    if row is None:
        raise HTTPException(status_code=404, detail="Deployment not found.")

    changes = {
        field: value
        for field, value in body.model_dump(exclude_unset=True).items()
        if value is not None and getattr(row, field) != value
    }
    start = changes.get("start_date", row.start_date)
    end = changes.get("end_date", row.end_date)
    if end is not None and end < start:
        raise HTTPException(status_code=400, detail="End date precedes start date.")

    if not changes:
        return _deployment_response(row)

    row = await deployment_repo.update(deployment_id, **changes)

    if "status" in changes and row.recruitment_letter_id is not None:
        await _refresh_used_quota(row.recruitment_letter_id, letter_repo, deployment_repo)

    billing_changes = [field for field in BILLING_FIELDS if field in changes]
    if billing_changes:
        plan = await plan_repo.get_by_deployment(deployment_id)
        if plan is not None:
            reason = "Deployment changed: " + ", ".join(billing_changes)
            await plan_repo.set_review_status(plan.plan_id, ReviewStatus.NEEDS_REVIEW, reason)
            logger.info(
                "billing_plan_flagged",
                plan_id=str(plan.plan_id),
                deployment_id=str(deployment_id),
                reason=reason,
            )

    return _deployment_response(row)


@router.post("/{deployment_id}/billing-plan", status_code=201, response_model=BillingPlan)
async def generate_billing_plan(
    deployment_id: UUID,
    deployment_repo: DeploymentRepository = Depends(get_deployment_repo),
    plan_repo: BillingPlanRepository = Depends(get_billing_plan_repo),
    settings: Settings = Depends(get_settings),
) -> BillingPlan:
    """Generate the deployment's plan, replacing a PENDING one."""
    row = await deployment_repo.get(deployment_id)
    if row is None:
        raise HTTPException(status_code=404, detail="Deployment not found.")

    existing = await plan_repo.get_by_deployment(deployment_id)
    if existing is not None:
        if existing.status == BillingPlanStatus.CONFIRMED:
            raise HTTPException(
                status_code=409,
                detail="Billing plan is confirmed; unlock it before regenerating.",
            )
        await plan_repo.delete(existing.plan_id)

    try:
        items = calculate_plan_items(
            deployment_context(row), settings.DEFAULT_CONTRACT_MONTHS
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    plan = await plan_repo.create(
        plan_id=new_uuid7(),
        deployment_id=deployment_id,
        items=items,
    )
    logger.info(
        "billing_plan_generated",
        plan_id=str(plan.plan_id),
        deployment_id=str(deployment_id),
        items=len(items),
        total=str(plan.total_amount),
    )
    return plan_from_rows(plan, await plan_repo.list_items(plan.plan_id))
