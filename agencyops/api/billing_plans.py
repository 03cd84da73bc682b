"""FastAPI billing plan endpoints.

GET  /v1/billing-plans/{plan_id}                      — plan with items
GET  /v1/billing-plans/deployment/{deployment_id}     — plan of a deployment
POST /v1/billing-plans/{plan_id}/simulate             — diff stored plan vs. regenerated one
POST /v1/billing-plans/{plan_id}/confirm              — persist reviewed items, lock plan
POST /v1/billing-plans/{plan_id}/lock                 — lock plan as-is
POST /v1/billing-plans/{plan_id}/unlock               — reopen a locked plan for review
GET  /v1/billing-plans/{plan_id}/history              — confirmation state and amount changes

Simulation never writes; it regenerates items from the deployment's current
state and classifies each against the stored plan.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from agencyops.api.dependencies import get_billing_plan_repo, get_deployment_repo
from agencyops.api.deployments import deployment_context
from agencyops.billing.diff import build_plan_diff, suggested_total
from agencyops.billing.generator import calculate_plan_items
from agencyops.config.settings import Settings, get_settings
from agencyops.db.tables import BillingPlanRow
from agencyops.models.billing import BillingPlan, PlanConfirmation, PlanSimulation
from agencyops.models.common import BillingPlanStatus, ReviewStatus, utc_now
from agencyops.repositories.billing import (
    BillingPlanRepository,
    item_from_row,
    plan_from_rows,
)
from agencyops.repositories.recruitment import DeploymentRepository

router = APIRouter(prefix="/v1/billing-plans", tags=["billing"])

logger = structlog.get_logger()


# ---------------------------------------------------------------------------
# Request / Response schemas
# ---------------------------------------------------------------------------


class LockPlanRequest(BaseModel):
    confirmed_by: str = Field(default="system", min_length=1)


class UnlockPlanRequest(BaseModel):
    reason: str = Field(..., min_length=1)
    unlocked_by: str = Field(default="system", min_length=1)


class ModificationResponse(BaseModel):
    log_id: str
    item_id: str
    old_amount: Decimal | None = None
    new_amount: Decimal
    reason: str
    modified_by: str
    created_at: datetime


class PlanHistoryResponse(BaseModel):
    plan_id: str
    status: str
    confirmed_at: datetime | None = None
    confirmed_by: str | None = None
    review_status: str
    review_reason: str | None = None
    modifications: list[ModificationResponse] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _require_plan(plan_id: UUID, repo: BillingPlanRepository) -> BillingPlanRow:
    row = await repo.get(plan_id)
    if row is None:
        raise HTTPException(status_code=404, detail="Billing plan not found.")
    return row


async def _plan(row: BillingPlanRow, repo: BillingPlanRepository) -> BillingPlan:
    return plan_from_rows(row, await repo.list_items(row.plan_id))


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.get("/deployment/{deployment_id}", response_model=BillingPlan)
async def get_plan_by_deployment(
    deployment_id: UUID,
    repo: BillingPlanRepository = Depends(get_billing_plan_repo),
) -> BillingPlan:
    row = await repo.get_by_deployment(deployment_id)
    if row is None:
        raise HTTPException(
            status_code=404,
            detail="Billing plan not found for this deployment.",
        )
    return await _plan(row, repo)


@router.get("/{plan_id}", response_model=BillingPlan)
async def get_plan(
    plan_id: UUID,
    repo: BillingPlanRepository = Depends(get_billing_plan_repo),
) -> BillingPlan:
    row = await _require_plan(plan_id, repo)
    return await _plan(row, repo)


@router.post("/{plan_id}/simulate", response_model=PlanSimulation)
async def simulate_plan(
    plan_id: UUID,
    repo: BillingPlanRepository = Depends(get_billing_plan_repo),
    deployment_repo: DeploymentRepository = Depends(get_deployment_repo),
    settings: Settings = Depends(get_settings),
) -> PlanSimulation:
    """Regenerate the plan from the deployment and diff it against storage."""
    row = await _require_plan(plan_id, repo)
    deployment = await deployment_repo.get(row.deployment_id)
    if deployment is None:
        raise HTTPException(status_code=404, detail="Deployment not found for plan.")

    try:
        suggested = calculate_plan_items(
            deployment_context(deployment), settings.DEFAULT_CONTRACT_MONTHS
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    existing = [item_from_row(item_row) for item_row in await repo.list_items(plan_id)]
    lines = build_plan_diff(existing, suggested)
    return PlanSimulation(
        plan_id=plan_id,
        current_total=row.total_amount,
        suggested_total=suggested_total(lines),
        items=lines,
    )


@router.post("/{plan_id}/confirm", response_model=BillingPlan)
async def confirm_plan(
    plan_id: UUID,
    body: PlanConfirmation,
    repo: BillingPlanRepository = Depends(get_billing_plan_repo),
) -> BillingPlan:
    """Persist the reviewed items and lock the plan."""
    row = await _require_plan(plan_id, repo)
    # a locked plan flagged by a deployment change is confirmed again after review
    if (
        row.status == BillingPlanStatus.CONFIRMED
        and row.review_status != ReviewStatus.NEEDS_REVIEW
    ):
        raise HTTPException(status_code=409, detail="Billing plan is already confirmed.")

    stored_ids = {item_row.item_id for item_row in await repo.list_items(plan_id)}
    foreign = [
        str(item.item_id) for item in body.items
        if item.item_id is not None and item.item_id not in stored_ids
    ]
    if foreign:
        raise HTTPException(
            status_code=400,
            detail=f"Items do not belong to this plan: {', '.join(foreign)}",
        )

    row = await repo.confirm(plan_id, items=body.items, confirmed_by=body.confirmed_by)
    logger.info(
        "billing_plan_confirmed",
        plan_id=str(plan_id),
        confirmed_by=body.confirmed_by,
        items=len(body.items),
        total=str(row.total_amount),
    )
    return await _plan(row, repo)


@router.post("/{plan_id}/lock", response_model=BillingPlan)
async def lock_plan(
    plan_id: UUID,
    body: LockPlanRequest | None = None,
    repo: BillingPlanRepository = Depends(get_billing_plan_repo),
) -> BillingPlan:
    row = await _require_plan(plan_id, repo)
    if row.status == BillingPlanStatus.CONFIRMED:
        raise HTTPException(status_code=409, detail="Billing plan is already locked.")

    confirmed_by = body.confirmed_by if body else "system"
    row = await repo.lock(plan_id, confirmed_by)
    logger.info("billing_plan_locked", plan_id=str(plan_id), confirmed_by=confirmed_by)
    return await _plan(row, repo)


@router.post("/{plan_id}/unlock", response_model=BillingPlan)
async def unlock_plan(
    plan_id: UUID,
    body: UnlockPlanRequest,
    repo: BillingPlanRepository = Depends(get_billing_plan_repo),
) -> BillingPlan:
    """Reopen a locked plan; it comes back flagged NEEDS_REVIEW."""
    row = await _require_plan(plan_id, repo)
    if row.status != BillingPlanStatus.CONFIRMED:
        raise HTTPException(status_code=409, detail="Billing plan is not locked.")

    reason = (
        f"Unlocked: {body.reason} "
        f"(by {body.unlocked_by} at {utc_now().isoformat()})"
    )
    row = await repo.reopen(plan_id, reason)
    logger.info("billing_plan_unlocked", plan_id=str(plan_id), reason=body.reason)
    return await _plan(row, repo)


@router.get("/{plan_id}/history", response_model=PlanHistoryResponse)
async def get_plan_history(
    plan_id: UUID,
    repo: BillingPlanRepository = Depends(get_billing_plan_repo),
) -> PlanHistoryResponse:
    row = await _require_plan(plan_id, repo)
    logs = await repo.list_modification_logs(plan_id)
    return PlanHistoryResponse(
        plan_id=str(plan_id),
        status=row.status,
        confirmed_at=row.confirmed_at,
        confirmed_by=row.confirmed_by,
        review_status=row.review_status,
        review_reason=row.review_reason,
        modifications=[
            ModificationResponse(
                log_id=str(log.log_id),
                item_id=str(log.item_id),
                old_amount=log.old_amount,
                new_amount=log.new_amount,
                reason=log.reason,
                modified_by=log.modified_by,
                created_at=log.created_at,
            )
            for log in logs
        ],
    )
