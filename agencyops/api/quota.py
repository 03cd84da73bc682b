"""FastAPI 3K5 quota endpoints.

GET  /v1/quota/rates      — selectable base and extra allocation rates
POST /v1/quota/calculate  — quota for a headcount and rate selection

Stateless; forms call calculate whenever the headcount, base rate, extra
rate, or the extra toggle changes.
"""

from decimal import Decimal

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from agencyops.quota.allocator import (
    BASE_RATES,
    EXTRA_RATES,
    MAX_ALLOCATION_RATE,
    calculate_3k5_quota,
    compose_allocation_rate,
    describe_quota,
)

router = APIRouter(prefix="/v1/quota", tags=["quota"])


class RateOptionsResponse(BaseModel):
    base_rates: list[Decimal]
    extra_rates: list[Decimal]
    max_rate: Decimal


class QuotaCalculationRequest(BaseModel):
    domestic_worker_count: int = Field(..., ge=0)
    base_rate: Decimal = Field(..., ge=0)
    extra_rate: Decimal = Field(default=Decimal("0"), ge=0)
    apply_extra: bool = False


class QuotaCalculationResponse(BaseModel):
    domestic_worker_count: int
    allocation_rate: Decimal
    quota: int
    arithmetic: str


@router.get("/rates", response_model=RateOptionsResponse)
async def get_rate_options() -> RateOptionsResponse:
    return RateOptionsResponse(
        base_rates=list(BASE_RATES),
        extra_rates=list(EXTRA_RATES),
        max_rate=MAX_ALLOCATION_RATE,
    )


@router.post("/calculate", response_model=QuotaCalculationResponse)
async def calculate_quota(body: QuotaCalculationRequest) -> QuotaCalculationResponse:
    try:
        rate = compose_allocation_rate(body.base_rate, body.extra_rate, body.apply_extra)
        quota = calculate_3k5_quota(body.domestic_worker_count, rate)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    return QuotaCalculationResponse(
        domestic_worker_count=body.domestic_worker_count,
        allocation_rate=rate,
        quota=quota,
        arithmetic=describe_quota(body.domestic_worker_count, rate),
    )
