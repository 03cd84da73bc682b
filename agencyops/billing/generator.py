"""Billing plan generator.

Turns a deployment (contract window, worker, dormitory) into the schedule
of receivables billed to the worker over the contract:

1. SERVICE_FEE   — monthly, tiered by tenure, prorated on a 30-day basis
                   in the first and last contract months.
2. ARC_FEE       — once, one month after start; 1000 per residence year,
                   limited by passport validity.
3. DORMITORY_FEE — monthly rent + management fee when housed.
4. HEALTH_CHECK_FEE — periodic checks at months 6, 18 and 30.

Deterministic — pure function of its input, no DB access.
"""

import math
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from dateutil.relativedelta import relativedelta

from agencyops.models.billing import BillingPlanItem
from agencyops.models.common import BillingItemCategory, BillToParty

DEFAULT_CONTRACT_MONTHS = 36
PRORATION_BASIS_DAYS = 30

# Tenure tiers: (months below which the rate applies, monthly fee)
SERVICE_FEE_TIERS: tuple[tuple[int, Decimal], ...] = (
    (12, Decimal("1800")),
    (24, Decimal("1700")),
)
SERVICE_FEE_FLOOR = Decimal("1500")

ARC_FEE_PER_YEAR = Decimal("1000")

HEALTH_CHECK_BASE = Decimal("2000")
HEALTH_CHECK_SURCHARGE: dict[str, Decimal] = {"IDN": Decimal("400")}
HEALTH_CHECK_MONTHS = (6, 18, 30)


@dataclass(frozen=True)
class DeploymentContext:
    """Everything the generator needs to know about a deployment."""

    start_date: date
    end_date: date | None = None
    passport_expiry: date | None = None
    worker_nationality: str = "IDN"
    dormitory_rent: Decimal = Decimal("0")
    dormitory_management_fee: Decimal = Decimal("0")
    prior_tenure_days: int = 0


def _month_start(d: date) -> date:
    return d.replace(day=1)


def _same_month(a: date, b: date) -> bool:
    return a.year == b.year and a.month == b.month


def _whole_months_between(start: date, end: date) -> int:
    delta = relativedelta(end, start)
    return delta.years * 12 + delta.months


def _round_amount(value: Decimal) -> Decimal:
    return value.quantize(Decimal("1"), rounding=ROUND_HALF_UP)


def contract_end(ctx: DeploymentContext, default_months: int = DEFAULT_CONTRACT_MONTHS) -> date:
    """Contract end date, defaulting to start + ``default_months``."""
    if ctx.end_date is not None:
        return ctx.end_date
    return ctx.start_date + relativedelta(months=default_months)


def service_fee_rate(tenure_months: int) -> Decimal:
    """Monthly service fee for a worker with the given tenure."""
    for upper_bound, rate in SERVICE_FEE_TIERS:
        if tenure_months < upper_bound:
            return rate
    return SERVICE_FEE_FLOOR


def _contract_months(start: date, end: date):
    current = start
    while current < end or _same_month(current, end):
        yield current
        current = current + relativedelta(months=1)


def _service_fees(ctx: DeploymentContext, end: date) -> list[BillingPlanItem]:
    items: list[BillingPlanItem] = []
    start = ctx.start_date

    for current in _contract_months(start, end):
        tenure_months = (ctx.prior_tenure_days + (current - start).days) // 30
        rate = service_fee_rate(tenure_months)

        amount = rate
        prorated_days: int | None = None
        description = f"Rate: {rate}"

        if _same_month(current, start):
            if start.day > 1:
                prorated_days = min(PRORATION_BASIS_DAYS, max(0, PRORATION_BASIS_DAYS - start.day + 1))
                description = f"First month prorated: {prorated_days} days (rate: {rate})"
        elif _same_month(current, end):
            if end.day < PRORATION_BASIS_DAYS:
                prorated_days = end.day
                description = f"Last month prorated: {prorated_days} days (rate: {rate})"

        if prorated_days is not None:
            amount = _round_amount(rate / PRORATION_BASIS_DAYS * prorated_days)

        items.append(BillingPlanItem(
            billing_date=_month_start(current),
            item_category=BillingItemCategory.SERVICE_FEE,
            amount=amount,
            description=description,
            is_prorated=prorated_days is not None,
            prorated_days=prorated_days,
            bill_to=BillToParty.WORKER,
            calculated_from={
                "method": "TIERED_SERVICE_FEE",
                "tenure_months": tenure_months,
                "rate": str(rate),
            },
        ))

    return items


def _arc_fee(ctx: DeploymentContext, end: date) -> BillingPlanItem:
    passport_limited = ctx.passport_expiry is not None and ctx.passport_expiry < end
    valid_until = ctx.passport_expiry if passport_limited else end

    total_months = _whole_months_between(ctx.start_date, valid_until)
    valid_years = max(1, math.ceil(total_months / 12))

    description = f"ARC {valid_years} year(s)"
    if passport_limited:
        description += " (limited by passport validity, renewal required mid-contract)"

    return BillingPlanItem(
        billing_date=ctx.start_date + relativedelta(months=1),
        item_category=BillingItemCategory.ARC_FEE,
        amount=ARC_FEE_PER_YEAR * valid_years,
        description=description,
        bill_to=BillToParty.WORKER,
        calculated_from={
            "method": "ARC_PER_YEAR",
            "valid_years": valid_years,
            "passport_limited": passport_limited,
        },
    )


def _dormitory_fees(ctx: DeploymentContext, end: date) -> list[BillingPlanItem]:
    rent = Decimal(ctx.dormitory_rent or 0)
    management = Decimal(ctx.dormitory_management_fee or 0)
    total = rent + management
    if total <= 0:
        return []

    return [
        BillingPlanItem(
            billing_date=_month_start(current),
            item_category=BillingItemCategory.DORMITORY_FEE,
            amount=total,
            description=f"Rent: {rent} Management: {management}",
            bill_to=BillToParty.WORKER,
        )
        for current in _contract_months(ctx.start_date, end)
    ]


def _health_checks(ctx: DeploymentContext, end: date) -> list[BillingPlanItem]:
    surcharge = HEALTH_CHECK_SURCHARGE.get(ctx.worker_nationality, Decimal("0"))
    amount = HEALTH_CHECK_BASE + surcharge
    note = f" ({ctx.worker_nationality} surcharge)" if surcharge else ""

    items: list[BillingPlanItem] = []
    for month_offset in HEALTH_CHECK_MONTHS:
        check_date = ctx.start_date + relativedelta(months=month_offset)
        if check_date >= end:
            continue
        items.append(BillingPlanItem(
            billing_date=ctx.start_date + relativedelta(months=month_offset - 1),
            item_category=BillingItemCategory.HEALTH_CHECK_FEE,
            amount=amount,
            description=f"Periodic health check (month {month_offset}){note}",
            bill_to=BillToParty.WORKER,
            calculated_from={
                "base": str(HEALTH_CHECK_BASE),
                "nationality": ctx.worker_nationality,
                "surcharge": str(surcharge),
            },
        ))
    return items


def calculate_plan_items(
    ctx: DeploymentContext,
    default_months: int = DEFAULT_CONTRACT_MONTHS,
) -> list[BillingPlanItem]:
    """Generate every billing line for a deployment, ordered by billing date."""
    end = contract_end(ctx, default_months)
    if end < ctx.start_date:
        msg = f"Contract end {end} precedes start {ctx.start_date}"
        raise ValueError(msg)

    items: list[BillingPlanItem] = []
    items.extend(_service_fees(ctx, end))
    items.append(_arc_fee(ctx, end))
    items.extend(_dormitory_fees(ctx, end))
    items.extend(_health_checks(ctx, end))

    # stable sort keeps category generation order within a billing date
    items.sort(key=lambda item: item.billing_date)
    return items


def plan_total(items: list[BillingPlanItem]) -> Decimal:
    return sum((item.amount for item in items), Decimal("0"))
