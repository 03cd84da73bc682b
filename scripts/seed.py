"""Seed script — load a demo agency book into the AgencyOps database.

Creates:
1. A demo lead, converted into a manufacturing employer (3K5 quota 19)
2. The employer's labor count and the conversion system comment
3. A circular recruitment letter for 10 workers (5 male / 5 female)
4. One deployed Indonesian worker with dormitory
5. The deployment's generated billing plan

Idempotent: safe to run multiple times — skips if the demo employer exists.

Usage:
    python -m scripts.seed          # against DATABASE_URL from .env
    pytest tests/scripts/test_seed.py  # against aiosqlite in-memory
"""

import asyncio
from datetime import date
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from agencyops.billing.generator import DeploymentContext, calculate_plan_items
from agencyops.models.common import (
    DeploymentStatus,
    Gender,
    Industry,
    LeadStatus,
    new_uuid7,
    utc_now,
)
from agencyops.quota.allocator import calculate_3k5_quota, describe_quota
from agencyops.repositories.billing import BillingPlanRepository
from agencyops.repositories.crm import (
    EmployerRepository,
    LeadRepository,
    SystemCommentRepository,
)
from agencyops.repositories.recruitment import (
    DeploymentRepository,
    RecruitmentLetterRepository,
)

DEMO_TAX_ID = "12345678"
DEMO_COMPANY = "Formosa Precision Metals Co."
DEMO_DOMESTIC_WORKERS = 125
DEMO_ALLOCATION_RATE = Decimal("0.15")
DEMO_START = date(2026, 1, 15)
DEMO_DORMITORY_RENT = Decimal("2500")
DEMO_DORMITORY_MANAGEMENT_FEE = Decimal("500")
SEED_OPERATOR = "seed"


async def seed_demo(session: AsyncSession) -> dict:
    """Seed the demo book. Returns ids and counts; ``created`` is False on re-run."""
    employer_repo = EmployerRepository(session)
    existing = await employer_repo.get_by_tax_id(DEMO_TAX_ID)
    if existing is not None:
        return {"created": False, "employer_id": existing.employer_id}

    lead_repo = LeadRepository(session)
    lead = await lead_repo.create(
        lead_id=new_uuid7(),
        company_name=DEMO_COMPANY,
        tax_id=DEMO_TAX_ID,
        industry=Industry.MANUFACTURING.value,
        address="No. 8, Industrial 3rd Rd, Taichung",
        contact_person="Lin Mei-Hua",
        phone="04-2359-0000",
        estimated_worker_count=20,
        status=LeadStatus.NEGOTIATING.value,
    )

    quota = calculate_3k5_quota(DEMO_DOMESTIC_WORKERS, DEMO_ALLOCATION_RATE)
    employer = await employer_repo.create(
        employer_id=new_uuid7(),
        company_name=lead.company_name,
        tax_id=DEMO_TAX_ID,
        industry_type=Industry.MANUFACTURING.value,
        industry_code="01",
        address=lead.address,
        invoice_address=lead.address,
        factory_address="No. 12, Industrial 5th Rd, Taichung",
        phone=lead.phone,
        responsible_person=lead.contact_person,
        allocation_rate=DEMO_ALLOCATION_RATE,
        foreign_worker_quota=quota,
        origin_lead_id=lead.lead_id,
        created_by=SEED_OPERATOR,
    )
    now = utc_now()
    await employer_repo.record_labor_count(
        employer_id=employer.employer_id,
        year=now.year,
        month=now.month,
        count=DEMO_DOMESTIC_WORKERS,
    )
    await SystemCommentRepository(session).create(
        comment_id=new_uuid7(),
        record_id=employer.employer_id,
        record_table="employers",
        content=(
            f"Created from Lead: {lead.company_name} (Lead ID: {lead.lead_id})"
            f" | 3K5 Quota: {describe_quota(DEMO_DOMESTIC_WORKERS, DEMO_ALLOCATION_RATE)} people"
        ),
        created_by=SEED_OPERATOR,
    )
    await lead_repo.mark_won(lead.lead_id, employer.employer_id)

    letter = await RecruitmentLetterRepository(session).create(
        letter_id=new_uuid7(),
        employer_id=employer.employer_id,
        letter_number="LAB-1150012345",
        approved_quota=10,
        quota_male=5,
        quota_female=5,
        can_circulate=True,
        issue_date=date(2025, 12, 1),
        expiry_date=date(2026, 12, 1),
    )

    deployment = await DeploymentRepository(session).create(
        deployment_id=new_uuid7(),
        employer_id=employer.employer_id,
        recruitment_letter_id=letter.letter_id,
        worker_name="Siti Rahayu",
        worker_nationality="IDN",
        worker_gender=Gender.FEMALE.value,
        passport_expiry=date(2028, 3, 31),
        start_date=DEMO_START,
        dormitory_name="Taichung Dorm A",
        dormitory_rent=DEMO_DORMITORY_RENT,
        dormitory_management_fee=DEMO_DORMITORY_MANAGEMENT_FEE,
        status=DeploymentStatus.ACTIVE.value,
    )
    await RecruitmentLetterRepository(session).set_used_quota(letter.letter_id, 1)

    items = calculate_plan_items(DeploymentContext(
        start_date=DEMO_START,
        passport_expiry=deployment.passport_expiry,
        worker_nationality=deployment.worker_nationality,
        dormitory_rent=DEMO_DORMITORY_RENT,
        dormitory_management_fee=DEMO_DORMITORY_MANAGEMENT_FEE,
    ))
    plan = await BillingPlanRepository(session).create(
        plan_id=new_uuid7(),
        deployment_id=deployment.deployment_id,
        items=items,
    )

    return {
        "created": True,
        "lead_id": lead.lead_id,
        "employer_id": employer.employer_id,
        "letter_id": letter.letter_id,
        "deployment_id": deployment.deployment_id,
        "plan_id": plan.plan_id,
        "quota": quota,
        "plan_item_count": len(items),
        "plan_total": plan.total_amount,
    }


async def _run_seed() -> None:
    """Run the seed against the real database (idempotent)."""
    from agencyops.db.session import async_session_factory

    async with async_session_factory() as session:
        result = await seed_demo(session)

        if not result["created"]:
            print(f"Demo data already seeded (employer tax ID {DEMO_TAX_ID} exists). Skipping.")
            print(f"  Employer: {result['employer_id']}")
            return

        await session.commit()

        print("Seed complete.")
        print(f"  Employer:     {result['employer_id']} (3K5 quota {result['quota']})")
        print(f"  Deployment:   {result['deployment_id']}")
        print(f"  Billing plan: {result['plan_id']}"
              f" ({result['plan_item_count']} items, total {result['plan_total']})")


if __name__ == "__main__":
    asyncio.run(_run_seed())
