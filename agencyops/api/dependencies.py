"""FastAPI dependency injection factories for repositories.

Each factory takes AsyncSession via Depends(get_async_session) and returns
a repository instance. API endpoints use these via Depends().
"""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from agencyops.db.session import get_async_session
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

# ---------------------------------------------------------------------------
# CRM
# ---------------------------------------------------------------------------


async def get_lead_repo(
    session: AsyncSession = Depends(get_async_session),
) -> LeadRepository:
    return LeadRepository(session)


async def get_employer_repo(
    session: AsyncSession = Depends(get_async_session),
) -> EmployerRepository:
    return EmployerRepository(session)


async def get_comment_repo(
    session: AsyncSession = Depends(get_async_session),
) -> SystemCommentRepository:
    return SystemCommentRepository(session)


# ---------------------------------------------------------------------------
# Recruitment
# ---------------------------------------------------------------------------


async def get_letter_repo(
    session: AsyncSession = Depends(get_async_session),
) -> RecruitmentLetterRepository:
    return RecruitmentLetterRepository(session)


async def get_deployment_repo(
    session: AsyncSession = Depends(get_async_session),
) -> DeploymentRepository:
    return DeploymentRepository(session)


# ---------------------------------------------------------------------------
# Billing
# ---------------------------------------------------------------------------


async def get_billing_plan_repo(
    session: AsyncSession = Depends(get_async_session),
) -> BillingPlanRepository:
    return BillingPlanRepository(session)
