"""Shared pytest fixtures for the AgencyOps test suite.

Provides:
- db_engine: in-memory SQLite async engine with all tables
- db_session: SAVEPOINT-isolated async session (app commits don't leak)
- client: AsyncClient with dependency overrides for DB-backed testing
- employer / deployment factories for API and repository tests
"""

from datetime import date
from decimal import Decimal

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from agencyops.db.session import Base, get_async_session
import agencyops.db.tables  # noqa: F401  register ORM models on Base.metadata
from agencyops.models.common import new_uuid7
from agencyops.repositories.crm import EmployerRepository
from agencyops.repositories.recruitment import DeploymentRepository


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
async def db_engine():
    """Create an in-memory SQLite async engine with all tables."""
    eng = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
    )
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
async def db_session(db_engine):
    """Provide a SAVEPOINT-isolated session.

    The outer transaction is never committed — it rolls back at teardown.
    Application code calling session.commit() triggers a SAVEPOINT release,
    which is then restarted so subsequent operations stay in the same
    outer transaction.
    """
    async with db_engine.connect() as conn:
        trans = await conn.begin()
        session = AsyncSession(bind=conn, expire_on_commit=False)

        nested = await conn.begin_nested()

        @event.listens_for(session.sync_session, "after_transaction_end")
        def restart_savepoint(sync_session, transaction):  # noqa: ARG001
            nonlocal nested
            if transaction.nested and not transaction._parent.nested:
                nested = conn.sync_connection.begin_nested()

        yield session

        await session.close()
        await trans.rollback()


@pytest.fixture
async def client(db_session):
    """AsyncClient with get_async_session overridden to use the test session."""
    from agencyops.api.main import app

    async def _override_session():
        yield db_session

    app.dependency_overrides[get_async_session] = _override_session

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
async def employer(db_session):
    """A manufacturing employer with a 15% allocation rate."""
    return await EmployerRepository(db_session).create(
        employer_id=new_uuid7(),
        company_name="Acme Plastics",
        tax_id="87654321",
        industry_type="MANUFACTURING",
        industry_code="01",
        address="1 Harbour Rd",
        invoice_address="1 Harbour Rd",
        factory_address="2 Harbour Rd",
        allocation_rate=Decimal("0.15"),
        foreign_worker_quota=19,
        created_by="test",
    )


@pytest.fixture
async def deployment(db_session, employer):
    """A one-year IDN deployment starting mid-month, with dormitory."""
    return await DeploymentRepository(db_session).create(
        deployment_id=new_uuid7(),
        employer_id=employer.employer_id,
        worker_name="Dewi Lestari",
        worker_nationality="IDN",
        worker_gender="female",
        passport_expiry=date(2030, 1, 1),
        start_date=date(2026, 1, 15),
        end_date=date(2027, 1, 14),
        dormitory_name="Dorm B",
        dormitory_rent=Decimal("2500"),
        dormitory_management_fee=Decimal("500"),
        status="active",
    )
