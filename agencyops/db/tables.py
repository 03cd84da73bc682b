"""SQLAlchemy ORM table models for AgencyOps.

All tables defined in a single file. Uses FlexJSON (JSONB on Postgres,
JSON on SQLite) for calculation provenance.

Categories:
- CRM: Lead, Employer, EmployerLaborCount, SystemComment
- RECRUITMENT: RecruitmentLetter, Deployment
- BILLING: BillingPlan, BillingPlanItem, BillingModificationLog
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import JSON

from agencyops.db.session import Base

# JSONB on PostgreSQL, plain JSON on SQLite (for tests)
FlexJSON = JSONB().with_variant(JSON(), "sqlite")

MONEY = Numeric(14, 2)


# ---------------------------------------------------------------------------
# CRM
# ---------------------------------------------------------------------------


class LeadRow(Base):
    __tablename__ = "leads"

    lead_id: Mapped[UUID] = mapped_column(primary_key=True)
    company_name: Mapped[str] = mapped_column(String(255), nullable=False)
    tax_id: Mapped[str | None] = mapped_column(String(20), nullable=True, index=True)
    industry: Mapped[str | None] = mapped_column(String(50), nullable=True)
    address: Mapped[str | None] = mapped_column(String(500), nullable=True)
    contact_person: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    estimated_worker_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    status: Mapped[str] = mapped_column(String(50), default="NEW", nullable=False)
    converted_employer_id: Mapped[UUID | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class EmployerRow(Base):
    __tablename__ = "employers"

    employer_id: Mapped[UUID] = mapped_column(primary_key=True)
    company_name: Mapped[str] = mapped_column(String(255), nullable=False)
    tax_id: Mapped[str] = mapped_column(String(20), nullable=False, unique=True)
    industry_type: Mapped[str] = mapped_column(String(50), nullable=False)
    industry_code: Mapped[str | None] = mapped_column(String(10), nullable=True)
    address: Mapped[str] = mapped_column(String(500), default="", nullable=False)
    invoice_address: Mapped[str] = mapped_column(String(500), default="", nullable=False)
    factory_address: Mapped[str | None] = mapped_column(String(500), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    responsible_person: Mapped[str | None] = mapped_column(String(255), nullable=True)
    allocation_rate: Mapped[Decimal | None] = mapped_column(Numeric(5, 4), nullable=True)
    foreign_worker_quota: Mapped[int | None] = mapped_column(Integer, nullable=True)
    compliance_standard: Mapped[str] = mapped_column(String(50), default="NONE", nullable=False)
    origin_lead_id: Mapped[UUID | None] = mapped_column(nullable=True)
    created_by: Mapped[str] = mapped_column(String(100), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class EmployerLaborCountRow(Base):
    """Monthly domestic headcount — the basis of the 3K5 quota."""

    __tablename__ = "employer_labor_counts"
    __table_args__ = (
        UniqueConstraint("employer_id", "year", "month", name="uq_labor_count_month"),
    )

    row_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    employer_id: Mapped[UUID] = mapped_column(
        ForeignKey("employers.employer_id"), nullable=False, index=True
    )
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    count: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class SystemCommentRow(Base):
    """System-authored note attached to any record."""

    __tablename__ = "system_comments"

    comment_id: Mapped[UUID] = mapped_column(primary_key=True)
    record_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    record_table: Mapped[str] = mapped_column(String(100), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_by: Mapped[str] = mapped_column(String(100), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


# ---------------------------------------------------------------------------
# Recruitment
# ---------------------------------------------------------------------------


class RecruitmentLetterRow(Base):
    __tablename__ = "recruitment_letters"

    letter_id: Mapped[UUID] = mapped_column(primary_key=True)
    employer_id: Mapped[UUID] = mapped_column(
        ForeignKey("employers.employer_id"), nullable=False, index=True
    )
    letter_number: Mapped[str] = mapped_column(String(100), nullable=False)
    approved_quota: Mapped[int] = mapped_column(Integer, nullable=False)
    quota_male: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    quota_female: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    can_circulate: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    used_quota: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    issue_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    expiry_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class DeploymentRow(Base):
    """A worker placed with an employer, with the worker snapshot billing needs."""

    __tablename__ = "deployments"

    deployment_id: Mapped[UUID] = mapped_column(primary_key=True)
    employer_id: Mapped[UUID] = mapped_column(
        ForeignKey("employers.employer_id"), nullable=False, index=True
    )
    recruitment_letter_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("recruitment_letters.letter_id"), nullable=True, index=True
    )
    worker_name: Mapped[str] = mapped_column(String(255), nullable=False)
    worker_nationality: Mapped[str] = mapped_column(String(10), nullable=False)
    worker_gender: Mapped[str | None] = mapped_column(String(20), nullable=True)
    passport_expiry: Mapped[date | None] = mapped_column(Date, nullable=True)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    dormitory_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    dormitory_rent: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"), nullable=False)
    dormitory_management_fee: Mapped[Decimal] = mapped_column(
        MONEY, default=Decimal("0"), nullable=False
    )
    status: Mapped[str] = mapped_column(String(50), default="pending", nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


# ---------------------------------------------------------------------------
# Billing: OPERATIONAL (status updates allowed)
# ---------------------------------------------------------------------------


class BillingPlanRow(Base):
    __tablename__ = "billing_plans"

    plan_id: Mapped[UUID] = mapped_column(primary_key=True)
    deployment_id: Mapped[UUID] = mapped_column(
        ForeignKey("deployments.deployment_id"), nullable=False, unique=True
    )
    total_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    status: Mapped[str] = mapped_column(String(50), default="PENDING", nullable=False)
    review_status: Mapped[str] = mapped_column(String(50), default="NORMAL", nullable=False)
    review_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    confirmed_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class BillingPlanItemRow(Base):
    __tablename__ = "billing_plan_items"

    item_id: Mapped[UUID] = mapped_column(primary_key=True)
    plan_id: Mapped[UUID] = mapped_column(
        ForeignKey("billing_plans.plan_id", ondelete="CASCADE"), nullable=False, index=True
    )
    billing_date: Mapped[date] = mapped_column(Date, nullable=False)
    item_category: Mapped[str] = mapped_column(String(50), nullable=False)
    amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)
    is_prorated: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    prorated_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    bill_to: Mapped[str] = mapped_column(String(20), default="WORKER", nullable=False)
    status: Mapped[str] = mapped_column(String(50), default="PENDING", nullable=False)
    calculated_from = mapped_column(FlexJSON, nullable=True)


class BillingModificationLogRow(Base):
    """Append-only record of every amount change made on confirm."""

    __tablename__ = "billing_modification_logs"

    log_id: Mapped[UUID] = mapped_column(primary_key=True)
    plan_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    item_id: Mapped[UUID] = mapped_column(nullable=False)
    old_amount: Mapped[Decimal | None] = mapped_column(MONEY, nullable=True)
    new_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    reason: Mapped[str] = mapped_column(String(255), nullable=False)
    modified_by: Mapped[str] = mapped_column(String(100), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
