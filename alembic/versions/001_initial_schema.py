"""Initial schema — CRM, recruitment and billing tables.

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

MONEY = sa.Numeric(14, 2)


def upgrade() -> None:
    # -- CRM --
    op.create_table(
        "leads",
        sa.Column("lead_id", UUID(as_uuid=True), primary_key=True),
        sa.Column("company_name", sa.String(255), nullable=False),
        sa.Column("tax_id", sa.String(20), nullable=True),
        sa.Column("industry", sa.String(50), nullable=True),
        sa.Column("address", sa.String(500), nullable=True),
        sa.Column("contact_person", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("estimated_worker_count", sa.Integer, nullable=True),
        sa.Column("status", sa.String(50), server_default="NEW", nullable=False),
        sa.Column("converted_employer_id", UUID(as_uuid=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_leads_tax_id", "leads", ["tax_id"])

    op.create_table(
        "employers",
        sa.Column("employer_id", UUID(as_uuid=True), primary_key=True),
        sa.Column("company_name", sa.String(255), nullable=False),
        sa.Column("tax_id", sa.String(20), nullable=False, unique=True),
        sa.Column("industry_type", sa.String(50), nullable=False),
        sa.Column("industry_code", sa.String(10), nullable=True),
        sa.Column("address", sa.String(500), server_default="", nullable=False),
        sa.Column("invoice_address", sa.String(500), server_default="", nullable=False),
        sa.Column("factory_address", sa.String(500), nullable=True),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("responsible_person", sa.String(255), nullable=True),
        sa.Column("allocation_rate", sa.Numeric(5, 4), nullable=True),
        sa.Column("foreign_worker_quota", sa.Integer, nullable=True),
        sa.Column("compliance_standard", sa.String(50), server_default="NONE", nullable=False),
        sa.Column("origin_lead_id", UUID(as_uuid=True), nullable=True),
        sa.Column("created_by", sa.String(100), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        "employer_labor_counts",
        sa.Column("row_id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("employer_id", UUID(as_uuid=True),
                  sa.ForeignKey("employers.employer_id"), nullable=False),
        sa.Column("year", sa.Integer, nullable=False),
        sa.Column("month", sa.Integer, nullable=False),
        sa.Column("count", sa.Integer, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("employer_id", "year", "month", name="uq_labor_count_month"),
    )
    op.create_index(
        "ix_employer_labor_counts_employer_id", "employer_labor_counts", ["employer_id"],
    )

    op.create_table(
        "system_comments",
        sa.Column("comment_id", UUID(as_uuid=True), primary_key=True),
        sa.Column("record_id", UUID(as_uuid=True), nullable=False),
        sa.Column("record_table", sa.String(100), nullable=False),
        sa.Column("content", sa.Text, nullable=False),
        sa.Column("created_by", sa.String(100), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_system_comments_record_id", "system_comments", ["record_id"])

    # -- Recruitment --
    op.create_table(
        "recruitment_letters",
        sa.Column("letter_id", UUID(as_uuid=True), primary_key=True),
        sa.Column("employer_id", UUID(as_uuid=True),
                  sa.ForeignKey("employers.employer_id"), nullable=False),
        sa.Column("letter_number", sa.String(100), nullable=False),
        sa.Column("approved_quota", sa.Integer, nullable=False),
        sa.Column("quota_male", sa.Integer, server_default="0", nullable=False),
        sa.Column("quota_female", sa.Integer, server_default="0", nullable=False),
        sa.Column("can_circulate", sa.Boolean, server_default=sa.false(), nullable=False),
        sa.Column("used_quota", sa.Integer, server_default="0", nullable=False),
        sa.Column("issue_date", sa.Date, nullable=True),
        sa.Column("expiry_date", sa.Date, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_recruitment_letters_employer_id", "recruitment_letters", ["employer_id"],
    )

    op.create_table(
        "deployments",
        sa.Column("deployment_id", UUID(as_uuid=True), primary_key=True),
        sa.Column("employer_id", UUID(as_uuid=True),
                  sa.ForeignKey("employers.employer_id"), nullable=False),
        sa.Column("recruitment_letter_id", UUID(as_uuid=True),
                  sa.ForeignKey("recruitment_letters.letter_id"), nullable=True),
        sa.Column("worker_name", sa.String(255), nullable=False),
        sa.Column("worker_nationality", sa.String(10), nullable=False),
        sa.Column("worker_gender", sa.String(20), nullable=True),
        sa.Column("passport_expiry", sa.Date, nullable=True),
        sa.Column("start_date", sa.Date, nullable=False),
        sa.Column("end_date", sa.Date, nullable=True),
        sa.Column("dormitory_name", sa.String(255), nullable=True),
        sa.Column("dormitory_rent", MONEY, server_default="0", nullable=False),
        sa.Column("dormitory_management_fee", MONEY, server_default="0", nullable=False),
        sa.Column("status", sa.String(50), server_default="pending", nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_deployments_employer_id", "deployments", ["employer_id"])
    op.create_index(
        "ix_deployments_recruitment_letter_id", "deployments", ["recruitment_letter_id"],
    )

    # -- Billing (OPERATIONAL) --
    op.create_table(
        "billing_plans",
        sa.Column("plan_id", UUID(as_uuid=True), primary_key=True),
        sa.Column("deployment_id", UUID(as_uuid=True),
                  sa.ForeignKey("deployments.deployment_id"), nullable=False, unique=True),
        sa.Column("total_amount", MONEY, nullable=False),
        sa.Column("status", sa.String(50), server_default="PENDING", nullable=False),
        sa.Column("review_status", sa.String(50), server_default="NORMAL", nullable=False),
        sa.Column("review_reason", sa.Text, nullable=True),
        sa.Column("confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("confirmed_by", sa.String(100), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        "billing_plan_items",
        sa.Column("item_id", UUID(as_uuid=True), primary_key=True),
        sa.Column("plan_id", UUID(as_uuid=True),
                  sa.ForeignKey("billing_plans.plan_id", ondelete="CASCADE"), nullable=False),
        sa.Column("billing_date", sa.Date, nullable=False),
        sa.Column("item_category", sa.String(50), nullable=False),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("description", sa.Text, server_default="", nullable=False),
        sa.Column("is_prorated", sa.Boolean, server_default=sa.false(), nullable=False),
        sa.Column("prorated_days", sa.Integer, nullable=True),
        sa.Column("bill_to", sa.String(20), server_default="WORKER", nullable=False),
        sa.Column("status", sa.String(50), server_default="PENDING", nullable=False),
        sa.Column("calculated_from", JSONB, nullable=True),
    )
    op.create_index("ix_billing_plan_items_plan_id", "billing_plan_items", ["plan_id"])

    # -- Billing audit (APPEND-ONLY) --
    op.create_table(
        "billing_modification_logs",
        sa.Column("log_id", UUID(as_uuid=True), primary_key=True),
        sa.Column("plan_id", UUID(as_uuid=True), nullable=False),
        sa.Column("item_id", UUID(as_uuid=True), nullable=False),
        sa.Column("old_amount", MONEY, nullable=True),
        sa.Column("new_amount", MONEY, nullable=False),
        sa.Column("reason", sa.String(255), nullable=False),
        sa.Column("modified_by", sa.String(100), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_billing_modification_logs_plan_id", "billing_modification_logs", ["plan_id"],
    )


def downgrade() -> None:
    op.drop_table("billing_modification_logs")
    op.drop_table("billing_plan_items")
    op.drop_table("billing_plans")
    op.drop_table("deployments")
    op.drop_table("recruitment_letters")
    op.drop_table("system_comments")
    op.drop_table("employer_labor_counts")
    op.drop_table("employers")
    op.drop_table("leads")
