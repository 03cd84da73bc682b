"""Billing models — plan line items and the tagged diff-line variants."""

from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, Literal, Union
from uuid import UUID

from pydantic import Field, computed_field

from agencyops.models.common import (
    AgencyOpsBase,
    BillingItemCategory,
    BillingItemStatus,
    BillingPlanStatus,
    BillToParty,
    Money,
    ReviewStatus,
)


class BillingPlanItem(AgencyOpsBase):
    """One scheduled receivable of a billing plan."""

    item_id: UUID | None = None
    billing_date: date
    item_category: BillingItemCategory
    amount: Money
    description: str = ""
    is_prorated: bool = False
    prorated_days: int | None = None
    bill_to: BillToParty = BillToParty.WORKER
    status: BillingItemStatus = BillingItemStatus.PENDING
    calculated_from: dict | None = None


def line_key(billing_date: date, item_category: str) -> str:
    """Match key pairing a suggested item with a stored one."""
    return f"{billing_date.isoformat()}|{item_category}"


# ---------------------------------------------------------------------------
# Diff line variants (tagged union)
# ---------------------------------------------------------------------------


class _DiffLineBase(AgencyOpsBase):
    line_id: str = Field(..., min_length=1, description="Stable identifier across simulations.")
    billing_date: date
    item_category: BillingItemCategory
    description: str = ""
    is_prorated: bool = False
    prorated_days: int | None = None
    bill_to: BillToParty = BillToParty.WORKER
    calculated_from: dict | None = None


class UnchangedLine(_DiffLineBase):
    """Suggested amount equals the stored amount; no decision needed."""

    kind: Literal["UNCHANGED"] = "UNCHANGED"
    existing_item_id: UUID | None = None
    amount: Money

    @computed_field
    @property
    def suggested_amount(self) -> Decimal:
        return self.amount

    @computed_field
    @property
    def existing_amount(self) -> Decimal | None:
        return self.amount

    @computed_field
    @property
    def diff_amount(self) -> Decimal:
        return Decimal("0")

    @computed_field
    @property
    def is_different(self) -> bool:
        return False


class ChangedLine(_DiffLineBase):
    """Stored line whose recalculated amount differs."""

    kind: Literal["CHANGED"] = "CHANGED"
    existing_item_id: UUID | None = None
    existing_amount: Money
    suggested_amount: Money
    existing_description: str = ""

    @computed_field
    @property
    def diff_amount(self) -> Decimal:
        return self.suggested_amount - self.existing_amount

    @computed_field
    @property
    def is_different(self) -> bool:
        return True


class NewLine(_DiffLineBase):
    """Line proposed by the simulation with no stored counterpart."""

    kind: Literal["NEW"] = "NEW"
    suggested_amount: Money

    @computed_field
    @property
    def existing_amount(self) -> Decimal | None:
        return None

    @computed_field
    @property
    def diff_amount(self) -> Decimal:
        return self.suggested_amount

    @computed_field
    @property
    def is_different(self) -> bool:
        return True


DiffLine = Annotated[
    Union[UnchangedLine, ChangedLine, NewLine],
    Field(discriminator="kind"),
]


class PlanSimulation(AgencyOpsBase):
    """Result of re-running the generator against a stored plan."""

    plan_id: UUID
    current_total: Money
    suggested_total: Money
    items: list[DiffLine] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Plan envelope and confirmation payload (shared by API and review client)
# ---------------------------------------------------------------------------


class BillingPlan(AgencyOpsBase):
    """A deployment's billing plan with its items in billing order."""

    plan_id: UUID
    deployment_id: UUID
    total_amount: Money
    status: BillingPlanStatus = BillingPlanStatus.PENDING
    review_status: ReviewStatus = ReviewStatus.NORMAL
    review_reason: str | None = None
    confirmed_at: datetime | None = None
    confirmed_by: str | None = None
    items: list[BillingPlanItem] = Field(default_factory=list)


class PlanConfirmation(AgencyOpsBase):
    """Final items chosen during review, posted to the confirm endpoint."""

    items: list[BillingPlanItem] = Field(default_factory=list)
    confirmed_by: str = Field(default="system", min_length=1)
