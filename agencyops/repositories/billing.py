"""Billing plan repository.

Repos take AsyncSession, call add()/flush() only. The session dependency
handles commit/rollback (Unit-of-Work).

Items are stored in their own table and always queried by plan_id.
Confirmation updates matched items in place, inserts new ones, and never
deletes stored items the caller did not mention. Every amount change is
appended to billing_modification_logs.
"""

from collections.abc import Sequence
from decimal import Decimal
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from agencyops.db.tables import (
    BillingModificationLogRow,
    BillingPlanItemRow,
    BillingPlanRow,
)
from agencyops.models.billing import BillingPlan, BillingPlanItem
from agencyops.models.common import (
    BillingItemStatus,
    BillingPlanStatus,
    ReviewStatus,
    new_uuid7,
    utc_now,
)


def item_from_row(row: BillingPlanItemRow) -> BillingPlanItem:
    return BillingPlanItem(
        item_id=row.item_id,
        billing_date=row.billing_date,
        item_category=row.item_category,
        amount=row.amount,
        description=row.description,
        is_prorated=row.is_prorated,
        prorated_days=row.prorated_days,
        bill_to=row.bill_to,
        status=row.status,
        calculated_from=row.calculated_from,
    )


def _item_row(plan_id: UUID, item: BillingPlanItem, status: str) -> BillingPlanItemRow:
    return BillingPlanItemRow(
        item_id=new_uuid7(),
        plan_id=plan_id,
        billing_date=item.billing_date,
        item_category=str(item.item_category),
        amount=item.amount,
        description=item.description,
        is_prorated=item.is_prorated,
        prorated_days=item.prorated_days,
        bill_to=str(item.bill_to),
        status=status,
        calculated_from=item.calculated_from,
    )


class BillingPlanRepository:
    """Repository for billing plans, their items and modification logs."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(
        self,
        *,
        plan_id: UUID,
        deployment_id: UUID,
        items: Sequence[BillingPlanItem],
    ) -> BillingPlanRow:
        """Insert a PENDING plan with its generated items."""
        now = utc_now()
        row = BillingPlanRow(
            plan_id=plan_id,
            deployment_id=deployment_id,
            total_amount=sum((item.amount for item in items), Decimal("0")),
            status=BillingPlanStatus.PENDING,
            review_status=ReviewStatus.NORMAL,
            created_at=now,
            updated_at=now,
        )
        self._session.add(row)
        await self._session.flush()

        for item in items:
            self._session.add(_item_row(plan_id, item, BillingItemStatus.PENDING))
        await self._session.flush()
        await self._session.refresh(row)
        return row

    async def get(self, plan_id: UUID) -> BillingPlanRow | None:
        return await self._session.get(BillingPlanRow, plan_id)

    async def get_by_deployment(self, deployment_id: UUID) -> BillingPlanRow | None:
        result = await self._session.execute(
            select(BillingPlanRow).where(BillingPlanRow.deployment_id == deployment_id)
        )
        return result.scalar_one_or_none()

    async def list_items(self, plan_id: UUID) -> list[BillingPlanItemRow]:
        """Items of a plan in billing order (item_id is time-sortable)."""
        result = await self._session.execute(
            select(BillingPlanItemRow)
            .where(BillingPlanItemRow.plan_id == plan_id)
            .order_by(BillingPlanItemRow.billing_date, BillingPlanItemRow.item_id)
        )
        return list(result.scalars().all())

    async def delete(self, plan_id: UUID) -> None:
        """Remove a plan and its items."""
        await self._session.execute(
            delete(BillingPlanItemRow).where(BillingPlanItemRow.plan_id == plan_id)
        )
        await self._session.execute(
            delete(BillingPlanRow).where(BillingPlanRow.plan_id == plan_id)
        )
        await self._session.flush()

    async def set_review_status(
        self,
        plan_id: UUID,
        review_status: str,
        reason: str | None = None,
    ) -> BillingPlanRow | None:
        row = await self.get(plan_id)
        if row is None:
            return None
        row.review_status = review_status
        row.review_reason = reason
        row.updated_at = utc_now()
        await self._session.flush()
        return row

    async def reopen(self, plan_id: UUID, reason: str) -> BillingPlanRow | None:
        """Move a CONFIRMED plan back to PENDING and flag it for review."""
        row = await self.get(plan_id)
        if row is None:
            return None
        row.status = BillingPlanStatus.PENDING
        row.review_status = ReviewStatus.NEEDS_REVIEW
        row.review_reason = reason
        row.confirmed_at = None
        row.confirmed_by = None
        row.updated_at = utc_now()
        await self._session.flush()
        return row

    async def lock(self, plan_id: UUID, confirmed_by: str) -> BillingPlanRow | None:
        """Confirm a plan as-is, confirming every pending item."""
        row = await self.get(plan_id)
        if row is None:
            return None
        for item_row in await self.list_items(plan_id):
            if item_row.status == BillingItemStatus.PENDING:
                item_row.status = BillingItemStatus.CONFIRMED
        self._mark_confirmed(row, confirmed_by)
        await self._session.flush()
        return row

    async def confirm(
        self,
        plan_id: UUID,
        *,
        items: Sequence[BillingPlanItem],
        confirmed_by: str,
    ) -> BillingPlanRow | None:
        """Persist reviewed items and mark the plan CONFIRMED.

        Items carrying an item_id of this plan are updated; all others are
        inserted. Stored items not mentioned keep their amounts; like lock(),
        every item still PENDING ends up CONFIRMED.
        """
        row = await self.get(plan_id)
        if row is None:
            return None

        stored = {item_row.item_id: item_row for item_row in await self.list_items(plan_id)}
        now = utc_now()

        for item in items:
            existing = stored.get(item.item_id) if item.item_id is not None else None
            if existing is None:
                new_row = _item_row(plan_id, item, BillingItemStatus.CONFIRMED)
                self._session.add(new_row)
                stored[new_row.item_id] = new_row
                self._log_change(
                    plan_id, new_row.item_id, None, item.amount,
                    "Added on confirmation", confirmed_by, now,
                )
                continue

            if Decimal(existing.amount) != Decimal(item.amount):
                self._log_change(
                    plan_id, existing.item_id, existing.amount, item.amount,
                    "Amount adjusted on confirmation", confirmed_by, now,
                )
            existing.amount = item.amount
            existing.description = item.description
            existing.status = BillingItemStatus.CONFIRMED

        for item_row in stored.values():
            if item_row.status == BillingItemStatus.PENDING:
                item_row.status = BillingItemStatus.CONFIRMED

        row.total_amount = sum(
            (Decimal(item_row.amount) for item_row in stored.values()
             if item_row.status != BillingItemStatus.CANCELLED),
            Decimal("0"),
        )
        self._mark_confirmed(row, confirmed_by)
        await self._session.flush()
        await self._session.refresh(row)
        return row

    async def list_modification_logs(self, plan_id: UUID) -> list[BillingModificationLogRow]:
        result = await self._session.execute(
            select(BillingModificationLogRow)
            .where(BillingModificationLogRow.plan_id == plan_id)
            .order_by(BillingModificationLogRow.created_at, BillingModificationLogRow.log_id)
        )
        return list(result.scalars().all())

    def _mark_confirmed(self, row: BillingPlanRow, confirmed_by: str) -> None:
        now = utc_now()
        row.status = BillingPlanStatus.CONFIRMED
        row.review_status = ReviewStatus.NORMAL
        row.review_reason = None
        row.confirmed_at = now
        row.confirmed_by = confirmed_by
        row.updated_at = now

    def _log_change(self, plan_id, item_id, old_amount, new_amount, reason,
                    modified_by, created_at) -> None:
        self._session.add(BillingModificationLogRow(
            log_id=new_uuid7(),
            plan_id=plan_id,
            item_id=item_id,
            old_amount=old_amount,
            new_amount=new_amount,
            reason=reason,
            modified_by=modified_by,
            created_at=created_at,
        ))


def plan_from_rows(row: BillingPlanRow, item_rows: Sequence[BillingPlanItemRow]) -> BillingPlan:
    return BillingPlan(
        plan_id=row.plan_id,
        deployment_id=row.deployment_id,
        total_amount=row.total_amount,
        status=row.status,
        review_status=row.review_status,
        review_reason=row.review_reason,
        confirmed_at=row.confirmed_at,
        confirmed_by=row.confirmed_by,
        items=[item_from_row(item_row) for item_row in item_rows],
    )
