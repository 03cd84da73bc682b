"""Tests for the billing plan generator."""

from datetime import date
from decimal import Decimal

import pytest

from agencyops.billing.generator import (
    DeploymentContext,
    calculate_plan_items,
    contract_end,
    plan_total,
    service_fee_rate,
)
from agencyops.models.common import BillingItemCategory


def _by_category(items, category):
    return [item for item in items if item.item_category == category]


@pytest.fixture
def one_year_items():
    """Mid-month start, one-year contract, IDN worker with dormitory."""
    ctx = DeploymentContext(
        start_date=date(2026, 1, 15),
        end_date=date(2027, 1, 14),
        passport_expiry=date(2030, 1, 1),
        worker_nationality="IDN",
        dormitory_rent=Decimal("2500"),
        dormitory_management_fee=Decimal("500"),
    )
    return calculate_plan_items(ctx)


class TestServiceFeeRate:

    @pytest.mark.parametrize(
        ("months", "expected"),
        [(0, "1800"), (11, "1800"), (12, "1700"), (23, "1700"), (24, "1500"), (40, "1500")],
    )
    def test_tiers(self, months: int, expected: str) -> None:
        assert service_fee_rate(months) == Decimal(expected)


class TestContractEnd:

    def test_defaults_to_36_months(self) -> None:
        ctx = DeploymentContext(start_date=date(2026, 3, 1))
        assert contract_end(ctx) == date(2029, 3, 1)

    def test_explicit_end_wins(self) -> None:
        ctx = DeploymentContext(start_date=date(2026, 3, 1), end_date=date(2026, 9, 30))
        assert contract_end(ctx) == date(2026, 9, 30)


class TestOneYearPlan:

    def test_item_counts(self, one_year_items) -> None:
        assert len(_by_category(one_year_items, BillingItemCategory.SERVICE_FEE)) == 13
        assert len(_by_category(one_year_items, BillingItemCategory.ARC_FEE)) == 1
        assert len(_by_category(one_year_items, BillingItemCategory.DORMITORY_FEE)) == 13
        assert len(_by_category(one_year_items, BillingItemCategory.HEALTH_CHECK_FEE)) == 1

    def test_first_month_prorated(self, one_year_items) -> None:
        first = _by_category(one_year_items, BillingItemCategory.SERVICE_FEE)[0]
        assert first.billing_date == date(2026, 1, 1)
        assert first.is_prorated is True
        assert first.prorated_days == 16
        assert first.amount == Decimal("960")

    def test_last_month_prorated_at_next_tier(self, one_year_items) -> None:
        last = _by_category(one_year_items, BillingItemCategory.SERVICE_FEE)[-1]
        assert last.billing_date == date(2027, 1, 1)
        assert last.prorated_days == 14
        # 1700 / 30 × 14 = 793.33
        assert last.amount == Decimal("793")

    def test_full_months_at_first_tier(self, one_year_items) -> None:
        middle = _by_category(one_year_items, BillingItemCategory.SERVICE_FEE)[1:-1]
        assert {item.amount for item in middle} == {Decimal("1800")}
        assert not any(item.is_prorated for item in middle)

    def test_arc_fee_one_year(self, one_year_items) -> None:
        arc = _by_category(one_year_items, BillingItemCategory.ARC_FEE)[0]
        assert arc.billing_date == date(2026, 2, 15)
        assert arc.amount == Decimal("1000")
        assert arc.calculated_from["passport_limited"] is False

    def test_dormitory_fee_combines_rent_and_management(self, one_year_items) -> None:
        dorm = _by_category(one_year_items, BillingItemCategory.DORMITORY_FEE)
        assert {item.amount for item in dorm} == {Decimal("3000")}

    def test_health_check_with_idn_surcharge(self, one_year_items) -> None:
        check = _by_category(one_year_items, BillingItemCategory.HEALTH_CHECK_FEE)[0]
        assert check.billing_date == date(2026, 6, 15)
        assert check.amount == Decimal("2400")

    def test_sorted_by_billing_date(self, one_year_items) -> None:
        dates = [item.billing_date for item in one_year_items]
        assert dates == sorted(dates)

    def test_total(self, one_year_items) -> None:
        # service 960 + 11×1800 + 793, ARC 1000, dorm 13×3000, health 2400
        assert plan_total(one_year_items) == Decimal("63953")


class TestDefaultContract:

    def test_three_year_schedule(self) -> None:
        items = calculate_plan_items(DeploymentContext(
            start_date=date(2026, 3, 1), worker_nationality="VNM",
        ))
        service = _by_category(items, BillingItemCategory.SERVICE_FEE)
        assert len(service) == 37
        assert service[0].is_prorated is False
        assert service[-1].prorated_days == 1
        assert service[-1].amount == Decimal("50")

        checks = _by_category(items, BillingItemCategory.HEALTH_CHECK_FEE)
        assert len(checks) == 3
        assert {item.amount for item in checks} == {Decimal("2000")}

    def test_no_dormitory_no_dormitory_fee(self) -> None:
        items = calculate_plan_items(DeploymentContext(start_date=date(2026, 3, 1)))
        assert _by_category(items, BillingItemCategory.DORMITORY_FEE) == []

    def test_contract_months_setting_respected(self) -> None:
        items = calculate_plan_items(DeploymentContext(start_date=date(2026, 3, 1)), 12)
        assert len(_by_category(items, BillingItemCategory.SERVICE_FEE)) == 13


class TestArcFee:

    def test_passport_limits_residence_years(self) -> None:
        items = calculate_plan_items(DeploymentContext(
            start_date=date(2026, 1, 1),
            passport_expiry=date(2027, 6, 30),
        ))
        arc = _by_category(items, BillingItemCategory.ARC_FEE)[0]
        assert arc.amount == Decimal("2000")
        assert arc.calculated_from["passport_limited"] is True
        assert "passport" in arc.description

    def test_full_contract_three_years(self) -> None:
        items = calculate_plan_items(DeploymentContext(start_date=date(2026, 1, 1)))
        arc = _by_category(items, BillingItemCategory.ARC_FEE)[0]
        assert arc.amount == Decimal("3000")


class TestInvalidContext:

    def test_end_before_start_rejected(self) -> None:
        ctx = DeploymentContext(start_date=date(2026, 5, 1), end_date=date(2026, 4, 1))
        with pytest.raises(ValueError, match="precedes"):
            calculate_plan_items(ctx)
