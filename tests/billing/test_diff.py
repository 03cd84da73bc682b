"""Tests for the billing plan diff engine and acceptance resolution."""

from datetime import date
from decimal import Decimal

import pytest
from uuid_extensions import uuid7

from agencyops.billing.diff import (
    AcceptanceSet,
    build_plan_diff,
    resolve_final_items,
    suggested_total,
)
from agencyops.models.billing import (
    BillingPlanItem,
    ChangedLine,
    NewLine,
    PlanSimulation,
    UnchangedLine,
)
from agencyops.models.common import BillingItemCategory

JAN = date(2026, 1, 1)
FEB = date(2026, 2, 1)
MAR = date(2026, 3, 1)


def _item(billing_date, amount, *, item_id=None, description="",
          category=BillingItemCategory.SERVICE_FEE) -> BillingPlanItem:
    return BillingPlanItem(
        item_id=item_id,
        billing_date=billing_date,
        item_category=category,
        amount=Decimal(amount),
        description=description,
    )


@pytest.fixture
def existing():
    return [
        _item(JAN, "1000", item_id=uuid7(), description="Rate: 1000"),
        _item(FEB, "1800", item_id=uuid7(), description="Rate: 1800"),
    ]


@pytest.fixture
def lines(existing):
    suggested = [
        _item(JAN, "1200", description="Rate: 1200"),
        _item(FEB, "1800", description="Rate: 1800"),
        _item(MAR, "500", description="New fee"),
    ]
    return build_plan_diff(existing, suggested)


class TestBuildPlanDiff:

    def test_classification(self, lines) -> None:
        assert [type(line) for line in lines] == [ChangedLine, UnchangedLine, NewLine]

    def test_line_ids_are_match_keys(self, lines) -> None:
        assert lines[0].line_id == "2026-01-01|SERVICE_FEE"
        assert lines[2].line_id == "2026-03-01|SERVICE_FEE"

    def test_changed_line_amounts(self, lines, existing) -> None:
        changed = lines[0]
        assert changed.existing_item_id == existing[0].item_id
        assert changed.existing_amount == Decimal("1000")
        assert changed.suggested_amount == Decimal("1200")
        assert changed.diff_amount == Decimal("200")
        assert changed.is_different is True

    def test_unchanged_line(self, lines) -> None:
        unchanged = lines[1]
        assert unchanged.is_different is False
        assert unchanged.diff_amount == Decimal("0")
        assert unchanged.existing_amount == unchanged.suggested_amount == Decimal("1800")

    def test_new_line(self, lines) -> None:
        new = lines[2]
        assert new.existing_amount is None
        assert new.diff_amount == Decimal("500")
        assert new.is_different is True

    def test_same_category_different_category_not_matched(self, existing) -> None:
        suggested = [_item(JAN, "1000", category=BillingItemCategory.ARC_FEE)]
        [line] = build_plan_diff(existing, suggested)
        assert isinstance(line, NewLine)

    def test_repeated_keys_matched_by_occurrence(self) -> None:
        stored = [_item(JAN, "100", item_id=uuid7())]
        suggested = [_item(JAN, "100"), _item(JAN, "200")]
        first, second = build_plan_diff(stored, suggested)
        assert isinstance(first, UnchangedLine)
        assert isinstance(second, NewLine)
        assert second.line_id == "2026-01-01|SERVICE_FEE#1"

    def test_suggested_total(self, lines) -> None:
        assert suggested_total(lines) == Decimal("3500")

    def test_wire_format_carries_kind_and_derived_fields(self, lines) -> None:
        sim = PlanSimulation(
            plan_id=uuid7(),
            current_total=Decimal("2800"),
            suggested_total=suggested_total(lines),
            items=lines,
        )
        data = sim.model_dump(mode="json")
        assert [item["kind"] for item in data["items"]] == ["CHANGED", "UNCHANGED", "NEW"]
        assert data["items"][2]["existing_amount"] is None
        assert data["items"][0]["is_different"] is True

        parsed = PlanSimulation.model_validate(data)
        assert isinstance(parsed.items[0], ChangedLine)
        assert isinstance(parsed.items[2], NewLine)


class TestResolveFinalItems:

    def test_nothing_accepted_keeps_existing_and_drops_new(self, lines, existing) -> None:
        final = resolve_final_items(lines, {})
        assert [item.amount for item in final] == [Decimal("1000"), Decimal("1800")]
        assert [item.item_id for item in final] == [e.item_id for e in existing]

    def test_rejected_change_keeps_existing_description(self, lines) -> None:
        final = resolve_final_items(lines, {})
        assert final[0].description == "Rate: 1000"

    def test_accepted_change_uses_suggestion(self, lines) -> None:
        final = resolve_final_items(lines, {lines[0].line_id: True})
        assert final[0].amount == Decimal("1200")
        assert final[0].description == "Rate: 1200"

    def test_accepted_new_line_included_without_id(self, lines) -> None:
        final = resolve_final_items(lines, {lines[2].line_id: True})
        assert len(final) == 3
        assert final[2].amount == Decimal("500")
        assert final[2].item_id is None

    def test_explicit_false_treated_as_rejected(self, lines) -> None:
        final = resolve_final_items(lines, {lines[0].line_id: False})
        assert final[0].amount == Decimal("1000")


class TestAcceptanceSet:

    def test_toggle_flips(self, lines) -> None:
        acceptances = AcceptanceSet(lines)
        assert acceptances.toggle(lines[0].line_id) is True
        assert acceptances.is_accepted(lines[0].line_id)
        assert acceptances.toggle(lines[0].line_id) is False
        assert len(acceptances) == 0

    def test_toggle_unchanged_line_rejected(self, lines) -> None:
        acceptances = AcceptanceSet(lines)
        with pytest.raises(KeyError):
            acceptances.toggle(lines[1].line_id)

    def test_accept_all_is_idempotent(self, lines) -> None:
        once = AcceptanceSet(lines)
        once.accept_all()
        twice = AcceptanceSet(lines)
        twice.accept_all()
        twice.accept_all()
        assert once.as_mapping() == twice.as_mapping()
        assert set(once.as_mapping()) == {lines[0].line_id, lines[2].line_id}

    def test_accept_all_overwrites_earlier_rejection(self, lines) -> None:
        acceptances = AcceptanceSet(lines)
        acceptances.toggle(lines[0].line_id)
        acceptances.toggle(lines[0].line_id)
        acceptances.accept_all()
        assert acceptances.is_accepted(lines[0].line_id)

    def test_clear(self, lines) -> None:
        acceptances = AcceptanceSet(lines)
        acceptances.accept_all()
        acceptances.clear()
        assert acceptances.as_mapping() == {}

    def test_accept_all_then_resolve(self, lines) -> None:
        acceptances = AcceptanceSet(lines)
        acceptances.accept_all()
        final = resolve_final_items(lines, acceptances.as_mapping())
        assert [item.amount for item in final] == [
            Decimal("1200"), Decimal("1800"), Decimal("500"),
        ]
