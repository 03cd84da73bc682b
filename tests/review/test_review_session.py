"""Tests for the billing plan review session.

End-to-end cases drive the real API over ASGITransport; the request
plumbing cases (failures, stale responses, the busy guard) use
httpx.MockTransport so responses can be held back or broken on purpose.
"""

import asyncio
import json
from decimal import Decimal
from uuid import UUID

import httpx
import pytest

from agencyops.config.settings import Settings
from agencyops.review.client import BillingPlanClient
from agencyops.review.session import BillingPlanReviewSession, ReviewMode

PLAN_ID = UUID("0190f0d2-1111-7000-8000-000000000001")
DEPLOYMENT_ID = UUID("0190f0d2-2222-7000-8000-000000000002")
ITEM_ID = "0190f0d2-3333-7000-8000-000000000003"


def _plan_payload(status: str = "PENDING", review_status: str = "NORMAL") -> dict:
    return {
        "plan_id": str(PLAN_ID),
        "deployment_id": str(DEPLOYMENT_ID),
        "total_amount": "1800",
        "status": status,
        "review_status": review_status,
        "items": [{
            "item_id": ITEM_ID,
            "billing_date": "2026-02-01",
            "item_category": "SERVICE_FEE",
            "amount": "1800",
            "description": "Service fee 2026-02",
        }],
    }


def _simulation_payload() -> dict:
    return {
        "plan_id": str(PLAN_ID),
        "current_total": "1800",
        "suggested_total": "3500",
        "items": [
            {
                "kind": "CHANGED",
                "line_id": "2026-02-01|SERVICE_FEE",
                "billing_date": "2026-02-01",
                "item_category": "SERVICE_FEE",
                "description": "Service fee 2026-02",
                "existing_item_id": ITEM_ID,
                "existing_amount": "1800",
                "suggested_amount": "1700",
            },
            {
                "kind": "NEW",
                "line_id": "2026-03-01|SERVICE_FEE",
                "billing_date": "2026-03-01",
                "item_category": "SERVICE_FEE",
                "description": "Service fee 2026-03",
                "suggested_amount": "1800",
            },
        ],
    }


class FakeBillingApi:
    """MockTransport handler serving one plan, with knobs for failure modes."""

    def __init__(self, review_status: str = "NORMAL") -> None:
        self.review_status = review_status
        self.simulation: dict | None = _simulation_payload()
        self.simulate_status = 200
        self.hold = asyncio.Event()
        self.hold.set()
        self.entered = asyncio.Event()
        self.calls: list[str] = []
        self.confirmed_body: dict | None = None
        self.fail_reload_after_confirm = False
        self.confirm_status = 200

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.calls.append(f"{request.method} {path}")
        self.entered.set()
        await self.hold.wait()

        if path.endswith("/simulate"):
            if self.simulate_status != 200:
                return httpx.Response(self.simulate_status, json={"detail": "engine offline"})
            return httpx.Response(200, json=self.simulation)
        if path.endswith("/confirm"):
            if self.confirm_status != 200:
                return httpx.Response(self.confirm_status, json={"detail": "maintenance"})
            self.confirmed_body = json.loads(request.content)
            return httpx.Response(200, json=_plan_payload(status="CONFIRMED"))
        if self.fail_reload_after_confirm and self.confirmed_body is not None:
            raise httpx.ConnectError("reload failed", request=request)
        return httpx.Response(200, json=_plan_payload(review_status=self.review_status))

    def count(self, suffix: str) -> int:
        return sum(1 for call in self.calls if call.endswith(suffix))


@pytest.fixture
def fake_api() -> FakeBillingApi:
    return FakeBillingApi()


@pytest.fixture
async def review_client(fake_api: FakeBillingApi) -> BillingPlanClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(fake_api), base_url="http://test")
    async with BillingPlanClient(http) as plan_client:
        yield plan_client


async def _wait_until_entered(api: FakeBillingApi) -> None:
    await asyncio.wait_for(api.entered.wait(), timeout=1)


class TestModes:

    @pytest.mark.anyio
    async def test_normal_plan_opens_in_normal_mode(self, review_client, fake_api) -> None:
        session = BillingPlanReviewSession(review_client, PLAN_ID)
        assert await session.open() is True
        assert session.mode == ReviewMode.NORMAL
        assert session.plan.plan_id == PLAN_ID
        assert fake_api.count("/simulate") == 0

    @pytest.mark.anyio
    async def test_flagged_plan_opens_in_diff(self) -> None:
        api = FakeBillingApi(review_status="NEEDS_REVIEW")
        http = httpx.AsyncClient(transport=httpx.MockTransport(api), base_url="http://test")
        session = BillingPlanReviewSession(BillingPlanClient(http), PLAN_ID)
        assert await session.open() is True
        assert session.mode == ReviewMode.DIFF
        assert [line.kind for line in session.lines] == ["CHANGED", "NEW"]
        await http.aclose()

    @pytest.mark.anyio
    async def test_reentering_diff_refetches(self, review_client, fake_api) -> None:
        session = BillingPlanReviewSession(review_client, PLAN_ID)
        await session.open()
        assert await session.enter_diff() is True
        session.accept_all()
        assert session.exit_diff() is True
        assert session.simulation is None

        assert await session.enter_diff() is True
        assert fake_api.count("/simulate") == 2
        assert len(session.acceptances) == 0

    @pytest.mark.anyio
    async def test_decisions_shape_final_items(self, review_client) -> None:
        session = BillingPlanReviewSession(review_client, PLAN_ID)
        await session.open()
        await session.enter_diff()

        assert session.preview_total() == Decimal("1800")
        assert session.toggle_accept("2026-03-01|SERVICE_FEE") is True
        assert session.preview_total() == Decimal("3600")
        session.accept_all()
        assert session.preview_total() == Decimal("3500")

    @pytest.mark.anyio
    async def test_toggle_ignored_outside_diff(self, review_client) -> None:
        session = BillingPlanReviewSession(review_client, PLAN_ID)
        await session.open()
        assert session.toggle_accept("2026-02-01|SERVICE_FEE") is False
        assert session.accept_all() is False
        assert session.exit_diff() is False

    @pytest.mark.anyio
    async def test_toggle_unknown_line(self, review_client) -> None:
        session = BillingPlanReviewSession(review_client, PLAN_ID)
        await session.open()
        await session.enter_diff()
        assert session.toggle_accept("2030-01-01|ARC_FEE") is False


class TestFailures:

    @pytest.mark.anyio
    async def test_simulate_error_keeps_state(self, review_client, fake_api) -> None:
        session = BillingPlanReviewSession(review_client, PLAN_ID)
        await session.open()
        fake_api.simulate_status = 500

        assert await session.enter_diff() is False
        assert session.mode == ReviewMode.NORMAL
        assert session.plan is not None
        assert session.error == "Request failed (500): engine offline"
        assert session.busy is False

        session.dismiss_error()
        assert session.error is None

    @pytest.mark.anyio
    async def test_simulation_without_items_is_noop(self, review_client, fake_api) -> None:
        session = BillingPlanReviewSession(review_client, PLAN_ID)
        await session.open()
        fake_api.simulation = {"plan_id": str(PLAN_ID), "current_total": "1800"}

        assert await session.enter_diff() is False
        assert session.mode == ReviewMode.NORMAL
        assert session.error is None

    @pytest.mark.anyio
    async def test_empty_simulation_is_valid_diff(self, review_client, fake_api) -> None:
        session = BillingPlanReviewSession(review_client, PLAN_ID)
        await session.open()
        fake_api.simulation = {
            "plan_id": str(PLAN_ID), "current_total": "1800",
            "suggested_total": "0", "items": [],
        }
        assert await session.enter_diff() is True
        assert session.lines == []


class TestConcurrency:

    @pytest.mark.anyio
    async def test_actions_ignored_while_busy(self, review_client, fake_api) -> None:
        session = BillingPlanReviewSession(review_client, PLAN_ID)
        await session.open()
        await session.enter_diff()

        fake_api.hold.clear()
        fake_api.entered.clear()
        pending = asyncio.create_task(session.reload())
        await _wait_until_entered(fake_api)

        assert session.busy is True
        assert await session.enter_diff() is False
        assert session.toggle_accept("2026-03-01|SERVICE_FEE") is False
        assert await session.confirm() is False

        fake_api.hold.set()
        assert await pending is True
        assert session.busy is False
        assert fake_api.count("/simulate") == 1
        assert fake_api.count("/confirm") == 0

    @pytest.mark.anyio
    async def test_close_cancels_and_discards(self, review_client, fake_api) -> None:
        session = BillingPlanReviewSession(review_client, PLAN_ID)
        fake_api.hold.clear()
        pending = asyncio.create_task(session.open())
        await _wait_until_entered(fake_api)

        await session.close()
        assert await pending is False
        assert session.plan is None
        assert session.closed is True
        assert session.busy is False
        assert await session.reload() is False


class TestConfirm:

    @pytest.mark.anyio
    async def test_confirm_invokes_async_callback(self, review_client, fake_api) -> None:
        completed = []

        async def on_complete(plan) -> None:
            completed.append(plan)

        session = BillingPlanReviewSession(review_client, PLAN_ID, on_complete=on_complete)
        await session.open()
        await session.enter_diff()
        session.toggle_accept("2026-02-01|SERVICE_FEE")

        assert await session.confirm("alice") is True
        assert completed[0].status == "CONFIRMED"
        assert session.mode == ReviewMode.NORMAL
        assert fake_api.confirmed_body["confirmed_by"] == "alice"
        assert [item["amount"] for item in fake_api.confirmed_body["items"]] == ["1700"]
        # callback replaces the reload
        assert fake_api.count(f"/{PLAN_ID}") == 1

    @pytest.mark.anyio
    async def test_confirm_without_callback_reloads(self, review_client, fake_api) -> None:
        session = BillingPlanReviewSession(review_client, PLAN_ID)
        await session.open()
        assert await session.confirm() is True
        assert fake_api.count(f"/{PLAN_ID}") == 2
        assert fake_api.confirmed_body["items"][0]["item_id"] == ITEM_ID


    @pytest.mark.anyio
    async def test_failed_reload_keeps_confirmed_state(self, review_client, fake_api) -> None:
        fake_api.review_status = "NEEDS_REVIEW"
        session = BillingPlanReviewSession(review_client, PLAN_ID)
        await session.open()
        assert session.mode == ReviewMode.DIFF
        session.accept_all()
        fake_api.fail_reload_after_confirm = True

        assert await session.confirm() is True
        assert session.mode == ReviewMode.NORMAL
        assert session.simulation is None
        assert session.plan.status == "CONFIRMED"
        assert session.error == "Network error: reload failed"
        assert session.busy is False
        assert fake_api.count("/confirm") == 1

    @pytest.mark.anyio
    async def test_confirm_failure_leaves_state_for_retry(self, review_client, fake_api) -> None:
        session = BillingPlanReviewSession(review_client, PLAN_ID)
        await session.open()
        await session.enter_diff()
        session.accept_all()
        fake_api.confirm_status = 503

        assert await session.confirm() is False
        assert session.mode == ReviewMode.DIFF
        assert len(session.acceptances) == 2
        assert session.error == "Request failed (503): maintenance"

        fake_api.confirm_status = 200
        assert await session.confirm() is True
        assert session.error is None
        assert fake_api.count("/confirm") == 2


class TestAgainstApi:

    @pytest.mark.anyio
    async def test_review_flagged_plan_end_to_end(self, client, deployment) -> None:
        plan = (
            await client.post(f"/v1/deployments/{deployment.deployment_id}/billing-plan")
        ).json()
        await client.patch(
            f"/v1/deployments/{deployment.deployment_id}", json={"end_date": "2027-06-30"},
        )

        session = BillingPlanReviewSession(BillingPlanClient(client), UUID(plan["plan_id"]))
        assert await session.open() is True
        assert session.mode == ReviewMode.DIFF
        assert len([line for line in session.lines if line.is_different]) == 12

        session.accept_all()
        assert session.preview_total() == Decimal("89360")

        assert await session.confirm("reviewer") is True
        assert session.plan.status == "CONFIRMED"
        assert session.plan.review_status == "NORMAL"
        assert len(session.plan.items) == 38
        assert session.plan.total_amount == Decimal("89360")

    @pytest.mark.anyio
    async def test_review_locked_plan_after_deployment_change(self, client, deployment) -> None:
        plan = (
            await client.post(f"/v1/deployments/{deployment.deployment_id}/billing-plan")
        ).json()
        await client.post(f"/v1/billing-plans/{plan['plan_id']}/lock")
        await client.patch(
            f"/v1/deployments/{deployment.deployment_id}", json={"end_date": "2027-06-30"},
        )

        session = BillingPlanReviewSession(BillingPlanClient(client), UUID(plan["plan_id"]))
        assert await session.open() is True
        assert session.plan.status == "CONFIRMED"
        assert session.mode == ReviewMode.DIFF

        session.accept_all()
        assert await session.confirm("reviewer") is True
        assert session.error is None
        assert session.plan.review_status == "NORMAL"
        assert session.plan.total_amount == Decimal("89360")


class TestClientFromSettings:

    @pytest.mark.anyio
    async def test_uses_configured_base_url_and_timeout(self) -> None:
        settings = Settings(API_BASE_URL="http://agency.test", HTTP_TIMEOUT_S=5.0)
        async with BillingPlanClient.from_settings(settings) as plan_client:
            http = plan_client._http
            assert http.base_url.host == "agency.test"
            assert http.timeout.read == 5.0
