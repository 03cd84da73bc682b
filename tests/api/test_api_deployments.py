"""Tests for deployment endpoints and recruitment-letter quota enforcement."""

import pytest
from httpx import AsyncClient

UNKNOWN_ID = "0190f0d2-0000-7000-8000-000000000000"


async def _letter(client: AsyncClient, employer, **overrides) -> dict:
    body = {"letter_number": "LAB-001", "approved_quota": 2}
    body.update(overrides)
    resp = await client.post(
        f"/v1/employers/{employer.employer_id}/recruitment-letters", json=body,
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


def _deployment_body(employer, letter: dict | None = None, **overrides) -> dict:
    body = {
        "employer_id": str(employer.employer_id),
        "worker_name": "Nguyen Van An",
        "worker_nationality": "VNM",
        "worker_gender": "male",
        "start_date": "2026-04-01",
    }
    if letter is not None:
        body["recruitment_letter_id"] = letter["letter_id"]
    body.update(overrides)
    return body


class TestCreateDeployment:

    @pytest.mark.anyio
    async def test_create_and_get(self, client: AsyncClient, employer) -> None:
        resp = await client.post("/v1/deployments", json=_deployment_body(employer))
        assert resp.status_code == 201, resp.text
        created = resp.json()
        assert created["status"] == "pending"

        fetched = (await client.get(f"/v1/deployments/{created['deployment_id']}")).json()
        assert fetched["worker_name"] == "Nguyen Van An"

    @pytest.mark.anyio
    async def test_unknown_employer_404(self, client: AsyncClient, employer) -> None:
        body = _deployment_body(employer, employer_id=UNKNOWN_ID)
        assert (await client.post("/v1/deployments", json=body)).status_code == 404

    @pytest.mark.anyio
    async def test_end_before_start_rejected(self, client: AsyncClient, employer) -> None:
        body = _deployment_body(employer, end_date="2026-03-01")
        assert (await client.post("/v1/deployments", json=body)).status_code == 400

    @pytest.mark.anyio
    async def test_one_time_letter_exhausted(self, client: AsyncClient, employer) -> None:
        letter = await _letter(client, employer, approved_quota=1)
        first = await client.post("/v1/deployments", json=_deployment_body(employer, letter))
        assert first.status_code == 201

        letters = (
            await client.get(f"/v1/employers/{employer.employer_id}/recruitment-letters")
        ).json()
        assert letters[0]["used_quota"] == 1

        second = await client.post("/v1/deployments", json=_deployment_body(employer, letter))
        assert second.status_code == 409
        assert "Quota exceeded" in second.json()["detail"]

    @pytest.mark.anyio
    async def test_male_quota_enforced(self, client: AsyncClient, employer) -> None:
        letter = await _letter(client, employer, approved_quota=3, quota_male=1)
        assert (
            await client.post("/v1/deployments", json=_deployment_body(employer, letter))
        ).status_code == 201

        resp = await client.post("/v1/deployments", json=_deployment_body(employer, letter))
        assert resp.status_code == 409
        assert resp.json()["detail"] == "Male quota exceeded"

        female = _deployment_body(employer, letter, worker_gender="female")
        assert (await client.post("/v1/deployments", json=female)).status_code == 201

    @pytest.mark.anyio
    async def test_circular_letter_slot_freed(self, client: AsyncClient, employer) -> None:
        letter = await _letter(client, employer, approved_quota=1, can_circulate=True)
        first = (
            await client.post(
                "/v1/deployments",
                json=_deployment_body(employer, letter, status="active"),
            )
        ).json()

        resp = await client.patch(
            f"/v1/deployments/{first['deployment_id']}", json={"status": "ended"},
        )
        assert resp.status_code == 200
        letters = (
            await client.get(f"/v1/employers/{employer.employer_id}/recruitment-letters")
        ).json()
        assert letters[0]["used_quota"] == 0

        second = await client.post("/v1/deployments", json=_deployment_body(employer, letter))
        assert second.status_code == 201

    @pytest.mark.anyio
    async def test_letter_of_other_employer_rejected(
        self, client: AsyncClient, employer, db_session,
    ) -> None:
        from agencyops.models.common import new_uuid7
        from agencyops.repositories.crm import EmployerRepository

        other = await EmployerRepository(db_session).create(
            employer_id=new_uuid7(), company_name="Other", tax_id="13572468",
            industry_type="CONSTRUCTION", created_by="test",
        )
        letter = await _letter(client, other)
        resp = await client.post("/v1/deployments", json=_deployment_body(employer, letter))
        assert resp.status_code == 400


class TestUpdateDeployment:

    @pytest.mark.anyio
    async def test_non_billing_change_keeps_plan_normal(
        self, client: AsyncClient, deployment,
    ) -> None:
        plan = (
            await client.post(f"/v1/deployments/{deployment.deployment_id}/billing-plan")
        ).json()
        resp = await client.patch(
            f"/v1/deployments/{deployment.deployment_id}",
            json={"dormitory_name": "Dorm C"},
        )
        assert resp.json()["dormitory_name"] == "Dorm C"
        after = (await client.get(f"/v1/billing-plans/{plan['plan_id']}")).json()
        assert after["review_status"] == "NORMAL"

    @pytest.mark.anyio
    async def test_dormitory_rent_change_flags_plan(self, client: AsyncClient, deployment) -> None:
        plan = (
            await client.post(f"/v1/deployments/{deployment.deployment_id}/billing-plan")
        ).json()
        await client.patch(
            f"/v1/deployments/{deployment.deployment_id}",
            json={"dormitory_rent": "2800"},
        )
        after = (await client.get(f"/v1/billing-plans/{plan['plan_id']}")).json()
        assert after["review_status"] == "NEEDS_REVIEW"
        assert after["review_reason"] == "Deployment changed: dormitory_rent"

    @pytest.mark.anyio
    async def test_invalid_dates_rejected(self, client: AsyncClient, deployment) -> None:
        resp = await client.patch(
            f"/v1/deployments/{deployment.deployment_id}", json={"end_date": "2025-01-01"},
        )
        assert resp.status_code == 400

    @pytest.mark.anyio
    async def test_unknown_deployment_404(self, client: AsyncClient) -> None:
        resp = await client.patch(f"/v1/deployments/{UNKNOWN_ID}", json={"status": "ended"})
        assert resp.status_code == 404
