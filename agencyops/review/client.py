"""Async HTTP client for the billing plan endpoints.

Thin wrapper over httpx.AsyncClient: every call raises httpx.HTTPError on
transport failure or a non-2xx status, and pydantic.ValidationError when
the body does not match the wire models.
"""

import logging
from uuid import UUID

import httpx

from agencyops.config.settings import Settings, get_settings
from agencyops.models.billing import BillingPlan, PlanConfirmation, PlanSimulation

logger = logging.getLogger(__name__)

_PLANS_PATH = "/v1/billing-plans"


class BillingPlanClient:
    """Calls GET plan, POST simulate and POST confirm on the AgencyOps API."""

    def __init__(self, http: httpx.AsyncClient) -> None:
        self._http = http

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "BillingPlanClient":
        settings = settings or get_settings()
        return cls(httpx.AsyncClient(
            base_url=settings.API_BASE_URL,
            timeout=settings.HTTP_TIMEOUT_S,
        ))

    async def get_plan(self, plan_id: UUID) -> BillingPlan:
        resp = await self._http.get(f"{_PLANS_PATH}/{plan_id}")
        resp.raise_for_status()
        return BillingPlan.model_validate(resp.json())

    async def simulate(self, plan_id: UUID) -> PlanSimulation | None:
        """Run a simulation; None when the response carries no items."""
        resp = await self._http.post(f"{_PLANS_PATH}/{plan_id}/simulate")
        resp.raise_for_status()
        data = resp.json()
        if not isinstance(data, dict) or data.get("items") is None:
            logger.info("Simulation for plan %s returned no items", plan_id)
            return None
        return PlanSimulation.model_validate(data)

    async def confirm(self, plan_id: UUID, confirmation: PlanConfirmation) -> BillingPlan:
        resp = await self._http.post(
            f"{_PLANS_PATH}/{plan_id}/confirm",
            json=confirmation.model_dump(mode="json"),
        )
        resp.raise_for_status()
        return BillingPlan.model_validate(resp.json())

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "BillingPlanClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
