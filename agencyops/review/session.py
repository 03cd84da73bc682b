"""Billing plan review session.

Drives the review of one billing plan against the REST API:

- NORMAL mode shows the stored plan; confirming locks it as-is.
- DIFF mode shows a fresh simulation classified against the stored plan;
  the operator accepts changed/new lines one by one or all at once, and
  confirming persists the resolved items.

Entering DIFF always issues a new simulate request, so DIFF -> NORMAL ->
DIFF re-fetches. Acceptances are discarded when leaving DIFF.

At most one request is in flight. Actions triggered while busy are
ignored and return False. Each request runs in its own task so close()
can cancel it; a response that arrives after close() is discarded.

Actions never raise on API failure: the message lands in ``error`` and
all other state is left as it was.
"""

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from decimal import Decimal
from enum import StrEnum
from typing import Any, TypeVar
from uuid import UUID

import httpx

from agencyops.billing.diff import AcceptanceSet, resolve_final_items
from agencyops.models.billing import (
    BillingPlan,
    BillingPlanItem,
    DiffLine,
    PlanConfirmation,
    PlanSimulation,
)
from agencyops.models.common import ReviewStatus
from agencyops.review.client import BillingPlanClient

logger = logging.getLogger(__name__)

T = TypeVar("T")

CompletionCallback = Callable[[BillingPlan], Awaitable[None] | None]


class ReviewMode(StrEnum):
    NORMAL = "NORMAL"
    DIFF = "DIFF"


def _error_message(exc: Exception) -> str:
    if isinstance(exc, httpx.HTTPStatusError):
        detail = exc.response.reason_phrase
        try:
            body = exc.response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and body.get("detail"):
            detail = body["detail"]
        return f"Request failed ({exc.response.status_code}): {detail}"
    if isinstance(exc, httpx.HTTPError):
        return f"Network error: {exc}"
    return f"Unexpected response: {exc}"


class BillingPlanReviewSession:
    """NORMAL/DIFF review state machine for a single billing plan."""

    def __init__(
        self,
        client: BillingPlanClient,
        plan_id: UUID,
        on_complete: CompletionCallback | None = None,
    ) -> None:
        self._client = client
        self.plan_id = plan_id
        self._on_complete = on_complete

        self.plan: BillingPlan | None = None
        self.mode = ReviewMode.NORMAL
        self.simulation: PlanSimulation | None = None
        self.acceptances = AcceptanceSet()
        self.error: str | None = None

        self._task: asyncio.Task | None = None
        self._generation = 0
        self._closed = False

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def busy(self) -> bool:
        return self._task is not None

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def lines(self) -> list[DiffLine]:
        return list(self.simulation.items) if self.simulation else []

    def final_items(self) -> list[BillingPlanItem]:
        """Items that confirm() would post in the current mode."""
        if self.mode == ReviewMode.DIFF and self.simulation is not None:
            return resolve_final_items(self.simulation.items, self.acceptances.as_mapping())
        return list(self.plan.items) if self.plan else []

    def preview_total(self) -> Decimal:
        return sum((item.amount for item in self.final_items()), Decimal("0"))

    def dismiss_error(self) -> None:
        self.error = None

    # ------------------------------------------------------------------
    # Request plumbing
    # ------------------------------------------------------------------

    async def _run(self, action: str, work: Callable[[], Awaitable[T]]) -> tuple[bool, T | None]:
        """Run one request as a cancellable task.

        Returns (True, result) when the response is current, (False, None)
        when the session is busy or closed, the request failed, or the
        response went stale.
        """
        if self._closed or self._task is not None:
            logger.debug("Ignoring %s on plan %s: session busy or closed", action, self.plan_id)
            return False, None

        self._generation += 1
        generation = self._generation
        task = asyncio.create_task(work())
        self._task = task
        try:
            result = await task
        except asyncio.CancelledError:
            if self._is_stale(generation):
                return False, None
            raise
        except (httpx.HTTPError, ValueError) as exc:
            if self._is_stale(generation):
                return False, None
            self.error = _error_message(exc)
            logger.warning("Billing plan %s %s failed: %s", self.plan_id, action, self.error)
            return False, None
        finally:
            if self._task is task:
                self._task = None

        if self._is_stale(generation):
            logger.debug("Discarding stale %s response for plan %s", action, self.plan_id)
            return False, None
        return True, result

    def _is_stale(self, generation: int) -> bool:
        return self._closed or generation != self._generation

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    async def open(self) -> bool:
        """Load the plan; start in DIFF when it is flagged NEEDS_REVIEW."""
        ok, plan = await self._run("load", lambda: self._client.get_plan(self.plan_id))
        if not ok:
            return False
        self.plan = plan
        self.error = None
        if plan.review_status == ReviewStatus.NEEDS_REVIEW:
            await self.enter_diff()
        return True

    async def reload(self) -> bool:
        ok, plan = await self._run("reload", lambda: self._client.get_plan(self.plan_id))
        if ok:
            self.plan = plan
        return ok

    async def enter_diff(self) -> bool:
        """Simulate and switch to DIFF with fresh, empty acceptances."""
        ok, simulation = await self._run("simulate", lambda: self._client.simulate(self.plan_id))
        if not ok or simulation is None:
            return False
        self.simulation = simulation
        self.acceptances = AcceptanceSet(simulation.items)
        self.mode = ReviewMode.DIFF
        self.error = None
        return True

    def exit_diff(self) -> bool:
        if self.busy or self.mode != ReviewMode.DIFF:
            return False
        self.mode = ReviewMode.NORMAL
        self.simulation = None
        self.acceptances = AcceptanceSet()
        return True

    def toggle_accept(self, line_id: str) -> bool:
        """Flip one line's acceptance; False when nothing was toggled."""
        if self.busy or self.mode != ReviewMode.DIFF:
            return False
        try:
            self.acceptances.toggle(line_id)
        except KeyError:
            logger.debug("Line %s of plan %s has no difference to accept", line_id, self.plan_id)
            return False
        return True

    def accept_all(self) -> bool:
        if self.busy or self.mode != ReviewMode.DIFF:
            return False
        self.acceptances.accept_all()
        return True

    async def confirm(self, confirmed_by: str = "system") -> bool:
        """Post the resolved items; on success notify the caller or reload.

        The confirmed state is applied as soon as the confirm request
        succeeds. A failed reload afterwards only sets ``error``.
        """
        if self.plan is None:
            return False
        confirmation = PlanConfirmation(items=self.final_items(), confirmed_by=confirmed_by)

        ok, plan = await self._run(
            "confirm", lambda: self._client.confirm(self.plan_id, confirmation),
        )
        if not ok:
            return False

        self.plan = plan
        self.mode = ReviewMode.NORMAL
        self.simulation = None
        self.acceptances = AcceptanceSet()
        self.error = None
        logger.info("Billing plan %s confirmed by %s", self.plan_id, confirmed_by)

        if self._on_complete is None:
            await self.reload()
            return True

        outcome: Any = self._on_complete(plan)
        if inspect.isawaitable(outcome):
            await outcome
        return True

    async def close(self) -> None:
        """Cancel any in-flight request; later responses are discarded."""
        self._closed = True
        self._generation += 1
        task = self._task
        if task is not None and not task.done():
            task.cancel()
            await asyncio.wait([task])
