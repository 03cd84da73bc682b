"""Recruitment-letter quota availability.

A recruitment letter authorises a bounded number of hires. Circular
letters free a slot when a worker leaves, so only occupying deployments
(active/pending) count against them. One-time letters count every
deployment ever made under the letter.

Optional gender quotas apply on top of the total quota.
"""

from collections.abc import Iterable
from dataclasses import dataclass

from agencyops.models.common import DeploymentStatus, Gender

OCCUPYING_STATUSES = frozenset({DeploymentStatus.ACTIVE, DeploymentStatus.PENDING})


@dataclass(frozen=True)
class LetterQuotaPolicy:
    """Quota terms of a single recruitment letter."""

    approved_quota: int
    can_circulate: bool
    quota_male: int = 0
    quota_female: int = 0


@dataclass(frozen=True)
class DeploymentUsage:
    """Minimal view of a deployment that consumed a letter slot."""

    status: str
    gender: str | None


@dataclass(frozen=True)
class QuotaCheckResult:
    available: bool
    used: int
    remaining: int
    reason: str = ""


def counted_usages(
    policy: LetterQuotaPolicy,
    usages: Iterable[DeploymentUsage],
) -> list[DeploymentUsage]:
    """Usages that count against the letter under its circulation policy."""
    if policy.can_circulate:
        return [u for u in usages if u.status in OCCUPYING_STATUSES]
    return list(usages)


def check_quota_availability(
    policy: LetterQuotaPolicy,
    usages: Iterable[DeploymentUsage],
    worker_gender: str | None = None,
) -> QuotaCheckResult:
    """Check whether one more worker can be deployed under the letter."""
    counted = counted_usages(policy, usages)
    used = len(counted)
    remaining = max(0, policy.approved_quota - used)

    if used >= policy.approved_quota:
        return QuotaCheckResult(
            available=False,
            used=used,
            remaining=0,
            reason=(
                f"Quota exceeded - approved: {policy.approved_quota}, used: {used}"
            ),
        )

    if worker_gender == Gender.MALE and policy.quota_male > 0:
        male_used = sum(1 for u in counted if u.gender == Gender.MALE)
        if male_used >= policy.quota_male:
            return QuotaCheckResult(
                available=False, used=used, remaining=remaining,
                reason="Male quota exceeded",
            )
    elif worker_gender == Gender.FEMALE and policy.quota_female > 0:
        female_used = sum(1 for u in counted if u.gender == Gender.FEMALE)
        if female_used >= policy.quota_female:
            return QuotaCheckResult(
                available=False, used=used, remaining=remaining,
                reason="Female quota exceeded",
            )

    return QuotaCheckResult(available=True, used=used, remaining=remaining)
