"""Lead → employer conversion rules.

Validation runs before anything is written: a conversion that fails here
never touches the database. The API layer turns ValueError into HTTP 400.

Industry codes follow the labour ministry's foreign-worker categories
('01' manufacturing, '02' construction, '06' home care, '08' institution).
Unknown codes fall back to MANUFACTURING, which then demands the factory
and quota fields.
"""

import re
from dataclasses import dataclass
from decimal import Decimal

from agencyops.models.common import ComplianceStandard, Industry
from agencyops.quota.allocator import (
    MAX_ALLOCATION_RATE,
    calculate_3k5_quota,
    compose_allocation_rate,
    describe_quota,
)

TAX_ID_PATTERN = re.compile(r"^[0-9]{8}$")

INDUSTRY_CODE_MAP: dict[str, Industry] = {
    "01": Industry.MANUFACTURING,
    "02": Industry.CONSTRUCTION,
    "06": Industry.HOME_CARE,
    "08": Industry.INSTITUTION,
}

MANUFACTURING_CATEGORIES = frozenset({Industry.MANUFACTURING, Industry.MID_MANUFACTURING})


@dataclass(frozen=True)
class ConversionRequest:
    """Operator input for converting a lead."""

    tax_id: str
    industry_code: str | None = None
    industry_type: str | None = None
    invoice_address: str | None = None
    factory_address: str | None = None
    avg_domestic_workers: int | None = None
    allocation_rate: Decimal | None = None
    base_rate: Decimal | None = None
    extra_rate: Decimal | None = None
    apply_extra: bool = False
    compliance_standard: str = ComplianceStandard.NONE


@dataclass(frozen=True)
class ConversionPlan:
    """Validated, normalised employer fields ready to persist."""

    tax_id: str
    industry_type: Industry
    industry_code: str | None
    invoice_address: str
    factory_address: str | None
    avg_domestic_workers: int | None
    allocation_rate: Decimal | None
    foreign_worker_quota: int | None
    compliance_standard: ComplianceStandard
    quota_note: str = ""


def resolve_category(industry_code: str | None, industry_type: str | None) -> Industry:
    """Industry code wins over industry type; MANUFACTURING by default."""
    if industry_code:
        return INDUSTRY_CODE_MAP.get(industry_code, Industry.MANUFACTURING)
    if industry_type:
        try:
            return Industry(industry_type)
        except ValueError:
            msg = f"Unknown industry type: {industry_type}"
            raise ValueError(msg) from None
    return Industry.MANUFACTURING


def requires_factory_info(category: Industry, industry_code: str | None = None) -> bool:
    return category in MANUFACTURING_CATEGORIES or industry_code == "01"


def _effective_rate(request: ConversionRequest) -> Decimal | None:
    if request.allocation_rate is not None:
        return Decimal(str(request.allocation_rate))
    if request.base_rate is not None:
        return compose_allocation_rate(
            request.base_rate,
            request.extra_rate if request.extra_rate is not None else Decimal("0"),
            request.apply_extra,
        )
    return None


def validate_conversion(request: ConversionRequest, lead_address: str | None) -> ConversionPlan:
    """Check a conversion request and derive the employer fields.

    Raises:
        ValueError: any required field is missing or malformed.
    """
    tax_id = (request.tax_id or "").strip()
    if not TAX_ID_PATTERN.match(tax_id):
        msg = "Tax ID must be exactly 8 digits"
        raise ValueError(msg)

    invoice_address = (request.invoice_address or lead_address or "").strip()
    if not invoice_address:
        msg = "Invoice address is required"
        raise ValueError(msg)

    try:
        compliance = ComplianceStandard(request.compliance_standard or ComplianceStandard.NONE)
    except ValueError:
        msg = f"Unknown compliance standard: {request.compliance_standard}"
        raise ValueError(msg) from None

    category = resolve_category(request.industry_code, request.industry_type)
    rate = _effective_rate(request)
    workers = request.avg_domestic_workers

    if rate is not None and not (Decimal("0") < rate <= MAX_ALLOCATION_RATE):
        msg = f"Allocation rate must be within (0, {MAX_ALLOCATION_RATE}], got {rate}"
        raise ValueError(msg)
    if workers is not None and workers < 0:
        msg = "Average domestic worker count must not be negative"
        raise ValueError(msg)

    factory_address = (request.factory_address or "").strip() or None
    if requires_factory_info(category, request.industry_code):
        if factory_address is None:
            msg = "Factory address is required for manufacturing employers"
            raise ValueError(msg)
        if not workers:
            msg = "Average domestic worker count is required for manufacturing employers"
            raise ValueError(msg)
        if rate is None:
            msg = "Allocation rate is required for manufacturing employers"
            raise ValueError(msg)

    quota: int | None = None
    note = ""
    if workers and rate is not None:
        quota = calculate_3k5_quota(workers, rate)
        note = f"3K5 Quota: {describe_quota(workers, rate)} people"

    return ConversionPlan(
        tax_id=tax_id,
        industry_type=category,
        industry_code=request.industry_code or None,
        invoice_address=invoice_address,
        factory_address=factory_address,
        avg_domestic_workers=workers,
        allocation_rate=rate,
        foreign_worker_quota=quota,
        compliance_standard=compliance,
        quota_note=note,
    )
