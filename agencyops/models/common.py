"""Shared types, enums, and base models used across AgencyOps domain models."""

from datetime import datetime, timezone
from decimal import Decimal
from enum import StrEnum
from typing import Annotated
from uuid import UUID

from pydantic import BaseModel, Field
from uuid_extensions import uuid7


def utc_now() -> datetime:
    """Return the current UTC timestamp (timezone-aware)."""
    return datetime.now(tz=timezone.utc)


def new_uuid7() -> UUID:
    """Generate a new time-sortable UUID v7."""
    return uuid7()


# --- Reusable annotated types ---

UUIDv7 = Annotated[UUID, Field(description="Time-sortable UUID v7.")]
UTCTimestamp = Annotated[
    datetime, Field(description="UTC timezone-aware timestamp.")
]
Money = Annotated[
    Decimal, Field(max_digits=14, decimal_places=2, description="TWD amount.")
]


# --- Shared enums ---


class Industry(StrEnum):
    """Industry categories a lead or employer can belong to."""

    MANUFACTURING = "MANUFACTURING"
    MID_MANUFACTURING = "MID_MANUFACTURING"
    CONSTRUCTION = "CONSTRUCTION"
    FISHERY = "FISHERY"
    AGRICULTURE = "AGRICULTURE"
    SLAUGHTER = "SLAUGHTER"
    HOME_CARE = "HOME_CARE"
    HOME_HELPER = "HOME_HELPER"
    INSTITUTION = "INSTITUTION"
    OUTREACH_AGRICULTURE = "OUTREACH_AGRICULTURE"
    HOSPITALITY = "HOSPITALITY"
    OTHER = "OTHER"


class LeadStatus(StrEnum):
    """CRM lead pipeline status."""

    NEW = "NEW"
    CONTACTED = "CONTACTED"
    MEETING = "MEETING"
    NEGOTIATING = "NEGOTIATING"
    WON = "WON"
    LOST = "LOST"


class ComplianceStandard(StrEnum):
    """Social-compliance standard an employer has committed to."""

    NONE = "NONE"
    RBA_7_0 = "RBA_7_0"
    RBA_8_0 = "RBA_8_0"
    IWAY_6_0 = "IWAY_6_0"
    SA8000 = "SA8000"


class Gender(StrEnum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


class DeploymentStatus(StrEnum):
    """Lifecycle status of a worker deployment."""

    PENDING = "pending"
    ACTIVE = "active"
    ENDED = "ended"
    TRANSFERRED_OUT = "transferred_out"
    CANCELLED = "cancelled"


class BillingItemCategory(StrEnum):
    """Receivable categories produced by the billing generator."""

    SERVICE_FEE = "SERVICE_FEE"
    ARC_FEE = "ARC_FEE"
    HEALTH_CHECK_FEE = "HEALTH_CHECK_FEE"
    DORMITORY_FEE = "DORMITORY_FEE"
    MEDICAL_FEE = "MEDICAL_FEE"
    INSURANCE_FEE = "INSURANCE_FEE"
    AIRPORT_PICKUP = "AIRPORT_PICKUP"
    TRAINING_FEE = "TRAINING_FEE"
    PLACEMENT_FEE = "PLACEMENT_FEE"
    STABILIZATION_FEE = "STABILIZATION_FEE"
    ADMIN_FEE = "ADMIN_FEE"
    OTHER_FEE = "OTHER_FEE"


class BillToParty(StrEnum):
    WORKER = "WORKER"
    EMPLOYER = "EMPLOYER"
    AGENCY = "AGENCY"


class BillingItemStatus(StrEnum):
    """Status of a single billing plan line."""

    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"


class BillingPlanStatus(StrEnum):
    """Billing plan lifecycle. PENDING plans are drafts; CONFIRMED plans are locked."""

    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"


class ReviewStatus(StrEnum):
    """Whether a plan must be reviewed against a fresh simulation."""

    NORMAL = "NORMAL"
    NEEDS_REVIEW = "NEEDS_REVIEW"


# --- Base model ---


class AgencyOpsBase(BaseModel):
    """Base model with common configuration for all AgencyOps Pydantic models."""

    model_config = {
        "populate_by_name": True,
        "ser_json_timedelta": "iso8601",
        "protected_namespaces": (),
    }
