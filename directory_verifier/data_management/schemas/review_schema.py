"""Schemas for the single-item human review protocol."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from directory_verifier.data_management.schemas.resource_schema import Resource
from directory_verifier.data_management.schemas.verification_schema import CheckResult


# Fields a reviewer is asked to confirm, in display order
REVIEW_FIELDS: tuple[str, ...] = ("website", "phone", "address", "services", "hours")


class ReviewCandidate(BaseModel):
    """The one resource a reviewer should verify next, with full context."""

    resource: Resource
    priority: int = Field(..., description="Higher is more urgent")
    priority_reason: str
    last_decision_reason: Optional[str] = Field(
        default=None, description="decision_reason of the latest automated run"
    )
    last_checks_performed: dict[str, CheckResult] = Field(default_factory=dict)
    last_run_at: Optional[datetime] = None
    checks_needed: list[str] = Field(
        default_factory=list,
        description="Fields still lacking passing automated or human confirmation",
    )


class CorrectionSubmission(BaseModel):
    """A reviewer's corrections for one resource.

    ``verification_source`` is optional at the schema level so a missing
    citation reaches the gateway and is rejected there with an explicit
    error instead of a generic validation failure.
    """

    resource_id: str
    corrections: dict[str, Any] = Field(default_factory=dict)
    verification_source: Optional[str] = Field(
        default=None, description="URL or search query used to verify the listing"
    )
    correction_notes: Optional[str] = None
    reviewer: Optional[str] = None
    expected_version: Optional[int] = Field(
        default=None,
        ge=1,
        description="Version the reviewer saw; None means the version read at submit time",
    )


class QueueStatus(BaseModel):
    """Review queue metrics across active resources."""

    total_active: int = 0
    with_email: int = 0
    with_source: int = 0
    missing_email: int = 0
    missing_source: int = 0
    no_contact: int = 0
    awaiting_review: int = 0
