"""Resource schema: the directory entry subject to verification.

Only the verification pipeline (after a run) and a human reviewer
(through the review gateway) mutate the verification fields. Every write
goes through an optimistic-concurrency check on ``version``.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


class ResourceStatus(str, Enum):
    """Listing lifecycle status. Only active resources are verified."""

    ACTIVE = "active"
    INACTIVE = "inactive"


class VerificationStatus(str, Enum):
    """Data-quality status of a resource.

    PENDING: Never conclusively verified.
    VERIFIED: Last run (or human review) confirmed the listing.
    FLAGGED: At least one check failed; awaiting human review.
    """

    PENDING = "pending"
    VERIFIED = "verified"
    FLAGGED = "flagged"


# Fields a reviewer may correct through the review gateway
CORRECTABLE_FIELDS: frozenset[str] = frozenset(
    {
        "name",
        "address",
        "city",
        "state",
        "zip",
        "phone",
        "email",
        "website",
        "hours",
        "services_offered",
        "eligibility_requirements",
        "primary_category",
    }
)

# Fields a triggered verification may override for the duration of one run
SNAPSHOT_FIELDS: frozenset[str] = frozenset(
    {"website", "phone", "address", "city", "state", "zip"}
)

_BLANKABLE_FIELDS = (
    "address",
    "city",
    "state",
    "zip",
    "phone",
    "email",
    "website",
    "eligibility_requirements",
    "primary_category",
    "verification_source",
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Resource(BaseModel):
    """A directory listing with the fields the verification pipeline reads.

    Contact and service fields are carried so the review gateway can hand
    a reviewer the full context of a listing; the automated checks only
    look at the fields their strategies declare.
    """

    id: str = Field(
        default_factory=lambda: str(uuid.uuid4()),
        description="Resource identifier",
    )
    name: str = Field(..., min_length=1, description="Organisation or listing name")
    status: ResourceStatus = Field(default=ResourceStatus.ACTIVE)

    # Contact / location
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None

    # Services
    hours: Optional[dict[str, str]] = Field(
        default=None, description="Opening hours keyed by day"
    )
    services_offered: Optional[list[str]] = None
    eligibility_requirements: Optional[str] = None
    primary_category: Optional[str] = None

    # Verification state
    verification_status: VerificationStatus = Field(default=VerificationStatus.PENDING)
    verification_confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    last_verified_at: Optional[datetime] = None
    next_verification_at: Optional[datetime] = Field(
        default=None,
        description="Next scheduled check; None means never checked (due now)",
    )
    human_review_required: bool = False

    # Human provenance
    verification_source: Optional[str] = Field(
        default=None, description="URL or search query a reviewer used as evidence"
    )
    verified_by: Optional[str] = None
    correction_notes: Optional[str] = None

    # Bookkeeping
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    version: int = Field(default=1, ge=1, description="Optimistic concurrency token")

    model_config = {"from_attributes": True}

    @field_validator(*_BLANKABLE_FIELDS, mode="before")
    @classmethod
    def blank_to_none(cls, value: Any) -> Any:
        """Treat blank strings as missing so 'no email' has one representation."""
        if isinstance(value, str) and not value.strip():
            return None
        if isinstance(value, str):
            return value.strip()
        return value

    @model_validator(mode="after")
    def flagged_requires_review(self) -> "Resource":
        """A flagged resource always awaits human review."""
        if self.verification_status == VerificationStatus.FLAGGED:
            self.human_review_required = True
        return self

    @property
    def has_contact(self) -> bool:
        """True when the listing has at least a phone number or an email."""
        return bool(self.phone or self.email)

    @property
    def full_address(self) -> Optional[str]:
        """Street address joined with city/state/zip, or None without a street line."""
        if not self.address:
            return None
        return ", ".join(p for p in (self.address, self.city, self.state, self.zip) if p)
