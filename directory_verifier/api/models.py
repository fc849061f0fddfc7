"""
Pydantic models for API request/response validation.
"""
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from directory_verifier.data_management.schemas import (
    Resource,
    VerificationRun,
    VerificationStatus,
)


class TriggeredVerificationRequest(BaseModel):
    """Field snapshot for an on-demand verification; unset fields use stored values."""
    website: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None
    dry_run: bool = Field(default=False, description="Evaluate without writing anything")

    def snapshot(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True, exclude={"dry_run"})


class TriggeredVerificationResponse(BaseModel):
    """Run produced by a triggered verification plus the resulting resource status."""
    run: VerificationRun
    resource_id: str
    verification_status: VerificationStatus
    human_review_required: bool
    next_verification_at: Optional[datetime] = None
    version: int
    persisted: bool


class CorrectionRequest(BaseModel):
    """Reviewer corrections; verification_source is enforced by the gateway."""
    corrections: dict[str, Any] = Field(default_factory=dict)
    verification_source: Optional[str] = Field(
        default=None, description="URL or search query used to verify the listing"
    )
    correction_notes: Optional[str] = None
    reviewer: Optional[str] = None
    expected_version: Optional[int] = Field(default=None, ge=1)


class CorrectionResponse(BaseModel):
    """Accepted correction."""
    resource: Resource
    applied_fields: list[str]


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str
    database_connected: bool
