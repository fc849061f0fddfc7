"""Schema package for resources, verification runs and human review.

Primary exports:
- Resource: the directory listing and its verification state
- CheckResult: uniform output of every check strategy
- VerificationRun: append-only audit record of one verification
- ReviewCandidate / CorrectionSubmission: single-item review protocol

Usage:
    from directory_verifier.data_management.schemas import Resource, VerificationStatus
    resource = Resource(name="Community Legal Aid", website="https://example.org")
"""

from directory_verifier.data_management.schemas.resource_schema import (
    CORRECTABLE_FIELDS,
    SNAPSHOT_FIELDS,
    Resource,
    ResourceStatus,
    VerificationStatus,
)
from directory_verifier.data_management.schemas.verification_schema import (
    CheckResult,
    Conflict,
    ConflictKind,
    DecisionKind,
    ProbeResult,
    VerificationRun,
    VerificationType,
)
from directory_verifier.data_management.schemas.review_schema import (
    REVIEW_FIELDS,
    CorrectionSubmission,
    QueueStatus,
    ReviewCandidate,
)

__all__ = [
    # Resource
    "CORRECTABLE_FIELDS",
    "SNAPSHOT_FIELDS",
    "Resource",
    "ResourceStatus",
    "VerificationStatus",
    # Verification
    "CheckResult",
    "Conflict",
    "ConflictKind",
    "DecisionKind",
    "ProbeResult",
    "VerificationRun",
    "VerificationType",
    # Review
    "REVIEW_FIELDS",
    "CorrectionSubmission",
    "QueueStatus",
    "ReviewCandidate",
]
