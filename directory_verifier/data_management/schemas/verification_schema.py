"""Verification domain schemas: check results, anomalies and audit runs.

CheckResult is the uniform shape every check strategy produces. A
VerificationRun is the append-only audit record of one execution of the
verification agent for one resource; it is frozen so that a stored run
can only be superseded by a newer run, never edited.

``passed`` serialises as ``pass`` (``model_dump(by_alias=True)``) to keep
the stored JSON readable by existing dashboards.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class VerificationType(str, Enum):
    """Why a run happened."""

    TRIGGERED = "triggered"
    PERIODIC = "periodic"


class DecisionKind(str, Enum):
    """Outcome of the decision policy for one run.

    AUTO_APPROVE: Every check passed and the score cleared the threshold.
    FLAG_FOR_HUMAN: At least one check failed.
    AUTO_REJECT: Reserved for a future policy; never produced today.
    SKIPPED: Nothing to check; resource state left unchanged.
    """

    AUTO_APPROVE = "auto_approve"
    FLAG_FOR_HUMAN = "flag_for_human"
    AUTO_REJECT = "auto_reject"
    SKIPPED = "skipped"


class ConflictKind(str, Enum):
    """Kinds of diagnostics recorded in VerificationRun.conflicts_found."""

    IP_BLOCK = "ip_block"


class ProbeResult(BaseModel):
    """Outcome of one probing strategy inside a multi-strategy check."""

    passed: bool = Field(..., alias="pass")
    status_code: Optional[int] = None
    error: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class CheckResult(BaseModel):
    """Uniform result of a single check strategy.

    Attributes:
        passed: Whether the check passed (serialised as ``pass``)
        checked_at: When the check finished
        latency_ms: Wall-clock duration of the check
        status_code: HTTP status for network checks
        error: Diagnostic for a failed check
        direct_check: Sub-result of the direct probe (URL check)
        redundant_check: Sub-result of a secondary probe, when one ran
        details: Free-form diagnostics for non-network checks
    """

    passed: bool = Field(..., alias="pass")
    checked_at: datetime = Field(default_factory=_utcnow)
    latency_ms: int = Field(default=0, ge=0)
    status_code: Optional[int] = None
    error: Optional[str] = None
    direct_check: Optional[ProbeResult] = None
    redundant_check: Optional[ProbeResult] = None
    details: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(
        populate_by_name=True,
        frozen=True,
        json_schema_extra={
            "examples": [
                {
                    "pass": True,
                    "checked_at": "2026-01-10T12:00:00Z",
                    "latency_ms": 1840,
                    "status_code": 200,
                    "direct_check": {"pass": True, "status_code": 200},
                    "redundant_check": None,
                }
            ]
        },
    )

    @classmethod
    def failure(
        cls,
        error: str,
        latency_ms: int = 0,
        status_code: Optional[int] = None,
        **details: Any,
    ) -> "CheckResult":
        """Build a failed result carrying a diagnostic."""
        return cls(
            passed=False,
            latency_ms=latency_ms,
            status_code=status_code,
            error=error,
            details=details,
        )


class Conflict(BaseModel):
    """Structured diagnostic attached to a run, separate from the decision reason.

    An IP_BLOCK conflict means a check failed in a way that implicates the
    checking mechanism (403 under full browser rendering) rather than the
    resource itself.
    """

    kind: ConflictKind
    check_name: str
    url: Optional[str] = None
    status_code: Optional[int] = None
    error: str
    detected_at: datetime = Field(default_factory=_utcnow)

    model_config = ConfigDict(frozen=True)


class VerificationRun(BaseModel):
    """Append-only audit record of one verification execution.

    Holds everything needed to replay the decision: every check result,
    the score, the decision and its reason, and any anomaly diagnostics.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    resource_id: str
    verification_type: VerificationType
    agent_version: str
    overall_score: Optional[float] = Field(
        default=None,
        ge=0.0,
        le=1.0,
        description="passed / total over executed checks; None when no check ran",
    )
    checks_performed: dict[str, CheckResult] = Field(default_factory=dict)
    decision: DecisionKind
    decision_reason: str
    conflicts_found: list[Conflict] = Field(default_factory=list)
    ip_block_detected: bool = False
    started_at: datetime = Field(default_factory=_utcnow)
    completed_at: datetime = Field(default_factory=_utcnow)
    duration_ms: int = Field(default=0, ge=0)

    model_config = ConfigDict(from_attributes=True, frozen=True)

    @model_validator(mode="after")
    def check_consistency(self) -> "VerificationRun":
        """Reject runs whose score or decision contradict their checks."""
        if not self.checks_performed and self.overall_score is not None:
            raise ValueError("overall_score must be None when no checks ran")
        if self.checks_performed and self.overall_score is None:
            raise ValueError("overall_score is required when checks ran")
        any_failed = any(not c.passed for c in self.checks_performed.values())
        if any_failed and self.decision == DecisionKind.AUTO_APPROVE:
            raise ValueError("a run with a failed check cannot be auto-approved")
        return self

    @property
    def failed_checks(self) -> list[str]:
        """Names of checks that failed, in execution order."""
        return [name for name, c in self.checks_performed.items() if not c.passed]

    def checks_as_json(self) -> dict[str, Any]:
        """checks_performed in its stored JSON form (``pass`` keys)."""
        return {
            name: result.model_dump(mode="json", by_alias=True)
            for name, result in self.checks_performed.items()
        }
