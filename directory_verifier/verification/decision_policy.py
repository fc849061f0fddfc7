"""Decision and cadence policy.

Maps a run's check results to a decision, a new verification status and
the next due date. Cadence is asymmetric: flagged resources come back in
a week so broken listings are caught again quickly, verified ones in two
months so the batch budget is spent where it matters.

Rules, in order:
1. No checks ran: SKIPPED. Status, confidence and review flag are left
   untouched; only the next due date moves forward.
2. Any check failed: FLAG_FOR_HUMAN, status flagged, review required,
   next check in ``flagged_interval_days``.
3. Score at or above ``approve_threshold``: AUTO_APPROVE, status
   verified, review cleared, next check in ``verified_interval_days``.
4. Otherwise: FLAG_FOR_HUMAN.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Optional

from directory_verifier.config.settings import PolicyConfig, settings
from directory_verifier.data_management.schemas import (
    CheckResult,
    DecisionKind,
    Resource,
    VerificationStatus,
)
from directory_verifier.verification.anomaly_classifier import AnomalyReport

REASON_ALL_PASSED = "All checks passed"
REASON_ALL_PASSED_IP_BLOCK = (
    "All checks passed (bot protection detected - 403 under full browser rendering)"
)
REASON_NOTHING_TO_CHECK = "No checkable fields"


@dataclass(frozen=True)
class PolicyDecision:
    """
    Outcome of the policy for one run.

    ``status``, ``confidence`` and ``human_review_required`` are None for a
    skipped run, meaning "leave the stored value unchanged".
    """

    decision: DecisionKind
    reason: str
    next_verification_at: datetime
    status: Optional[VerificationStatus] = None
    confidence: Optional[float] = None
    human_review_required: Optional[bool] = None
    last_verified_at: Optional[datetime] = None

    @property
    def is_skipped(self) -> bool:
        return self.decision == DecisionKind.SKIPPED


class DecisionPolicy:
    """Pure decision function over check results; performs no I/O."""

    def __init__(self, config: Optional[PolicyConfig] = None) -> None:
        self.config = config or settings.policy

    def decide(
        self,
        resource: Resource,
        checks: dict[str, CheckResult],
        score: Optional[float],
        anomaly: AnomalyReport,
        completed_at: datetime,
    ) -> PolicyDecision:
        """
        Decide the outcome of a run.

        Args:
            resource: Resource that was checked
            checks: Check name to result, in execution order
            score: Overall score, None when no check ran
            anomaly: Anomaly annotations for the run
            completed_at: When the run finished; cadences count from here

        Returns:
            PolicyDecision
        """
        if not checks or score is None:
            return PolicyDecision(
                decision=DecisionKind.SKIPPED,
                reason=REASON_NOTHING_TO_CHECK,
                next_verification_at=completed_at
                + timedelta(days=self.config.skipped_interval_days),
            )

        failed = [(name, result) for name, result in checks.items() if not result.passed]
        if failed:
            name, result = failed[0]
            return self._flag(
                f"{name} check failed: {result.error or 'unknown error'}",
                score,
                completed_at,
            )

        if score >= self.config.approve_threshold:
            reason = REASON_ALL_PASSED_IP_BLOCK if anomaly.ip_block_detected else REASON_ALL_PASSED
            return PolicyDecision(
                decision=DecisionKind.AUTO_APPROVE,
                reason=reason,
                status=VerificationStatus.VERIFIED,
                confidence=score,
                human_review_required=False,
                last_verified_at=completed_at,
                next_verification_at=completed_at
                + timedelta(days=self.config.verified_interval_days),
            )

        return self._flag(
            f"Score {score:.2f} below approval threshold {self.config.approve_threshold:.2f}",
            score,
            completed_at,
        )

    def _flag(self, reason: str, score: float, completed_at: datetime) -> PolicyDecision:
        return PolicyDecision(
            decision=DecisionKind.FLAG_FOR_HUMAN,
            reason=reason,
            status=VerificationStatus.FLAGGED,
            confidence=score,
            human_review_required=True,
            last_verified_at=completed_at,
            next_verification_at=completed_at
            + timedelta(days=self.config.flagged_interval_days),
        )

    @staticmethod
    def resource_updates(decision: PolicyDecision) -> dict[str, Any]:
        """
        Column values to write on the resource for a decision.

        A skipped decision only moves ``next_verification_at``.
        """
        values: dict[str, Any] = {"next_verification_at": decision.next_verification_at}
        if decision.is_skipped:
            return values
        values.update(
            verification_status=decision.status,
            verification_confidence=decision.confidence,
            human_review_required=decision.human_review_required,
            last_verified_at=decision.last_verified_at,
        )
        return values
