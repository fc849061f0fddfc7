"""Verification agent: runs checks for one resource and builds the audit run.

Flow per resource:
1. Select applicable checks from the registry (registration order)
2. Run them one at a time; each returns a CheckResult and never raises
3. Score = passed / executed (None when nothing applied)
4. Annotate anomalies (AnomalyClassifier)
5. Decide outcome and cadence (DecisionPolicy)
6. Return a VerificationRun plus the decision

The agent never persists and never mutates the resource. Persistence is
the pipeline's job, which lets a dry run share this exact code path.

Usage:
    from directory_verifier.verification import VerificationAgent

    agent = VerificationAgent(registry=default_registry())
    run = await agent.verify(resource, VerificationType.PERIODIC)
"""

import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

import structlog

from directory_verifier.checks.registry import CheckRegistry, default_registry
from directory_verifier.config.settings import settings
from directory_verifier.data_management.schemas import (
    CheckResult,
    Resource,
    VerificationRun,
    VerificationType,
)
from directory_verifier.verification.anomaly_classifier import (
    AnomalyClassifier,
    AnomalyReport,
)
from directory_verifier.verification.decision_policy import DecisionPolicy, PolicyDecision


@dataclass(frozen=True)
class VerificationOutcome:
    """A run together with the decision and anomalies that produced it."""

    run: VerificationRun
    decision: PolicyDecision
    anomaly: AnomalyReport


def compute_score(checks: dict[str, CheckResult]) -> Optional[float]:
    """Fraction of executed checks that passed, or None when none ran."""
    if not checks:
        return None
    passed = sum(1 for result in checks.values() if result.passed)
    return passed / len(checks)


class VerificationAgent:
    """Executes the registered checks for a resource and decides the outcome."""

    def __init__(
        self,
        registry: Optional[CheckRegistry] = None,
        anomaly_classifier: Optional[AnomalyClassifier] = None,
        policy: Optional[DecisionPolicy] = None,
        agent_version: Optional[str] = None,
    ) -> None:
        """Initialize VerificationAgent.

        Args:
            registry: Check strategies to run. Defaults to default_registry().
            anomaly_classifier: Anomaly annotator.
            policy: Decision and cadence policy.
            agent_version: Version tag recorded on every run.
        """
        self.registry = registry if registry is not None else default_registry()
        self.anomaly_classifier = anomaly_classifier or AnomalyClassifier()
        self.policy = policy or DecisionPolicy()
        self.agent_version = agent_version or settings.agent_version
        self._logger = structlog.get_logger().bind(component="VerificationAgent")

    compute_score = staticmethod(compute_score)

    async def run_checks(self, resource: Resource) -> dict[str, CheckResult]:
        """Run every applicable check sequentially, keyed by check name."""
        results: dict[str, CheckResult] = {}
        for check in self.registry.applicable(resource):
            results[check.name] = await check.run(resource)
            self._logger.debug(
                "check_completed",
                resource_id=resource.id,
                check=check.name,
                passed=results[check.name].passed,
            )
        return results

    async def evaluate(
        self,
        resource: Resource,
        verification_type: VerificationType = VerificationType.PERIODIC,
    ) -> VerificationOutcome:
        """Run checks, classify anomalies and decide, without side effects.

        Args:
            resource: Resource to verify.
            verification_type: Periodic (scheduled) or triggered.

        Returns:
            VerificationOutcome with the run ready to be appended.
        """
        started_at = datetime.now(timezone.utc)
        start = time.monotonic()

        checks = await self.run_checks(resource)
        score = compute_score(checks)

        completed_at = datetime.now(timezone.utc)
        anomaly = self.anomaly_classifier.classify(resource, checks, detected_at=completed_at)
        decision = self.policy.decide(resource, checks, score, anomaly, completed_at)

        run = VerificationRun(
            resource_id=resource.id,
            verification_type=verification_type,
            agent_version=self.agent_version,
            overall_score=score,
            checks_performed=checks,
            decision=decision.decision,
            decision_reason=decision.reason,
            conflicts_found=list(anomaly.conflicts),
            ip_block_detected=anomaly.ip_block_detected,
            started_at=started_at,
            completed_at=completed_at,
            duration_ms=int((time.monotonic() - start) * 1000),
        )

        self._logger.info(
            "resource_evaluated",
            resource_id=resource.id,
            checks=len(checks),
            score=score,
            decision=decision.decision.value,
            ip_block=anomaly.ip_block_detected,
        )
        return VerificationOutcome(run=run, decision=decision, anomaly=anomaly)

    async def verify(
        self,
        resource: Resource,
        verification_type: VerificationType = VerificationType.PERIODIC,
    ) -> VerificationRun:
        """Verify a resource and return the (unpersisted) run."""
        outcome = await self.evaluate(resource, verification_type)
        return outcome.run
