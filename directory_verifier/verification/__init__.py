"""Verification agent, anomaly classification and decision policy."""

from directory_verifier.verification.anomaly_classifier import (
    AnomalyClassifier,
    AnomalyReport,
)
from directory_verifier.verification.decision_policy import DecisionPolicy, PolicyDecision
from directory_verifier.verification.verification_agent import (
    VerificationAgent,
    VerificationOutcome,
    compute_score,
)

__all__ = [
    "AnomalyClassifier",
    "AnomalyReport",
    "DecisionPolicy",
    "PolicyDecision",
    "VerificationAgent",
    "VerificationOutcome",
    "compute_score",
]
