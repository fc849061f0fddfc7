"""Tests for resource, check-result and verification-run schemas."""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from directory_verifier.data_management.schemas import (
    CheckResult,
    DecisionKind,
    ProbeResult,
    Resource,
    VerificationRun,
    VerificationStatus,
    VerificationType,
)


def _run(**overrides) -> VerificationRun:
    fields = {
        "resource_id": "res-1",
        "verification_type": VerificationType.PERIODIC,
        "agent_version": "test",
        "overall_score": 1.0,
        "checks_performed": {"phone_valid": CheckResult(passed=True)},
        "decision": DecisionKind.AUTO_APPROVE,
        "decision_reason": "All checks passed",
    }
    fields.update(overrides)
    return VerificationRun(**fields)


# ── Resource ─────────────────────────────────────────────────────────────


class TestResource:
    def test_defaults(self) -> None:
        resource = Resource(name="Legal Aid")
        assert resource.verification_status == VerificationStatus.PENDING
        assert resource.next_verification_at is None
        assert resource.version == 1
        assert resource.human_review_required is False

    def test_blank_strings_become_none(self) -> None:
        resource = Resource(name="Legal Aid", email="  ", website="", phone=" 510 ")
        assert resource.email is None
        assert resource.website is None
        assert resource.phone == "510"

    def test_flagged_implies_review(self) -> None:
        resource = Resource(
            name="Legal Aid",
            verification_status=VerificationStatus.FLAGGED,
            human_review_required=False,
        )
        assert resource.human_review_required is True

    def test_invalid_status_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Resource(name="Legal Aid", verification_status="approved")

    def test_confidence_bounds(self) -> None:
        with pytest.raises(ValidationError):
            Resource(name="Legal Aid", verification_confidence=1.5)

    def test_full_address(self) -> None:
        resource = Resource(name="x", address="1 Main St", city="Oakland", state="CA")
        assert resource.full_address == "1 Main St, Oakland, CA"
        assert Resource(name="x", city="Oakland").full_address is None

    def test_has_contact(self) -> None:
        assert Resource(name="x", phone="5105550100").has_contact
        assert Resource(name="x", email="a@b.org").has_contact
        assert not Resource(name="x").has_contact


# ── CheckResult ──────────────────────────────────────────────────────────


class TestCheckResult:
    def test_pass_alias_in_dump(self) -> None:
        result = CheckResult(
            passed=True,
            status_code=200,
            direct_check=ProbeResult(passed=True, status_code=200),
        )
        dumped = result.model_dump(mode="json", by_alias=True)
        assert dumped["pass"] is True
        assert dumped["direct_check"]["pass"] is True
        assert "passed" not in dumped

    def test_accepts_stored_json(self) -> None:
        result = CheckResult.model_validate({"pass": False, "error": "HTTP 500"})
        assert result.passed is False

    def test_failure_helper(self) -> None:
        result = CheckResult.failure("boom", latency_ms=12, format="invalid")
        assert result.passed is False
        assert result.error == "boom"
        assert result.details == {"format": "invalid"}

    def test_frozen(self) -> None:
        result = CheckResult(passed=True)
        with pytest.raises(ValidationError):
            result.passed = False


# ── VerificationRun ──────────────────────────────────────────────────────


class TestVerificationRun:
    def test_zero_checks_needs_null_score(self) -> None:
        run = _run(
            overall_score=None,
            checks_performed={},
            decision=DecisionKind.SKIPPED,
            decision_reason="No checkable fields",
        )
        assert run.overall_score is None
        with pytest.raises(ValidationError):
            _run(overall_score=0.5, checks_performed={}, decision=DecisionKind.SKIPPED)

    def test_checks_need_score(self) -> None:
        with pytest.raises(ValidationError):
            _run(overall_score=None)

    def test_failed_check_cannot_auto_approve(self) -> None:
        with pytest.raises(ValidationError):
            _run(
                overall_score=0.5,
                checks_performed={
                    "url_reachable": CheckResult(passed=False, error="HTTP 500"),
                    "phone_valid": CheckResult(passed=True),
                },
            )

    def test_failed_checks_property(self) -> None:
        run = _run(
            overall_score=0.5,
            checks_performed={
                "url_reachable": CheckResult(passed=False, error="HTTP 500"),
                "phone_valid": CheckResult(passed=True),
            },
            decision=DecisionKind.FLAG_FOR_HUMAN,
            decision_reason="url_reachable check failed: HTTP 500",
        )
        assert run.failed_checks == ["url_reachable"]
        assert run.checks_as_json()["url_reachable"]["pass"] is False

    def test_runs_are_immutable(self) -> None:
        run = _run()
        with pytest.raises(ValidationError):
            run.decision_reason = "edited"

    def test_timestamps_are_aware(self) -> None:
        run = _run(completed_at=datetime(2026, 1, 1, tzinfo=timezone.utc))
        assert run.started_at.tzinfo is not None
        assert run.completed_at.tzinfo is not None
