"""Single-item human review gateway.

Reviewers get exactly one resource at a time, the most urgent one, with
all the context needed to verify it externally. There is no cursor and no
batch endpoint: asking again returns whatever is most urgent now, which
keeps reviewers from bulk-approving listings they never looked at.

A correction is only accepted with a ``verification_source`` citing the
URL or search query the reviewer used. Without it nothing is written.

Usage:
    from directory_verifier.review import ReviewGateway

    gateway = ReviewGateway(database)
    candidate = await gateway.next_candidate()
    await gateway.submit_correction(
        CorrectionSubmission(
            resource_id=candidate.resource.id,
            corrections={"email": "info@example.org"},
            verification_source="https://example.org/contact",
        )
    )
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import structlog
from pydantic import ValidationError

from directory_verifier.checks.address_check import ADDRESS_CHECK_NAME
from directory_verifier.checks.phone_check import PHONE_CHECK_NAME
from directory_verifier.checks.url_check import URL_CHECK_NAME
from directory_verifier.config.settings import PolicyConfig, settings
from directory_verifier.data_management.database import Database
from directory_verifier.data_management.resource_store import ResourceStore
from directory_verifier.data_management.schemas import (
    CORRECTABLE_FIELDS,
    REVIEW_FIELDS,
    CorrectionSubmission,
    QueueStatus,
    Resource,
    ReviewCandidate,
    VerificationRun,
    VerificationStatus,
)
from directory_verifier.data_management.verification_run_store import VerificationRunStore
from directory_verifier.errors import CorrectionRejectedError, MissingVerificationSourceError

# Review field -> automated check that can confirm it
_FIELD_CHECKS: dict[str, str] = {
    "website": URL_CHECK_NAME,
    "phone": PHONE_CHECK_NAME,
    "address": ADDRESS_CHECK_NAME,
}


@dataclass(frozen=True)
class CorrectionOutcome:
    """An accepted correction."""

    resource: Resource
    applied_fields: list[str]


class ReviewGateway:
    """Serves one review candidate at a time and applies cited corrections."""

    def __init__(
        self,
        database: Database,
        resource_store: Optional[ResourceStore] = None,
        run_store: Optional[VerificationRunStore] = None,
        policy: Optional[PolicyConfig] = None,
    ) -> None:
        self.database = database
        self.resource_store = resource_store or ResourceStore(database)
        self.run_store = run_store or VerificationRunStore(database)
        self.policy = policy or settings.policy
        self._logger = structlog.get_logger().bind(component="ReviewGateway")

    def priority_for(self, resource: Resource) -> tuple[int, str]:
        """
        Review priority and reason for a resource; first matching rule wins.

        Mirrors review_priority_expression, which orders the SQL query.
        """
        if not resource.email:
            return self.policy.missing_email_priority, "Missing email address"
        if not resource.verification_source:
            return self.policy.missing_source_priority, "No verification source documented"
        if not resource.has_contact:
            return self.policy.no_contact_priority, "No contact information"
        return self.policy.routine_priority, "Routine re-verification"

    def _human_confirmed(self, resource: Resource, now: datetime) -> bool:
        """True when a cited, non-stale human verification stands."""
        if not resource.verification_source or resource.human_review_required:
            return False
        if resource.last_verified_at is None:
            return False
        return resource.last_verified_at >= now - timedelta(days=self.policy.stale_after_days)

    def checks_needed(
        self,
        resource: Resource,
        last_run: Optional[VerificationRun],
        now: Optional[datetime] = None,
    ) -> list[str]:
        """
        Review fields that still lack a passing automated or human confirmation.

        Missing values always need attention. Services and hours have no
        automated check, so only a standing human verification covers them.
        """
        now = now or datetime.now(timezone.utc)
        human_ok = self._human_confirmed(resource, now)
        checks = last_run.checks_performed if last_run is not None else {}

        present = {
            "website": bool(resource.website),
            "phone": bool(resource.phone),
            "address": bool(resource.address),
            "services": bool(resource.services_offered),
            "hours": bool(resource.hours),
        }

        needed = []
        for field_name in REVIEW_FIELDS:
            if not present[field_name]:
                needed.append(field_name)
                continue
            if human_ok:
                continue
            check_name = _FIELD_CHECKS.get(field_name)
            result = checks.get(check_name) if check_name else None
            if result is None or not result.passed:
                needed.append(field_name)
        return needed

    async def next_candidate(self, now: Optional[datetime] = None) -> Optional[ReviewCandidate]:
        """
        The single most urgent resource for human review, or None.

        Args:
            now: Reference time for staleness (defaults to current UTC time)
        """
        now = now or datetime.now(timezone.utc)
        resource = await self.resource_store.next_review_candidate(self.policy, now=now)
        if resource is None:
            self._logger.info("review_queue_empty")
            return None

        last_run = await self.run_store.latest_for_resource(resource.id)
        priority, reason = self.priority_for(resource)

        self._logger.info(
            "review_candidate_served",
            resource_id=resource.id,
            priority=priority,
        )
        return ReviewCandidate(
            resource=resource,
            priority=priority,
            priority_reason=reason,
            last_decision_reason=last_run.decision_reason if last_run else None,
            last_checks_performed=dict(last_run.checks_performed) if last_run else {},
            last_run_at=last_run.completed_at if last_run else None,
            checks_needed=self.checks_needed(resource, last_run, now),
        )

    async def submit_correction(
        self,
        submission: CorrectionSubmission,
        now: Optional[datetime] = None,
    ) -> CorrectionOutcome:
        """
        Apply a reviewer's corrections to one resource.

        Args:
            submission: Corrections plus the mandatory verification source
            now: Timestamp of the human verification

        Returns:
            CorrectionOutcome with the updated resource

        Raises:
            MissingVerificationSourceError: No (or blank) verification_source
            CorrectionRejectedError: Unknown or invalid corrected fields
            ResourceNotFoundError: No such resource
            ConcurrentUpdateError: Resource changed since the reviewer read it
        """
        source = (submission.verification_source or "").strip()
        if not source:
            self._logger.warning(
                "correction_rejected",
                resource_id=submission.resource_id,
                reason="missing_verification_source",
            )
            raise MissingVerificationSourceError(submission.resource_id)

        unknown = set(submission.corrections) - CORRECTABLE_FIELDS
        if unknown:
            raise CorrectionRejectedError(f"Fields cannot be corrected: {sorted(unknown)}")

        now = now or datetime.now(timezone.utc)
        resource = await self.resource_store.require(submission.resource_id)

        try:
            corrected = Resource.model_validate(
                {**resource.model_dump(), **submission.corrections}
            )
        except ValidationError as e:
            raise CorrectionRejectedError(f"Invalid correction: {e}") from e

        values = {name: getattr(corrected, name) for name in submission.corrections}
        values.update(
            verification_source=source,
            verified_by=submission.reviewer,
            correction_notes=submission.correction_notes,
            last_verified_at=now,
            verification_status=VerificationStatus.VERIFIED,
            human_review_required=False,
            next_verification_at=now + timedelta(days=self.policy.verified_interval_days),
        )

        updated = await self.resource_store.update_fields(
            resource.id,
            submission.expected_version or resource.version,
            values,
            now=now,
        )
        applied = sorted(submission.corrections)
        self._logger.info(
            "correction_applied",
            resource_id=resource.id,
            fields=applied,
            reviewer=submission.reviewer,
            version=updated.version,
        )
        return CorrectionOutcome(resource=updated, applied_fields=applied)

    async def queue_status(self, now: Optional[datetime] = None) -> QueueStatus:
        """Review queue metrics across active resources."""
        return await self.resource_store.queue_status(self.policy, now=now)
