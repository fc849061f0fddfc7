"""Batch and triggered verification runners.

The batch runner walks the due set one resource at a time, with at most
one browser open. Parallel browser sessions against listed organisations'
websites trip the bot protection the URL check has to get past.

Failure isolation per resource:
- a check failure is a normal result (flag for human)
- a malformed stored row fails validation on its own, is logged with the
  resource id, counted in ``errors``, and skipped
- an unexpected exception is logged with the resource id, counted in
  ``errors``, and the loop moves on
- a persistence failure (including a lost version race) rolls back both
  the run insert and the resource update, is counted in
  ``persistence_failures``, and leaves the resource due for the next batch

Dry runs go through the same evaluate path and skip only ``_persist``, so
the decisions reported are the ones a live run would have written.

Usage:
    from directory_verifier.pipeline import VerificationPipeline

    pipeline = VerificationPipeline(database)
    summary = await pipeline.run_batch(limit=50, dry_run=True)
"""

import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

import structlog
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from directory_verifier.config.settings import settings
from directory_verifier.data_management.database import Database
from directory_verifier.data_management.resource_store import ResourceStore
from directory_verifier.data_management.schemas import (
    SNAPSHOT_FIELDS,
    DecisionKind,
    Resource,
    VerificationRun,
    VerificationType,
)
from directory_verifier.data_management.verification_run_store import VerificationRunStore
from directory_verifier.errors import (
    PersistenceError,
    ResourceNotFoundError,
    StoreUnavailableError,
)
from directory_verifier.pipeline.scheduler import DueSetSelector
from directory_verifier.utils.logging import (
    bind_batch_context,
    clear_batch_context,
    get_correlation_id,
)
from directory_verifier.verification.decision_policy import DecisionPolicy
from directory_verifier.verification.verification_agent import (
    VerificationAgent,
    VerificationOutcome,
)


@dataclass
class ResourceOutcome:
    """What happened to one resource in a batch."""

    resource_id: str
    name: str
    decision: Optional[DecisionKind] = None
    reason: Optional[str] = None
    score: Optional[float] = None
    ip_block_detected: bool = False
    persisted: bool = False
    error: Optional[str] = None


@dataclass
class IpBlockEntry:
    """A resource whose website answered 403 under full browser rendering."""

    resource_id: str
    name: str
    url: Optional[str]
    status_code: Optional[int]


@dataclass
class BatchSummary:
    """Counters and per-resource outcomes for one batch run.

    Decision counters (verified, flagged, skipped) count decisions made,
    whether or not they were persisted; ``persistence_failures`` says how
    many of them did not reach the store.
    """

    batch_id: str
    dry_run: bool
    selected: int = 0
    verified: int = 0
    flagged: int = 0
    skipped: int = 0
    errors: int = 0
    persistence_failures: int = 0
    ip_blocks: list[IpBlockEntry] = field(default_factory=list)
    outcomes: list[ResourceOutcome] = field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def processed(self) -> int:
        return self.verified + self.flagged + self.skipped

    def to_dict(self) -> dict[str, Any]:
        return {
            "batch_id": self.batch_id,
            "dry_run": self.dry_run,
            "selected": self.selected,
            "verified": self.verified,
            "flagged": self.flagged,
            "skipped": self.skipped,
            "errors": self.errors,
            "persistence_failures": self.persistence_failures,
            "ip_blocks": len(self.ip_blocks),
            "duration_seconds": round(self.duration_seconds, 2),
        }


@dataclass(frozen=True)
class TriggeredResult:
    """Result of an on-demand verification of one resource."""

    run: VerificationRun
    resource: Resource
    persisted: bool


class VerificationPipeline:
    """Runs the verification agent over due resources and persists results."""

    def __init__(
        self,
        database: Database,
        agent: Optional[VerificationAgent] = None,
        resource_store: Optional[ResourceStore] = None,
        run_store: Optional[VerificationRunStore] = None,
        selector: Optional[DueSetSelector] = None,
    ) -> None:
        """Initialize VerificationPipeline.

        Args:
            database: Connected Database shared by the stores.
            agent: Verification agent. Defaults to the standard check set.
            resource_store: Resource persistence.
            run_store: Audit log.
            selector: Due-set selector.
        """
        self.database = database
        self.agent = agent or VerificationAgent()
        self.resource_store = resource_store or ResourceStore(database)
        self.run_store = run_store or VerificationRunStore(database)
        self.selector = selector or DueSetSelector(self.resource_store)
        self._logger = structlog.get_logger().bind(component="VerificationPipeline")

    async def run_batch(
        self,
        limit: Optional[int] = None,
        dry_run: bool = False,
        now: Optional[datetime] = None,
    ) -> BatchSummary:
        """Verify the due set sequentially.

        Args:
            limit: Maximum resources to process (defaults to settings.batch_limit).
            dry_run: Evaluate everything but write nothing.
            now: Reference time for due-set selection.

        Returns:
            BatchSummary with counters and per-resource outcomes.

        Raises:
            StoreUnavailableError: The due set could not be read at all.
        """
        limit = limit or settings.batch_limit
        summary = BatchSummary(batch_id=get_correlation_id(), dry_run=dry_run)
        start = time.monotonic()

        bind_batch_context(summary.batch_id, dry_run=dry_run)
        try:
            try:
                due = await self.selector.select_due(limit=limit, now=now)
            except SQLAlchemyError as e:
                raise StoreUnavailableError(f"Cannot read due set: {e}") from e

            summary.selected = len(due)
            self._logger.info("batch_started", limit=limit, selected=len(due))

            for record in due:
                summary.outcomes.append(await self._process(record, summary, dry_run))

            summary.duration_seconds = time.monotonic() - start
            self._logger.info("batch_complete", **summary.to_dict())
            return summary
        finally:
            clear_batch_context()

    async def _process(
        self, record: dict[str, Any], summary: BatchSummary, dry_run: bool
    ) -> ResourceOutcome:
        """Validate and verify one stored row inside a batch; never raises."""
        outcome = ResourceOutcome(resource_id=record["id"], name=record.get("name") or "")

        try:
            resource = Resource.model_validate(record)
        except ValidationError as e:
            summary.errors += 1
            outcome.error = f"Malformed stored resource: {e.error_count()} invalid field(s)"
            self._logger.error(
                "resource_malformed",
                resource_id=outcome.resource_id,
                fields=sorted(".".join(str(p) for p in err["loc"]) for err in e.errors()),
            )
            return outcome

        try:
            evaluated = await self.agent.evaluate(resource, VerificationType.PERIODIC)
        except Exception as e:
            summary.errors += 1
            outcome.error = f"{type(e).__name__}: {e}"
            self._logger.exception("resource_failed", resource_id=resource.id)
            return outcome

        decision = evaluated.decision.decision
        outcome.decision = decision
        outcome.reason = evaluated.decision.reason
        outcome.score = evaluated.run.overall_score
        outcome.ip_block_detected = evaluated.anomaly.ip_block_detected

        if decision == DecisionKind.AUTO_APPROVE:
            summary.verified += 1
        elif decision == DecisionKind.FLAG_FOR_HUMAN:
            summary.flagged += 1
        elif decision == DecisionKind.SKIPPED:
            summary.skipped += 1

        conflict = evaluated.anomaly.ip_block
        if conflict is not None:
            summary.ip_blocks.append(
                IpBlockEntry(
                    resource_id=resource.id,
                    name=resource.name,
                    url=conflict.url,
                    status_code=conflict.status_code,
                )
            )

        if dry_run:
            return outcome

        try:
            await self._persist(resource, evaluated)
        except (PersistenceError, ResourceNotFoundError, SQLAlchemyError) as e:
            summary.persistence_failures += 1
            outcome.error = f"{type(e).__name__}: {e}"
            self._logger.error(
                "persistence_failed",
                resource_id=resource.id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return outcome

        outcome.persisted = True
        self._logger.info(
            "resource_verified",
            resource_id=resource.id,
            decision=decision.value,
            score=outcome.score,
        )
        return outcome

    async def _persist(self, resource: Resource, evaluated: VerificationOutcome) -> Resource:
        """Append the run and update the resource in one transaction.

        The update is a compare-and-swap against the version read when the
        resource was selected; on any failure neither write survives.
        """
        values = DecisionPolicy.resource_updates(evaluated.decision)
        async with self.database.session_scope() as session:
            await self.run_store.append(evaluated.run, session=session)
            return await self.resource_store.update_fields(
                resource.id,
                resource.version,
                values,
                now=evaluated.run.completed_at,
                session=session,
            )

    async def verify_one(
        self,
        resource_id: str,
        snapshot: Optional[dict[str, Any]] = None,
        dry_run: bool = False,
    ) -> TriggeredResult:
        """Run a triggered verification for one resource.

        Args:
            resource_id: Resource to verify.
            snapshot: Current field values (website, phone, address, ...)
                to check instead of the stored ones. Only the verification
                outcome is written back; the snapshot values are not.
            dry_run: Evaluate without writing.

        Returns:
            TriggeredResult with the run and the resource after the update.

        Raises:
            ResourceNotFoundError: Unknown resource.
            ValueError: Snapshot contains fields that are not checkable.
            ConcurrentUpdateError: The resource changed while the run was in flight.
        """
        resource = await self.resource_store.require(resource_id)

        checked = resource
        if snapshot:
            unknown = set(snapshot) - SNAPSHOT_FIELDS
            if unknown:
                raise ValueError(f"Snapshot fields not allowed: {sorted(unknown)}")
            checked = Resource.model_validate({**resource.model_dump(), **snapshot})

        self._logger.info(
            "triggered_verification",
            resource_id=resource_id,
            snapshot_fields=sorted(snapshot or {}),
            dry_run=dry_run,
        )
        evaluated = await self.agent.evaluate(checked, VerificationType.TRIGGERED)

        if dry_run:
            return TriggeredResult(run=evaluated.run, resource=resource, persisted=False)

        updated = await self._persist(resource, evaluated)
        return TriggeredResult(run=evaluated.run, resource=updated, persisted=True)
