"""Append-only audit log of verification runs.

Every execution of the verification agent that is not a dry run is
recorded here, including runs that found nothing to check. The store
exposes inserts and queries only; a stored run is never updated or
deleted. Corrections to a run are expressed as a newer run.

Usage:
    from directory_verifier.data_management.verification_run_store import (
        VerificationRunStore,
    )

    store = VerificationRunStore(database)
    await store.append(run)
    history = await store.list_for_resource(resource_id)
"""

from datetime import datetime
from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from directory_verifier.data_management.database import Database, VerificationRunRow
from directory_verifier.data_management.schemas import VerificationRun


def _to_row(run: VerificationRun) -> VerificationRunRow:
    return VerificationRunRow(
        id=run.id,
        resource_id=run.resource_id,
        verification_type=run.verification_type,
        agent_version=run.agent_version,
        overall_score=run.overall_score,
        checks_performed=run.checks_as_json(),
        decision=run.decision,
        decision_reason=run.decision_reason,
        conflicts_found=[c.model_dump(mode="json") for c in run.conflicts_found],
        ip_block_detected=run.ip_block_detected,
        started_at=run.started_at,
        completed_at=run.completed_at,
        duration_ms=run.duration_ms,
    )


def _from_row(row: VerificationRunRow) -> VerificationRun:
    return VerificationRun.model_validate(
        {
            "id": row.id,
            "resource_id": row.resource_id,
            "verification_type": row.verification_type,
            "agent_version": row.agent_version,
            "overall_score": row.overall_score,
            "checks_performed": row.checks_performed or {},
            "decision": row.decision,
            "decision_reason": row.decision_reason,
            "conflicts_found": row.conflicts_found or [],
            "ip_block_detected": row.ip_block_detected,
            "started_at": row.started_at,
            "completed_at": row.completed_at,
            "duration_ms": row.duration_ms,
        }
    )


class VerificationRunStore:
    """Audit logger: insert-only persistence for VerificationRun records."""

    def __init__(self, database: Database) -> None:
        """Initialize VerificationRunStore.

        Args:
            database: Connected Database handle.
        """
        self.database = database
        self._logger = structlog.get_logger().bind(component="VerificationRunStore")

    async def append(
        self, run: VerificationRun, session: Optional[AsyncSession] = None
    ) -> None:
        """Append a run to the audit log.

        Args:
            run: Completed VerificationRun.
            session: Optional outer session to share a transaction with.
        """
        async with self.database.session_scope(session) as s:
            s.add(_to_row(run))
            await s.flush()

        self._logger.debug(
            "run_logged",
            run_id=run.id,
            resource_id=run.resource_id,
            decision=run.decision.value,
        )

    async def get(self, run_id: str) -> Optional[VerificationRun]:
        """Get a run by id."""
        async with self.database.session_scope() as s:
            row = await s.get(VerificationRunRow, run_id)
            return _from_row(row) if row is not None else None

    async def list_for_resource(
        self,
        resource_id: str,
        limit: Optional[int] = None,
    ) -> list[VerificationRun]:
        """Runs for one resource, newest first."""
        stmt = (
            select(VerificationRunRow)
            .where(VerificationRunRow.resource_id == resource_id)
            .order_by(VerificationRunRow.completed_at.desc(), VerificationRunRow.id.desc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        async with self.database.session_scope() as s:
            return [_from_row(r) for r in (await s.scalars(stmt)).all()]

    async def latest_for_resource(self, resource_id: str) -> Optional[VerificationRun]:
        """Most recent run for a resource, or None."""
        runs = await self.list_for_resource(resource_id, limit=1)
        return runs[0] if runs else None

    async def list_between(
        self,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        resource_id: Optional[str] = None,
        ip_block_only: bool = False,
    ) -> list[VerificationRun]:
        """Runs completed in [since, until), newest first.

        Args:
            since: Inclusive lower bound on completed_at.
            until: Exclusive upper bound on completed_at.
            resource_id: Restrict to one resource.
            ip_block_only: Only runs that detected an IP-block anomaly.
        """
        stmt = select(VerificationRunRow)
        if since is not None:
            stmt = stmt.where(VerificationRunRow.completed_at >= since)
        if until is not None:
            stmt = stmt.where(VerificationRunRow.completed_at < until)
        if resource_id is not None:
            stmt = stmt.where(VerificationRunRow.resource_id == resource_id)
        if ip_block_only:
            stmt = stmt.where(VerificationRunRow.ip_block_detected.is_(True))
        stmt = stmt.order_by(VerificationRunRow.completed_at.desc(), VerificationRunRow.id.desc())

        async with self.database.session_scope() as s:
            return [_from_row(r) for r in (await s.scalars(stmt)).all()]

    async def ip_block_runs(self, since: datetime) -> list[VerificationRun]:
        """Runs since ``since`` that recorded an IP-block anomaly."""
        return await self.list_between(since=since, ip_block_only=True)
