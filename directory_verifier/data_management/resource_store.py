"""Resource storage with due-set selection and compare-and-swap updates.

Access patterns:
- Due set for the batch scheduler (next_verification_at NULL or past,
  nulls first, active only)
- Single highest-priority review candidate for the review gateway
- Bulk reset of next_verification_at to force a full re-verification
- Versioned updates: every write states the version it read, and a write
  against a newer row raises ConcurrentUpdateError instead of silently
  overwriting a concurrent triggered verification or human correction

Usage:
    from directory_verifier.data_management.resource_store import ResourceStore

    store = ResourceStore(database)
    due = await store.select_due(limit=50, now=datetime.now(timezone.utc))
    updated = await store.update_fields(resource.id, resource.version, {...})
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import structlog
from sqlalchemy import ColumnElement, and_, case, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from directory_verifier.config.settings import PolicyConfig, settings
from directory_verifier.data_management.database import Database, ResourceRow
from directory_verifier.data_management.schemas import (
    QueueStatus,
    Resource,
    ResourceStatus,
)
from directory_verifier.errors import ConcurrentUpdateError, ResourceNotFoundError

# Columns that may be written through update_fields
_WRITABLE_COLUMNS: frozenset[str] = frozenset(
    c.key for c in ResourceRow.__table__.columns if c.key not in {"id", "version", "created_at", "updated_at"}
)


def _row_record(row: ResourceRow) -> dict[str, Any]:
    return {c.key: getattr(row, c.key) for c in ResourceRow.__table__.columns}


def review_priority_expression(policy: PolicyConfig) -> ColumnElement[int]:
    """SQL CASE expression mirroring ReviewGateway.priority_for (first match wins)."""
    return case(
        (ResourceRow.email.is_(None), policy.missing_email_priority),
        (ResourceRow.verification_source.is_(None), policy.missing_source_priority),
        (
            and_(ResourceRow.phone.is_(None), ResourceRow.email.is_(None)),
            policy.no_contact_priority,
        ),
        else_=policy.routine_priority,
    )


class ResourceStore:
    """
    Storage adapter for directory resources.

    All methods accept an optional outer session so callers can combine a
    resource update with an audit insert in one transaction.
    """

    def __init__(self, database: Database) -> None:
        """
        Initialize ResourceStore.

        Args:
            database: Connected Database handle
        """
        self.database = database
        self._logger = structlog.get_logger().bind(component="ResourceStore")

    async def add(self, resource: Resource, session: Optional[AsyncSession] = None) -> Resource:
        """
        Insert a new resource.

        Args:
            resource: Resource to insert (its id and version are kept)

        Returns:
            The stored resource
        """
        async with self.database.session_scope(session) as s:
            row = ResourceRow(**resource.model_dump())
            s.add(row)
            await s.flush()
            self._logger.debug("resource_added", resource_id=resource.id)
            return Resource.model_validate(row)

    async def get(
        self, resource_id: str, session: Optional[AsyncSession] = None
    ) -> Optional[Resource]:
        """Get a resource by id, or None if it does not exist."""
        async with self.database.session_scope(session) as s:
            row = await s.get(ResourceRow, resource_id, populate_existing=True)
            return Resource.model_validate(row) if row is not None else None

    async def require(
        self, resource_id: str, session: Optional[AsyncSession] = None
    ) -> Resource:
        """Get a resource by id or raise ResourceNotFoundError."""
        resource = await self.get(resource_id, session=session)
        if resource is None:
            raise ResourceNotFoundError(resource_id)
        return resource

    async def select_due(
        self,
        limit: int,
        now: Optional[datetime] = None,
        session: Optional[AsyncSession] = None,
    ) -> list[Resource]:
        """Validated due set; raises ValidationError on the first malformed row."""
        records = await self.select_due_records(limit, now=now, session=session)
        return [Resource.model_validate(r) for r in records]

    async def select_due_records(
        self,
        limit: int,
        now: Optional[datetime] = None,
        session: Optional[AsyncSession] = None,
    ) -> list[dict[str, Any]]:
        """
        Select active resources due for verification, as raw column records.

        Records are not validated here so one malformed row cannot hide the
        rest of the due set; the batch validates each one on its own.

        Due means next_verification_at is NULL (never checked) or not after
        ``now``. Never-checked resources come first, then the most overdue.

        Args:
            limit: Maximum number of resources to return
            now: Reference time (defaults to current UTC time)

        Returns:
            Column-name -> value mappings in priority order
        """
        if limit < 1:
            return []
        now = now or datetime.now(timezone.utc)

        stmt = (
            select(ResourceRow)
            .where(ResourceRow.status == ResourceStatus.ACTIVE)
            .where(
                or_(
                    ResourceRow.next_verification_at.is_(None),
                    ResourceRow.next_verification_at <= now,
                )
            )
            .order_by(
                ResourceRow.next_verification_at.asc().nulls_first(),
                ResourceRow.created_at.asc(),
                ResourceRow.id.asc(),
            )
            .limit(limit)
        )
        async with self.database.session_scope(session) as s:
            rows = (await s.scalars(stmt)).all()
            return [_row_record(r) for r in rows]

    async def next_review_candidate(
        self,
        policy: PolicyConfig,
        now: Optional[datetime] = None,
        session: Optional[AsyncSession] = None,
    ) -> Optional[Resource]:
        """
        Select the single highest-priority resource awaiting human review.

        The pool is active resources that need review, lack a documented
        verification source, or whose last verification is missing or
        stale. Ties break on oldest created_at, then id.

        Args:
            policy: Priority weights and staleness window
            now: Reference time (defaults to current UTC time)

        Returns:
            One resource, or None when the pool is empty
        """
        now = now or datetime.now(timezone.utc)
        stale_cutoff = now - timedelta(days=policy.stale_after_days)
        priority = review_priority_expression(policy)

        stmt = (
            select(ResourceRow)
            .where(ResourceRow.status == ResourceStatus.ACTIVE)
            .where(
                or_(
                    ResourceRow.human_review_required.is_(True),
                    ResourceRow.verification_source.is_(None),
                    ResourceRow.last_verified_at.is_(None),
                    ResourceRow.last_verified_at < stale_cutoff,
                )
            )
            .order_by(priority.desc(), ResourceRow.created_at.asc(), ResourceRow.id.asc())
            .limit(1)
        )
        async with self.database.session_scope(session) as s:
            row = (await s.scalars(stmt)).first()
            return Resource.model_validate(row) if row is not None else None

    async def update_fields(
        self,
        resource_id: str,
        expected_version: int,
        values: dict[str, Any],
        now: Optional[datetime] = None,
        session: Optional[AsyncSession] = None,
    ) -> Resource:
        """
        Compare-and-swap update of a resource row.

        Args:
            resource_id: Resource to update
            expected_version: Version the caller read
            values: Column values to write
            now: Timestamp for updated_at

        Returns:
            The resource after the update

        Raises:
            ResourceNotFoundError: No such resource
            ConcurrentUpdateError: Row version no longer matches
            ValueError: Unknown or read-only column in values
        """
        unknown = set(values) - _WRITABLE_COLUMNS
        if unknown:
            raise ValueError(f"Cannot write columns: {sorted(unknown)}")

        now = now or datetime.now(timezone.utc)
        stmt = (
            update(ResourceRow)
            .where(ResourceRow.id == resource_id)
            .where(ResourceRow.version == expected_version)
            .values(**values, updated_at=now, version=ResourceRow.version + 1)
            .execution_options(synchronize_session=False)
        )

        async with self.database.session_scope(session) as s:
            result = await s.execute(stmt)
            if result.rowcount == 0:
                current = await s.scalar(
                    select(ResourceRow.version).where(ResourceRow.id == resource_id)
                )
                if current is None:
                    raise ResourceNotFoundError(resource_id)
                raise ConcurrentUpdateError(resource_id, expected_version, current)

            row = await s.get(ResourceRow, resource_id, populate_existing=True)
            self._logger.debug(
                "resource_updated",
                resource_id=resource_id,
                version=row.version,
                fields=sorted(values),
            )
            return Resource.model_validate(row)

    async def mark_due(
        self,
        now: Optional[datetime] = None,
        website_only: bool = True,
        session: Optional[AsyncSession] = None,
    ) -> int:
        """
        Make active resources due again by moving next_verification_at
        one hour into the past.

        Used after a check changes to re-verify the whole directory on the
        next batches. Bumps version like any other write, so a batch that
        read a row before the reset loses its compare-and-swap.

        Args:
            now: Reference time (defaults to current UTC time)
            website_only: Only resources with a website

        Returns:
            Number of resources marked due
        """
        now = now or datetime.now(timezone.utc)
        stmt = (
            update(ResourceRow)
            .where(ResourceRow.status == ResourceStatus.ACTIVE)
            .values(
                next_verification_at=now - timedelta(hours=1),
                updated_at=now,
                version=ResourceRow.version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        if website_only:
            stmt = stmt.where(ResourceRow.website.is_not(None))

        async with self.database.session_scope(session) as s:
            result = await s.execute(stmt)

        self._logger.info(
            "resources_marked_due", count=result.rowcount, website_only=website_only
        )
        return result.rowcount

    async def queue_status(
        self,
        policy: Optional[PolicyConfig] = None,
        now: Optional[datetime] = None,
        session: Optional[AsyncSession] = None,
    ) -> QueueStatus:
        """Count active resources by review-relevant gaps."""
        policy = policy or settings.policy
        now = now or datetime.now(timezone.utc)
        stale_cutoff = now - timedelta(days=policy.stale_after_days)

        def _count(condition: Any) -> Any:
            return func.sum(case((condition, 1), else_=0))

        stmt = select(
            func.count(ResourceRow.id),
            _count(ResourceRow.email.is_not(None)),
            _count(ResourceRow.verification_source.is_not(None)),
            _count(ResourceRow.email.is_(None)),
            _count(ResourceRow.verification_source.is_(None)),
            _count(and_(ResourceRow.phone.is_(None), ResourceRow.email.is_(None))),
            _count(
                or_(
                    ResourceRow.human_review_required.is_(True),
                    ResourceRow.verification_source.is_(None),
                    ResourceRow.last_verified_at.is_(None),
                    ResourceRow.last_verified_at < stale_cutoff,
                )
            ),
        ).where(ResourceRow.status == ResourceStatus.ACTIVE)

        async with self.database.session_scope(session) as s:
            row = (await s.execute(stmt)).one()

        total, with_email, with_source, missing_email, missing_source, no_contact, awaiting = (
            int(v or 0) for v in row
        )
        return QueueStatus(
            total_active=total,
            with_email=with_email,
            with_source=with_source,
            missing_email=missing_email,
            missing_source=missing_source,
            no_contact=no_contact,
            awaiting_review=awaiting,
        )
