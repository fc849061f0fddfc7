"""Tests for ResourceStore: due-set selection, review ordering and versioned updates."""

from datetime import timedelta

import pytest

from directory_verifier.config.settings import PolicyConfig
from directory_verifier.data_management.database import Database
from directory_verifier.data_management.resource_store import ResourceStore
from directory_verifier.data_management.schemas import (
    ResourceStatus,
    VerificationStatus,
)
from directory_verifier.errors import (
    ConcurrentUpdateError,
    ResourceNotFoundError,
    StoreUnavailableError,
)


# ── Database ─────────────────────────────────────────────────────────────


class TestDatabase:
    @pytest.mark.asyncio
    async def test_unreachable_store(self, tmp_path) -> None:
        db = Database(f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'dir' / 'x.db'}")
        with pytest.raises(StoreUnavailableError):
            await db.connect()
        assert db.is_connected is False

    @pytest.mark.asyncio
    async def test_session_before_connect(self, tmp_path) -> None:
        db = Database(f"sqlite+aiosqlite:///{tmp_path / 'x.db'}")
        with pytest.raises(RuntimeError):
            async with db.session_scope():
                pass


# ── CRUD ─────────────────────────────────────────────────────────────────


class TestAddAndGet:
    @pytest.mark.asyncio
    async def test_round_trip_keeps_timezone(
        self, resource_store: ResourceStore, resource_factory, now
    ) -> None:
        resource = resource_factory(next_verification_at=now)
        await resource_store.add(resource)

        stored = await resource_store.get(resource.id)
        assert stored is not None
        assert stored.name == resource.name
        assert stored.hours == {"monday": "9am-5pm"}
        assert stored.next_verification_at == now
        assert stored.next_verification_at.tzinfo is not None
        assert stored.version == 1

    @pytest.mark.asyncio
    async def test_missing(self, resource_store: ResourceStore) -> None:
        assert await resource_store.get("nope") is None
        with pytest.raises(ResourceNotFoundError):
            await resource_store.require("nope")


# ── Due set ──────────────────────────────────────────────────────────────


class TestSelectDue:
    @pytest.mark.asyncio
    async def test_nulls_first_then_most_overdue(
        self, resource_store: ResourceStore, resource_factory, now
    ) -> None:
        overdue_old = resource_factory(name="old", next_verification_at=now - timedelta(days=10))
        overdue_new = resource_factory(name="new", next_verification_at=now - timedelta(days=1))
        never = resource_factory(name="never", next_verification_at=None)
        exactly_now = resource_factory(name="now", next_verification_at=now)
        for r in (overdue_new, overdue_old, exactly_now, never):
            await resource_store.add(r)

        due = await resource_store.select_due(limit=10, now=now)
        assert [r.name for r in due] == ["never", "old", "new", "now"]

    @pytest.mark.asyncio
    async def test_future_never_selected(
        self, resource_store: ResourceStore, resource_factory, now
    ) -> None:
        await resource_store.add(
            resource_factory(name="later", next_verification_at=now + timedelta(seconds=1))
        )
        assert await resource_store.select_due(limit=10, now=now) == []

    @pytest.mark.asyncio
    async def test_inactive_ignored(
        self, resource_store: ResourceStore, resource_factory, now
    ) -> None:
        await resource_store.add(resource_factory(status=ResourceStatus.INACTIVE))
        assert await resource_store.select_due(limit=10, now=now) == []

    @pytest.mark.asyncio
    async def test_limit(self, resource_store: ResourceStore, resource_factory, now) -> None:
        for i in range(5):
            await resource_store.add(resource_factory(name=f"r{i}"))
        assert len(await resource_store.select_due(limit=3, now=now)) == 3
        assert await resource_store.select_due(limit=0, now=now) == []


# ── Versioned updates ────────────────────────────────────────────────────


class TestUpdateFields:
    @pytest.mark.asyncio
    async def test_update_bumps_version(
        self, resource_store: ResourceStore, resource_factory, now
    ) -> None:
        resource = resource_factory()
        await resource_store.add(resource)

        updated = await resource_store.update_fields(
            resource.id,
            expected_version=1,
            values={"verification_status": VerificationStatus.VERIFIED},
            now=now,
        )
        assert updated.version == 2
        assert updated.verification_status == VerificationStatus.VERIFIED
        assert updated.updated_at == now

    @pytest.mark.asyncio
    async def test_stale_version_conflicts(
        self, resource_store: ResourceStore, resource_factory
    ) -> None:
        resource = resource_factory()
        await resource_store.add(resource)
        await resource_store.update_fields(resource.id, 1, {"phone": "5105550199"})

        with pytest.raises(ConcurrentUpdateError) as exc_info:
            await resource_store.update_fields(resource.id, 1, {"phone": "5105550111"})
        assert exc_info.value.actual_version == 2

        stored = await resource_store.require(resource.id)
        assert stored.phone == "5105550199"

    @pytest.mark.asyncio
    async def test_unknown_resource(self, resource_store: ResourceStore) -> None:
        with pytest.raises(ResourceNotFoundError):
            await resource_store.update_fields("nope", 1, {"phone": "5105550100"})

    @pytest.mark.asyncio
    async def test_read_only_columns_rejected(
        self, resource_store: ResourceStore, resource_factory
    ) -> None:
        resource = resource_factory()
        await resource_store.add(resource)
        with pytest.raises(ValueError):
            await resource_store.update_fields(resource.id, 1, {"version": 9})
        with pytest.raises(ValueError):
            await resource_store.update_fields(resource.id, 1, {"favourite_colour": "red"})


# ── Review ordering & queue status ───────────────────────────────────────


class TestReviewQueries:
    @pytest.mark.asyncio
    async def test_missing_email_outranks_missing_source(
        self, resource_store: ResourceStore, resource_factory, now
    ) -> None:
        no_source = resource_factory(
            name="no-source", verification_source=None, created_at=now - timedelta(days=90)
        )
        no_email = resource_factory(name="no-email", email=None, created_at=now)
        await resource_store.add(no_source)
        await resource_store.add(no_email)

        candidate = await resource_store.next_review_candidate(PolicyConfig(), now=now)
        assert candidate.name == "no-email"

    @pytest.mark.asyncio
    async def test_ties_break_on_oldest(
        self, resource_store: ResourceStore, resource_factory, now
    ) -> None:
        await resource_store.add(resource_factory(name="young", email=None, created_at=now))
        await resource_store.add(
            resource_factory(name="old", email=None, created_at=now - timedelta(days=5))
        )
        candidate = await resource_store.next_review_candidate(PolicyConfig(), now=now)
        assert candidate.name == "old"

    @pytest.mark.asyncio
    async def test_fresh_human_verification_not_in_pool(
        self, resource_store: ResourceStore, resource_factory, now
    ) -> None:
        await resource_store.add(resource_factory(last_verified_at=now - timedelta(days=10)))
        assert await resource_store.next_review_candidate(PolicyConfig(), now=now) is None

    @pytest.mark.asyncio
    async def test_stale_verification_in_pool(
        self, resource_store: ResourceStore, resource_factory, now
    ) -> None:
        await resource_store.add(resource_factory(last_verified_at=now - timedelta(days=200)))
        candidate = await resource_store.next_review_candidate(PolicyConfig(), now=now)
        assert candidate is not None

    @pytest.mark.asyncio
    async def test_queue_status_counts(
        self, resource_store: ResourceStore, resource_factory, now
    ) -> None:
        await resource_store.add(resource_factory(last_verified_at=now))
        await resource_store.add(resource_factory(email=None))
        await resource_store.add(resource_factory(email=None, phone=None, verification_source=None))
        await resource_store.add(resource_factory(status=ResourceStatus.INACTIVE, email=None))

        status = await resource_store.queue_status(PolicyConfig(), now=now)
        assert status.total_active == 3
        assert status.with_email == 1
        assert status.missing_email == 2
        assert status.with_source == 2
        assert status.missing_source == 1
        assert status.no_contact == 1
        assert status.awaiting_review == 2


# ── Raw due records & forced re-verification ─────────────────────────────


class TestDueRecords:
    @pytest.mark.asyncio
    async def test_records_are_unvalidated_column_maps(
        self, resource_store: ResourceStore, resource_factory, now
    ) -> None:
        resource = resource_factory()
        await resource_store.add(resource)
        records = await resource_store.select_due_records(limit=10, now=now)
        assert [r["id"] for r in records] == [resource.id]
        assert records[0]["version"] == 1
        assert records[0]["website"] == "https://eastsidepantry.org"


class TestMarkDue:
    @pytest.mark.asyncio
    async def test_marks_active_resources_with_website(
        self, resource_store: ResourceStore, resource_factory, now
    ) -> None:
        later = now + timedelta(days=60)
        with_site = resource_factory(name="site", next_verification_at=later)
        no_site = resource_factory(name="no-site", website=None, next_verification_at=later)
        inactive = resource_factory(
            name="inactive", status=ResourceStatus.INACTIVE, next_verification_at=later
        )
        for r in (with_site, no_site, inactive):
            await resource_store.add(r)
        assert await resource_store.select_due(limit=10, now=now) == []

        count = await resource_store.mark_due(now=now)

        assert count == 1
        due = await resource_store.select_due(limit=10, now=now)
        assert [r.id for r in due] == [with_site.id]
        assert due[0].next_verification_at == now - timedelta(hours=1)
        assert due[0].version == 2
        assert (await resource_store.require(no_site.id)).version == 1

    @pytest.mark.asyncio
    async def test_include_resources_without_website(
        self, resource_store: ResourceStore, resource_factory, now
    ) -> None:
        later = now + timedelta(days=60)
        await resource_store.add(resource_factory(next_verification_at=later))
        await resource_store.add(resource_factory(website=None, next_verification_at=later))
        assert await resource_store.mark_due(now=now, website_only=False) == 2
        assert len(await resource_store.select_due(limit=10, now=now)) == 2

    @pytest.mark.asyncio
    async def test_stale_version_after_reset(
        self, resource_store: ResourceStore, resource_factory, now
    ) -> None:
        resource = resource_factory()
        await resource_store.add(resource)
        await resource_store.mark_due(now=now)
        with pytest.raises(ConcurrentUpdateError):
            await resource_store.update_fields(resource.id, 1, {"phone": "5105550111"})
