"""Tests for the append-only verification run store."""

from datetime import timedelta

import pytest
import pytest_asyncio

from directory_verifier.data_management.schemas import (
    CheckResult,
    Conflict,
    ConflictKind,
    DecisionKind,
    ProbeResult,
    VerificationRun,
    VerificationType,
)
from directory_verifier.data_management.verification_run_store import VerificationRunStore


def _run(resource_id: str, completed_at, ip_block: bool = False) -> VerificationRun:
    status = 403 if ip_block else 200
    check = CheckResult(
        passed=not ip_block,
        status_code=status,
        error="HTTP 403" if ip_block else None,
        direct_check=ProbeResult(passed=not ip_block, status_code=status),
    )
    conflicts = (
        [
            Conflict(
                kind=ConflictKind.IP_BLOCK,
                check_name="url_reachable",
                url="https://blocked.example.org",
                status_code=403,
                error="blocked",
                detected_at=completed_at,
            )
        ]
        if ip_block
        else []
    )
    return VerificationRun(
        resource_id=resource_id,
        verification_type=VerificationType.PERIODIC,
        agent_version="test",
        overall_score=0.0 if ip_block else 1.0,
        checks_performed={"url_reachable": check},
        decision=DecisionKind.FLAG_FOR_HUMAN if ip_block else DecisionKind.AUTO_APPROVE,
        decision_reason="x",
        conflicts_found=conflicts,
        ip_block_detected=ip_block,
        started_at=completed_at - timedelta(seconds=2),
        completed_at=completed_at,
        duration_ms=2000,
    )


# ── Fixtures ──────────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def seeded(resource_store, run_store: VerificationRunStore, resource_factory, now):
    first = resource_factory(name="first")
    second = resource_factory(name="second")
    await resource_store.add(first)
    await resource_store.add(second)
    runs = [
        _run(first.id, now - timedelta(days=20)),
        _run(first.id, now - timedelta(days=5), ip_block=True),
        _run(second.id, now - timedelta(days=1), ip_block=True),
    ]
    for run in runs:
        await run_store.append(run)
    return first, second, runs


# ── Tests ────────────────────────────────────────────────────────────────


class TestVerificationRunStore:
    def test_no_mutation_api(self) -> None:
        for name in ("update", "delete", "remove", "save", "upsert"):
            assert not hasattr(VerificationRunStore, name)

    @pytest.mark.asyncio
    async def test_round_trip(self, run_store, resource_store, resource_factory, now) -> None:
        resource = resource_factory()
        await resource_store.add(resource)
        run = _run(resource.id, now, ip_block=True)
        await run_store.append(run)

        stored = await run_store.get(run.id)
        assert stored.id == run.id
        assert stored.decision == DecisionKind.FLAG_FOR_HUMAN
        assert stored.completed_at == now
        assert stored.ip_block_detected is True
        assert stored.checks_performed["url_reachable"].passed is False
        assert stored.checks_performed["url_reachable"].direct_check.status_code == 403
        assert stored.conflicts_found[0].kind == ConflictKind.IP_BLOCK


class TestQueries:
    @pytest.mark.asyncio
    async def test_list_for_resource_newest_first(self, run_store, seeded) -> None:
        first, _, runs = seeded
        history = await run_store.list_for_resource(first.id)
        assert [r.id for r in history] == [runs[1].id, runs[0].id]
        latest = await run_store.latest_for_resource(first.id)
        assert latest.id == runs[1].id

    @pytest.mark.asyncio
    async def test_time_range(self, run_store, seeded, now) -> None:
        _, _, runs = seeded
        window = await run_store.list_between(
            since=now - timedelta(days=10), until=now - timedelta(days=2)
        )
        assert [r.id for r in window] == [runs[1].id]

    @pytest.mark.asyncio
    async def test_ip_block_runs(self, run_store, seeded, now) -> None:
        _, _, runs = seeded
        blocked = await run_store.ip_block_runs(now - timedelta(days=30))
        assert {r.id for r in blocked} == {runs[1].id, runs[2].id}
        assert await run_store.ip_block_runs(now) == []
