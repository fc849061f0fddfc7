"""
Verification API routes.

Triggered verification of one resource and audit-log queries.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.exc import SQLAlchemyError

from directory_verifier.api.dependencies import get_pipeline, get_run_store
from directory_verifier.api.models import (
    TriggeredVerificationRequest,
    TriggeredVerificationResponse,
)
from directory_verifier.data_management.schemas import VerificationRun
from directory_verifier.data_management.verification_run_store import VerificationRunStore
from directory_verifier.errors import (
    ConcurrentUpdateError,
    PersistenceError,
    ResourceNotFoundError,
)
from directory_verifier.pipeline.reports import IpBlockGroup, group_ip_blocks
from directory_verifier.pipeline.verification_pipeline import VerificationPipeline

router = APIRouter(prefix="/verification", tags=["verification"])


@router.post("/resources/{resource_id}/verify", response_model=TriggeredVerificationResponse)
async def verify_resource(
    resource_id: str,
    body: Optional[TriggeredVerificationRequest] = None,
    pipeline: VerificationPipeline = Depends(get_pipeline),
):
    """
    Run a triggered verification for one resource.

    The optional body carries the resource's current field snapshot, which
    is checked instead of the stored values for this run.
    """
    body = body or TriggeredVerificationRequest()
    try:
        result = await pipeline.verify_one(
            resource_id, snapshot=body.snapshot(), dry_run=body.dry_run
        )
    except ResourceNotFoundError:
        raise HTTPException(status_code=404, detail="Resource not found")
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except ConcurrentUpdateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except (PersistenceError, SQLAlchemyError) as e:
        raise HTTPException(status_code=503, detail=f"Could not persist verification: {e}")

    return TriggeredVerificationResponse(
        run=result.run,
        resource_id=result.resource.id,
        verification_status=result.resource.verification_status,
        human_review_required=result.resource.human_review_required,
        next_verification_at=result.resource.next_verification_at,
        version=result.resource.version,
        persisted=result.persisted,
    )


@router.get("/runs", response_model=list[VerificationRun])
async def list_runs(
    resource_id: Optional[str] = None,
    since: Optional[datetime] = None,
    until: Optional[datetime] = None,
    ip_block_only: bool = False,
    run_store: VerificationRunStore = Depends(get_run_store),
):
    """Query the audit log by resource and completion time range, newest first."""
    since = _as_utc(since)
    until = _as_utc(until)
    if since and until and since >= until:
        raise HTTPException(status_code=422, detail="since must be before until")
    return await run_store.list_between(
        since=since,
        until=until,
        resource_id=resource_id,
        ip_block_only=ip_block_only,
    )


@router.get("/ip-blocks", response_model=list[IpBlockGroup])
async def ip_block_report(
    days: int = Query(default=30, ge=1, le=365),
    run_store: VerificationRunStore = Depends(get_run_store),
):
    """IP-block incidents over the last ``days`` days, grouped by URL."""
    since = datetime.now(timezone.utc) - timedelta(days=days)
    runs = await run_store.ip_block_runs(since)
    return group_ip_blocks(runs)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Query datetimes without an offset are taken as UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)
