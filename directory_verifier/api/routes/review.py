"""
Review queue API routes.

One candidate at a time; corrections must cite a verification source.
"""
from fastapi import APIRouter, Depends, HTTPException, Response

from directory_verifier.api.dependencies import get_gateway
from directory_verifier.api.models import CorrectionRequest, CorrectionResponse
from directory_verifier.data_management.schemas import (
    CorrectionSubmission,
    QueueStatus,
    ReviewCandidate,
)
from directory_verifier.errors import (
    ConcurrentUpdateError,
    CorrectionRejectedError,
    ResourceNotFoundError,
)
from directory_verifier.review.review_gateway import ReviewGateway

router = APIRouter(prefix="/verification", tags=["review"])


@router.get(
    "/review-queue/next",
    response_model=ReviewCandidate,
    responses={204: {"description": "Review queue is empty"}},
)
async def next_review_candidate(gateway: ReviewGateway = Depends(get_gateway)):
    """The single most urgent resource for human review."""
    candidate = await gateway.next_candidate()
    if candidate is None:
        return Response(status_code=204)
    return candidate


@router.get("/review-queue/status", response_model=QueueStatus)
async def review_queue_status(gateway: ReviewGateway = Depends(get_gateway)):
    """Queue metrics across active resources."""
    return await gateway.queue_status()


@router.post("/resources/{resource_id}/corrections", response_model=CorrectionResponse)
async def submit_correction(
    resource_id: str,
    body: CorrectionRequest,
    gateway: ReviewGateway = Depends(get_gateway),
):
    """
    Apply a reviewer's corrections.

    Rejected with 422 (nothing written) unless ``verification_source``
    cites the URL or search query used to verify the listing.
    """
    submission = CorrectionSubmission(resource_id=resource_id, **body.model_dump())
    try:
        outcome = await gateway.submit_correction(submission)
    except CorrectionRejectedError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except ResourceNotFoundError:
        raise HTTPException(status_code=404, detail="Resource not found")
    except ConcurrentUpdateError as e:
        raise HTTPException(status_code=409, detail=str(e))

    return CorrectionResponse(resource=outcome.resource, applied_fields=outcome.applied_fields)
