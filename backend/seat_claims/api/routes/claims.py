"""
Claim endpoints, one per concurrency-control strategy.

The body always carries the claim status; the HTTP status keeps the three
"you did not get it" cases apart from a broken backend:

    success -> 201   conflict -> 409   exhausted -> 410
    timeout -> 423   store_error -> 503
"""

from fastapi import APIRouter, Depends, Response, status

from seat_claims.api.deps import get_claim_service
from seat_claims.schemas.claim import ClaimResponse, OptimisticClaimRequest, PessimisticClaimRequest
from seat_claims.services.claim_service import ClaimResult, ClaimService, ClaimStatus

router = APIRouter(prefix="/claims", tags=["Claims"])

HTTP_STATUS_BY_CLAIM = {
    ClaimStatus.SUCCESS: status.HTTP_201_CREATED,
    ClaimStatus.CONFLICT: status.HTTP_409_CONFLICT,
    ClaimStatus.EXHAUSTED: status.HTTP_410_GONE,
    ClaimStatus.TIMEOUT: status.HTTP_423_LOCKED,
    ClaimStatus.STORE_ERROR: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def _respond(result: ClaimResult, response: Response) -> ClaimResponse:
    response.status_code = HTTP_STATUS_BY_CLAIM[result.status]
    if result.status is ClaimStatus.TIMEOUT:
        response.headers["Retry-After"] = "1"
    return ClaimResponse.from_result(result)


@router.post("/optimistic", response_model=ClaimResponse, status_code=status.HTTP_201_CREATED)
async def claim_optimistic_endpoint(
    claim: OptimisticClaimRequest,
    response: Response,
    service: ClaimService = Depends(get_claim_service),
):
    """
    Claim any free seat of a movie using the version stamp.

    A version conflict re-runs the read-then-write cycle up to max_retries
    times (server default when omitted) before answering 409.
    """
    result = await service.claim_optimistic(claim.movie_id, claim.user_id, claim.max_retries)
    return _respond(result, response)


@router.post("/pessimistic", response_model=ClaimResponse, status_code=status.HTTP_201_CREATED)
async def claim_pessimistic_endpoint(
    claim: PessimisticClaimRequest,
    response: Response,
    service: ClaimService = Depends(get_claim_service),
):
    """Claim one specific seat while holding its row lock."""
    result = await service.claim_pessimistic(
        claim.seat_id,
        claim.user_id,
        isolation_level=claim.isolation_level,
        timeout_ms=claim.timeout_ms,
        lock_mode=claim.lock_mode,
    )
    return _respond(result, response)
