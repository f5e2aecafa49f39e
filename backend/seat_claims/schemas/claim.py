"""
Pydantic schemas for claim request/response validation.
"""

from typing import Optional
from pydantic import BaseModel, Field

from seat_claims.domain.outcomes import IsolationLevel, LockMode
from seat_claims.services.claim_service import ClaimResult, ClaimStatus


class OptimisticClaimRequest(BaseModel):
    movie_id: int
    user_id: int
    max_retries: Optional[int] = Field(default=None, ge=0, le=20)


class PessimisticClaimRequest(BaseModel):
    seat_id: int
    user_id: int
    isolation_level: Optional[IsolationLevel] = None
    timeout_ms: Optional[int] = Field(default=None, gt=0, le=60000)
    lock_mode: LockMode = LockMode.CONDITIONAL_UPDATE


class ClaimResponse(BaseModel):
    status: ClaimStatus
    strategy: str
    seat_id: Optional[int] = None
    version: Optional[int] = None
    attempts: int
    waited_ms: float = 0.0
    detail: str

    @classmethod
    def from_result(cls, result: ClaimResult) -> "ClaimResponse":
        return cls(
            status=result.status,
            strategy=result.strategy,
            seat_id=result.seat_id,
            version=result.version,
            attempts=result.attempts,
            waited_ms=result.waited_ms,
            detail=CLAIM_DETAILS[result.status],
        )


CLAIM_DETAILS = {
    ClaimStatus.SUCCESS: "Seat claimed",
    ClaimStatus.CONFLICT: "Someone else got this seat first. Please try again.",
    ClaimStatus.EXHAUSTED: "No seats available",
    ClaimStatus.TIMEOUT: "Seat is locked by another claim. Please retry shortly.",
    ClaimStatus.STORE_ERROR: "Seat store unavailable",
}
