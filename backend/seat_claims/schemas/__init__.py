from seat_claims.schemas.claim import OptimisticClaimRequest, PessimisticClaimRequest, ClaimResponse
from seat_claims.schemas.seat import SeatResponse

__all__ = [
    "OptimisticClaimRequest", "PessimisticClaimRequest", "ClaimResponse",
    "SeatResponse",
]
