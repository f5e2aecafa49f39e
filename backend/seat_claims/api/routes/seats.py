"""
Seat read endpoint. Always reads committed state straight from the store.
"""

from fastapi import APIRouter, Depends, HTTPException, status

from seat_claims.api.deps import get_seat_store
from seat_claims.domain.errors import StoreError
from seat_claims.schemas.seat import SeatResponse
from seat_claims.stores.interfaces import SeatStore

router = APIRouter(prefix="/seats", tags=["Seats"])


@router.get("/{seat_id}", response_model=SeatResponse)
async def get_seat_endpoint(seat_id: int, store: SeatStore = Depends(get_seat_store)):
    try:
        seat = await store.get_seat(seat_id)
    except StoreError:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Seat store unavailable",
        )
    if seat is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Seat {seat_id} not found",
        )
    return SeatResponse.from_snapshot(seat)
