"""
Request dependencies. The store lives on app.state, put there by the
lifespan hook; tests override get_seat_store instead.
"""

from fastapi import Depends, Request

from seat_claims.core.config import get_settings
from seat_claims.services.claim_service import ClaimService
from seat_claims.stores.interfaces import SeatStore


def get_seat_store(request: Request) -> SeatStore:
    return request.app.state.seat_store


def get_claim_service(store: SeatStore = Depends(get_seat_store)) -> ClaimService:
    return ClaimService.from_settings(store, get_settings())
