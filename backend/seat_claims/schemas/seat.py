"""
Pydantic schemas for seat responses.
"""

from typing import Optional
from pydantic import BaseModel

from seat_claims.domain.outcomes import SeatSnapshot


class SeatResponse(BaseModel):
    id: int
    movie_id: int
    user_id: Optional[int]
    version: int
    claimed: bool

    @classmethod
    def from_snapshot(cls, seat: SeatSnapshot) -> "SeatResponse":
        return cls(
            id=seat.id,
            movie_id=seat.movie_id,
            user_id=seat.user_id,
            version=seat.version,
            claimed=seat.is_claimed,
        )
