from seat_claims.models.user import User
from seat_claims.models.movie import Movie
from seat_claims.models.seat import Seat

__all__ = ["User", "Movie", "Seat"]
