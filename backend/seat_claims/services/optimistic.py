"""
Version-stamp claim protocol (optimistic concurrency control).

Problem:
  Two users read the same free seat and both write themselves in as owner.
  Whoever writes last silently overwrites the first claim.

Solution:
  Every seat carries a `version` counter.

  1. Read the first unclaimed seat of the movie, remembering its version
  2. UPDATE seats SET user_id = :user, version = version + 1
     WHERE id = :seat_id AND version = :seen_version
  3. rows_affected == 0 means someone else moved the version first -> Conflict
     rows_affected == 1 means the seat is ours at version seen + 1

  No lock is held between the read and the write; contention is detected,
  not prevented. This function never retries: that policy belongs to the
  caller (see ClaimService.claim_optimistic).
"""

from seat_claims.core.logging import get_logger
from seat_claims.domain.outcomes import Claimed, Conflict, NoSeatAvailable, OptimisticOutcome
from seat_claims.stores.interfaces import SeatStore

logger = get_logger(__name__)


async def attempt_claim(store: SeatStore, movie_id: int, user_id: int) -> OptimisticOutcome:
    """
    Run one read-then-conditional-write cycle for any free seat of a movie.
    StoreError propagates; every other result is returned.
    """
    # Read phase
    seat = await store.find_available(movie_id)
    if seat is None:
        logger.info("claim_no_seat_available", movie_id=movie_id, user_id=user_id)
        return NoSeatAvailable()

    # Write phase: only lands if nobody moved the version since our read
    rows = await store.claim_if_version(seat.id, seat.version, user_id)
    if rows == 0:
        logger.info(
            "claim_version_conflict",
            seat_id=seat.id,
            user_id=user_id,
            expected_version=seat.version,
        )
        return Conflict(seat_id=seat.id, expected_version=seat.version)

    logger.info("seat_claimed", seat_id=seat.id, user_id=user_id, version=seat.version + 1)
    return Claimed(seat_id=seat.id, version=seat.version + 1)
