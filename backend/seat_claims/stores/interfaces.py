"""
Seat store interfaces (repository pattern).

A store is the only owner of seat state. It returns SeatSnapshot read
copies and offers exactly what the two claim protocols consume:

- point reads (first unclaimed seat of a movie, seat by id)
- conditional update: set owner and bump version only if the version matches
- transactions at a chosen isolation level with a lock timeout, inside which
  the conditional update (or SELECT ... FOR UPDATE) holds the row lock until
  commit or rollback

Stores raise StoreError for infrastructure failures. Inside a transaction
they also raise LockNotGrantedError and SerializationConflictError, which
the lock-hold protocol turns into outcomes.
"""

from abc import ABC, abstractmethod
from typing import AsyncContextManager, Optional

from seat_claims.domain.outcomes import IsolationLevel, SeatSnapshot


class SeatTransaction(ABC):
    """Operations available while a store transaction is open."""

    @abstractmethod
    async def lock_seat(self, seat_id: int) -> Optional[SeatSnapshot]:
        """SELECT the seat FOR UPDATE, blocking while another transaction
        holds it. Returns None if the seat does not exist."""
        ...

    @abstractmethod
    async def claim_if_version(self, seat_id: int, expected_version: int, user_id: int) -> int:
        """Set the owner and bump the version if the version still equals
        expected_version. Returns rows affected (0 or 1). The row stays
        locked until the transaction ends."""
        ...


class SeatStore(ABC):
    """Interface for seat persistence operations."""

    @abstractmethod
    async def find_available(self, movie_id: int) -> Optional[SeatSnapshot]:
        """Return the lowest-id unclaimed seat of the movie, or None."""
        ...

    @abstractmethod
    async def get_seat(self, seat_id: int) -> Optional[SeatSnapshot]:
        """Return the committed state of a seat, or None if not found."""
        ...

    @abstractmethod
    async def claim_if_version(self, seat_id: int, expected_version: int, user_id: int) -> int:
        """Conditional update in its own short transaction. Returns rows
        affected (0 or 1)."""
        ...

    @abstractmethod
    def transaction(
        self, isolation_level: IsolationLevel, timeout_ms: int
    ) -> AsyncContextManager[SeatTransaction]:
        """Open a transaction. Commits on clean exit; rolls back on any
        exception, including cancellation."""
        ...

    async def close(self) -> None:
        """Release connections held by the store."""
        return None
