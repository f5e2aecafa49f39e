"""
In-memory seat store for tests and offline demos.

Behaves like the relational store for everything the claim protocols can
observe:

- writes made inside a transaction are invisible to everyone else until
  commit, and vanish on rollback
- each seat row has an exclusive lock; a transaction takes it on its first
  lock_seat/claim_if_version and keeps it until commit or rollback, and a
  standalone claim_if_version takes it for the length of the statement
- lock waits inside a transaction give up after the transaction's timeout
- under REPEATABLE READ and SERIALIZABLE, a row that changed while the
  transaction waited for its lock is a serialization failure; under
  READ COMMITTED the statement re-evaluates against the committed row
- users and movies enforce the foreign-key rules of the SQL schema: deleting
  a user nulls its claims, deleting a movie with seats is refused, and
  claiming for an unknown user is a constraint violation

Every operation yields to the event loop (optionally after `latency`
seconds) so concurrent callers interleave as they would over a network.
"""

import asyncio
import itertools
from collections import defaultdict
from contextlib import asynccontextmanager
from dataclasses import replace
from typing import AsyncIterator, Optional

from seat_claims.domain.errors import LockNotGrantedError, SerializationConflictError, StoreError
from seat_claims.domain.outcomes import IsolationLevel, SeatSnapshot
from seat_claims.stores.interfaces import SeatStore, SeatTransaction


class InMemorySeatStore(SeatStore):
    def __init__(self, latency: float = 0.0) -> None:
        self.latency = latency
        self._users: dict[int, tuple[str, str]] = {}
        self._movies: dict[int, str] = {}
        self._seats: dict[int, SeatSnapshot] = {}
        self._locks: dict[int, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._waiters: dict[int, int] = defaultdict(int)
        self._user_ids = itertools.count(1)
        self._movie_ids = itertools.count(1)

    # -- setup ------------------------------------------------------------

    def add_user(self, email: str, name: str) -> int:
        if any(existing == email for existing, _ in self._users.values()):
            raise StoreError(f"duplicate user email {email!r}", operation="add_user")
        user_id = next(self._user_ids)
        self._users[user_id] = (email, name)
        return user_id

    def add_movie(self, name: str) -> int:
        if name in self._movies.values():
            raise StoreError(f"duplicate movie name {name!r}", operation="add_movie")
        movie_id = next(self._movie_ids)
        self._movies[movie_id] = name
        return movie_id

    def add_seat(self, movie_id: int, seat_id: Optional[int] = None) -> int:
        if movie_id not in self._movies:
            raise StoreError(f"movie {movie_id} does not exist", operation="add_seat")
        if seat_id is None:
            seat_id = max(self._seats, default=0) + 1
        elif seat_id in self._seats:
            raise StoreError(f"seat {seat_id} already exists", operation="add_seat")
        self._seats[seat_id] = SeatSnapshot(id=seat_id, movie_id=movie_id, user_id=None, version=0)
        return seat_id

    def delete_user(self, user_id: int) -> None:
        self._users.pop(user_id, None)
        for seat_id, seat in list(self._seats.items()):
            if seat.user_id == user_id:
                self._seats[seat_id] = replace(seat, user_id=None)

    def delete_movie(self, movie_id: int) -> None:
        if any(seat.movie_id == movie_id for seat in self._seats.values()):
            raise StoreError(f"movie {movie_id} still has seats", operation="delete_movie")
        self._movies.pop(movie_id, None)

    def lock_waiters(self, seat_id: int) -> int:
        """Number of callers currently blocked on the seat's row lock."""
        return self._waiters.get(seat_id, 0)

    # -- SeatStore --------------------------------------------------------

    async def find_available(self, movie_id: int) -> Optional[SeatSnapshot]:
        await self._round_trip()
        free = [s for s in self._seats.values() if s.movie_id == movie_id and not s.is_claimed]
        return min(free, key=lambda s: s.id, default=None)

    async def get_seat(self, seat_id: int) -> Optional[SeatSnapshot]:
        await self._round_trip()
        return self._seats.get(seat_id)

    async def claim_if_version(self, seat_id: int, expected_version: int, user_id: int) -> int:
        await self._round_trip()
        # No row, nothing to lock
        if seat_id not in self._seats:
            return 0
        lock = self._locks[seat_id]
        self._waiters[seat_id] += 1
        try:
            await lock.acquire()
        finally:
            self._waiters[seat_id] -= 1
        try:
            claimed = self._apply_claim(self._seats.get(seat_id), expected_version, user_id)
            if claimed is None:
                return 0
            self._seats[seat_id] = claimed
            return 1
        finally:
            lock.release()

    @asynccontextmanager
    async def transaction(
        self, isolation_level: IsolationLevel, timeout_ms: int
    ) -> AsyncIterator[SeatTransaction]:
        tx = _MemorySeatTransaction(self, isolation_level, timeout_ms)
        try:
            yield tx
            tx.commit()
        finally:
            tx.close()

    # -- internals --------------------------------------------------------

    async def _round_trip(self) -> None:
        await asyncio.sleep(self.latency)

    def _apply_claim(
        self, current: Optional[SeatSnapshot], expected_version: int, user_id: int
    ) -> Optional[SeatSnapshot]:
        if current is None or current.version != expected_version:
            return None
        if user_id not in self._users:
            raise StoreError(
                f"seat {current.id}: user {user_id} violates foreign key seats.user_id",
                operation="claim_if_version",
            )
        return replace(current, user_id=user_id, version=current.version + 1)


class _MemorySeatTransaction(SeatTransaction):
    def __init__(self, store: InMemorySeatStore, isolation_level: IsolationLevel, timeout_ms: int) -> None:
        self.store = store
        self.isolation_level = isolation_level
        self.timeout_ms = timeout_ms
        self._held: set[int] = set()
        self._writes: dict[int, SeatSnapshot] = {}

    async def lock_seat(self, seat_id: int) -> Optional[SeatSnapshot]:
        await self.store._round_trip()
        await self._lock(seat_id)
        return self._view(seat_id)

    async def claim_if_version(self, seat_id: int, expected_version: int, user_id: int) -> int:
        await self.store._round_trip()
        await self._lock(seat_id)
        claimed = self.store._apply_claim(self._view(seat_id), expected_version, user_id)
        if claimed is None:
            return 0
        self._writes[seat_id] = claimed
        return 1

    def commit(self) -> None:
        self.store._seats.update(self._writes)
        self._writes.clear()

    def close(self) -> None:
        self._writes.clear()
        for seat_id in self._held:
            self.store._locks[seat_id].release()
        self._held.clear()

    def _view(self, seat_id: int) -> Optional[SeatSnapshot]:
        return self._writes.get(seat_id, self.store._seats.get(seat_id))

    async def _lock(self, seat_id: int) -> None:
        if seat_id in self._held or seat_id not in self.store._seats:
            return
        before = self.store._seats.get(seat_id)
        lock = self.store._locks[seat_id]
        self.store._waiters[seat_id] += 1
        try:
            await asyncio.wait_for(lock.acquire(), self.timeout_ms / 1000)
        except asyncio.TimeoutError:
            raise LockNotGrantedError(seat_id) from None
        finally:
            self.store._waiters[seat_id] -= 1
        self._held.add(seat_id)

        if self.isolation_level is not IsolationLevel.READ_COMMITTED:
            if self.store._seats.get(seat_id) != before:
                raise SerializationConflictError(seat_id)
