"""
Lock-hold claim protocol (pessimistic concurrency control).

Instead of detecting a lost race after the fact, take the seat's row lock
and keep it until COMMIT:

  T1: BEGIN; UPDATE seats ... WHERE id = 1 AND version = 0   -- row locked, v1
      ... business logic (hold_seconds) ...
      COMMIT                                                 -- lock released
  T2:        BEGIN; UPDATE seats ... WHERE id = 1 AND version = 0
             -- blocks until T1 ends, then re-checks its WHERE against the
             -- committed row: version is 1, 0 rows -> ConflictAfterWait

With LockMode.SELECT_FOR_UPDATE the lock is taken by an explicit
SELECT ... FOR UPDATE first and the locked version is compared before the
UPDATE; the observable outcomes are the same.

The waiter never sees an intermediate state: it resumes only after the
holder committed or rolled back. The transaction's timeout bounds both the
lock wait and the whole body; when it elapses the transaction rolls back,
the row is left as it was, and the outcome is TimedOut.

Under REPEATABLE READ / SERIALIZABLE the database rejects the waiter's
write with a serialization failure instead of re-evaluating it. That is the
same lost race, so it is reported as ConflictAfterWait too.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from seat_claims.core.logging import get_logger
from seat_claims.core.metrics import record_lock_wait
from seat_claims.domain.errors import LockNotGrantedError, SerializationConflictError
from seat_claims.domain.outcomes import (
    Claimed,
    ConflictAfterWait,
    IsolationLevel,
    LockedOutcome,
    LockMode,
    NoSeatAvailable,
    SeatSnapshot,
    TimedOut,
)
from seat_claims.stores.interfaces import SeatStore

logger = get_logger(__name__)

Sleep = Callable[[float], Awaitable[None]]


@dataclass
class _LockTiming:
    requested: Optional[float] = None
    granted: Optional[float] = None

    def waited_ms(self) -> float:
        if self.requested is None:
            return 0.0
        end = self.granted if self.granted is not None else time.perf_counter()
        return round((end - self.requested) * 1000, 2)

    def record_abandoned_wait(self) -> None:
        """Record a wait that ended in a timeout or serialization failure
        before the lock was granted. Granted waits are recorded in the body."""
        if self.requested is not None and self.granted is None:
            record_lock_wait(self.waited_ms() / 1000)


async def attempt_claim_locked(
    store: SeatStore,
    seat_id: int,
    user_id: int,
    isolation_level: IsolationLevel = IsolationLevel.READ_COMMITTED,
    timeout_ms: int = 7000,
    hold_seconds: float = 0.0,
    lock_mode: LockMode = LockMode.CONDITIONAL_UPDATE,
    sleep: Sleep = asyncio.sleep,
) -> LockedOutcome:
    """
    Claim one specific seat while holding its row lock.

    Args:
        store: Seat store to run against
        seat_id: Seat to claim
        user_id: Claiming user
        isolation_level: Isolation level of the claim transaction
        timeout_ms: Budget for the transaction, lock wait included
        hold_seconds: Keep the transaction (and the lock) open this long
            after the write. For demonstrations and tests only.
        lock_mode: Take the lock with the conditional UPDATE itself or with
            an explicit SELECT ... FOR UPDATE
        sleep: Awaitable used for the hold; injectable so tests control it

    Returns:
        Claimed, NoSeatAvailable, ConflictAfterWait or TimedOut.
        StoreError propagates.
    """
    if timeout_ms <= 0:
        raise ValueError("timeout_ms must be positive")
    if hold_seconds < 0:
        raise ValueError("hold_seconds must not be negative")

    # Snapshot of the committed row; an uncommitted claim by a lock holder is not visible here
    seat = await store.get_seat(seat_id)
    if seat is None or seat.is_claimed:
        logger.info("claim_no_seat_available", seat_id=seat_id, user_id=user_id)
        return NoSeatAvailable()

    timing = _LockTiming()
    try:
        outcome = await asyncio.wait_for(
            _claim_under_lock(
                store, seat, user_id, isolation_level, timeout_ms, hold_seconds, lock_mode, sleep, timing
            ),
            timeout_ms / 1000,
        )
    except (asyncio.TimeoutError, LockNotGrantedError):
        timing.record_abandoned_wait()
        logger.warning(
            "claim_lock_timed_out",
            seat_id=seat_id,
            user_id=user_id,
            timeout_ms=timeout_ms,
            waited_ms=timing.waited_ms(),
        )
        return TimedOut(seat_id=seat_id, timeout_ms=timeout_ms)
    except SerializationConflictError:
        timing.record_abandoned_wait()
        logger.info(
            "claim_serialization_conflict",
            seat_id=seat_id,
            user_id=user_id,
            isolation_level=isolation_level.value,
        )
        return ConflictAfterWait(
            seat_id=seat.id, expected_version=seat.version, waited_ms=timing.waited_ms()
        )

    if isinstance(outcome, Claimed):
        logger.info("seat_claimed", seat_id=seat.id, user_id=user_id, version=outcome.version)
    else:
        logger.info(
            "claim_conflict_after_wait",
            seat_id=seat.id,
            user_id=user_id,
            expected_version=seat.version,
            waited_ms=outcome.waited_ms,
        )
    return outcome


async def _claim_under_lock(
    store: SeatStore,
    seat: SeatSnapshot,
    user_id: int,
    isolation_level: IsolationLevel,
    timeout_ms: int,
    hold_seconds: float,
    lock_mode: LockMode,
    sleep: Sleep,
    timing: _LockTiming,
):
    async with store.transaction(isolation_level, timeout_ms) as tx:
        timing.requested = time.perf_counter()

        if lock_mode is LockMode.SELECT_FOR_UPDATE:
            locked = await tx.lock_seat(seat.id)
            timing.granted = time.perf_counter()
            if locked is None or locked.version != seat.version:
                record_lock_wait(timing.waited_ms() / 1000)
                return ConflictAfterWait(seat.id, seat.version, timing.waited_ms())

        rows = await tx.claim_if_version(seat.id, seat.version, user_id)
        if timing.granted is None:
            timing.granted = time.perf_counter()
        record_lock_wait(timing.waited_ms() / 1000)

        if rows == 0:
            return ConflictAfterWait(seat.id, seat.version, timing.waited_ms())

        if hold_seconds > 0:
            logger.info("claim_holding_lock", seat_id=seat.id, hold_seconds=hold_seconds)
            await sleep(hold_seconds)

        return Claimed(seat_id=seat.id, version=seat.version + 1)
