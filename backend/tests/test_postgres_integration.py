"""
End-to-end claim scenarios against a real PostgreSQL database.

Skipped unless SEAT_CLAIMS_TEST_DATABASE_URL is set. These use real row
locks and real sleeps, so they take a few seconds.
"""

import asyncio

import pytest

from seat_claims.domain.errors import StoreError
from seat_claims.domain.outcomes import (
    Claimed,
    Conflict,
    ConflictAfterWait,
    IsolationLevel,
    LockMode,
    NoSeatAvailable,
    TimedOut,
)
from seat_claims.services.claim_service import ClaimService, ClaimStatus
from seat_claims.services.optimistic import attempt_claim
from seat_claims.services.pessimistic import attempt_claim_locked

pytestmark = pytest.mark.integration


@pytest.mark.asyncio
async def test_optimistic_race(pg_scenario):
    """Two claims on one seat: one Claimed, one Conflict, final version 1."""
    outcomes = await asyncio.gather(
        attempt_claim(pg_scenario.store, pg_scenario.movie_id, pg_scenario.sorcha),
        attempt_claim(pg_scenario.store, pg_scenario.movie_id, pg_scenario.ellen),
    )

    assert sum(isinstance(o, Claimed) for o in outcomes) == 1
    assert all(isinstance(o, (Claimed, Conflict)) for o in outcomes)
    seat = await pg_scenario.store.get_seat(1)
    assert seat.version == 1
    assert seat.user_id in (pg_scenario.sorcha, pg_scenario.ellen)

    later = await attempt_claim(pg_scenario.store, pg_scenario.movie_id, pg_scenario.alice)
    assert later == NoSeatAvailable()


@pytest.mark.asyncio
@pytest.mark.parametrize("lock_mode", [LockMode.CONDITIONAL_UPDATE, LockMode.SELECT_FOR_UPDATE])
async def test_lock_hold_blocks_second_claim(pg_scenario, lock_mode):
    """Holder keeps the row for 1s; a claim started 0.5s later waits, then loses."""
    store = pg_scenario.store

    holder = asyncio.create_task(
        attempt_claim_locked(store, 1, pg_scenario.sorcha, hold_seconds=1.0, lock_mode=lock_mode)
    )
    await asyncio.sleep(0.5)

    during_hold = await store.get_seat(1)
    assert during_hold.user_id is None
    assert during_hold.version == 0

    waiter_outcome = await attempt_claim_locked(
        store, 1, pg_scenario.ellen, timeout_ms=7000, lock_mode=lock_mode
    )
    holder_outcome = await holder

    assert holder_outcome == Claimed(seat_id=1, version=1)
    assert isinstance(waiter_outcome, ConflictAfterWait)
    assert waiter_outcome.waited_ms >= 200

    seat = await store.get_seat(1)
    assert seat.user_id == pg_scenario.sorcha
    assert seat.version == 1


@pytest.mark.asyncio
async def test_lock_wait_times_out(pg_scenario):
    store = pg_scenario.store
    holder = asyncio.create_task(
        attempt_claim_locked(store, 1, pg_scenario.sorcha, hold_seconds=1.5)
    )
    await asyncio.sleep(0.3)

    outcome = await attempt_claim_locked(store, 1, pg_scenario.ellen, timeout_ms=200)

    assert outcome == TimedOut(seat_id=1, timeout_ms=200)
    assert await holder == Claimed(seat_id=1, version=1)
    assert (await store.get_seat(1)).user_id == pg_scenario.sorcha


@pytest.mark.asyncio
async def test_repeatable_read_waiter_gets_serialization_conflict(pg_scenario):
    store = pg_scenario.store
    holder = asyncio.create_task(
        attempt_claim_locked(store, 1, pg_scenario.sorcha, hold_seconds=1.0)
    )
    await asyncio.sleep(0.3)

    outcome = await attempt_claim_locked(
        store, 1, pg_scenario.ellen, isolation_level=IsolationLevel.REPEATABLE_READ
    )

    assert await holder == Claimed(seat_id=1, version=1)
    assert isinstance(outcome, ConflictAfterWait)
    assert outcome.expected_version == 0


@pytest.mark.asyncio
async def test_unknown_user_is_store_error(pg_scenario):
    with pytest.raises(StoreError):
        await attempt_claim(pg_scenario.store, pg_scenario.movie_id, 999_999)

    result = await ClaimService(pg_scenario.store).claim_pessimistic(1, 999_999)
    assert result.status is ClaimStatus.STORE_ERROR

    seat = await pg_scenario.store.get_seat(1)
    assert seat.user_id is None
    assert seat.version == 0
