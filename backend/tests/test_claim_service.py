"""
Tests for the claim orchestrator: status mapping, retry policy and metrics.
"""

import asyncio

import pytest
from prometheus_client import REGISTRY

from seat_claims.domain.errors import StoreError
from seat_claims.domain.outcomes import IsolationLevel, LockMode
from seat_claims.services.claim_service import (
    OPTIMISTIC,
    PESSIMISTIC,
    ClaimService,
    ClaimStatus,
    status_for,
)
from seat_claims.stores.memory import InMemorySeatStore


class UnreachableSeatStore(InMemorySeatStore):
    """Seat store whose reads fail as if the database were down."""

    def __init__(self) -> None:
        super().__init__()
        self.calls = 0

    async def find_available(self, movie_id):
        self.calls += 1
        raise StoreError("connection refused", operation="find_available")

    async def get_seat(self, seat_id):
        self.calls += 1
        raise StoreError("connection refused", operation="get_seat")


def claim_count(strategy: str, status: str) -> float:
    value = REGISTRY.get_sample_value(
        "claim_attempts_total", {"strategy": strategy, "status": status}
    )
    return value or 0.0


def lock_wait_count() -> float:
    return REGISTRY.get_sample_value("claim_lock_wait_seconds_count") or 0.0


@pytest.mark.asyncio
async def test_optimistic_success(service, scenario):
    result = await service.claim_optimistic(scenario.movie_id, scenario.sorcha)

    assert result.status is ClaimStatus.SUCCESS
    assert result.succeeded
    assert result.strategy == OPTIMISTIC
    assert result.seat_id == 1
    assert result.version == 1
    assert result.attempts == 1


@pytest.mark.asyncio
async def test_optimistic_exhausted_is_not_retried(service, scenario):
    await service.claim_optimistic(scenario.movie_id, scenario.sorcha)

    result = await service.claim_optimistic(scenario.movie_id, scenario.ellen)

    assert result.status is ClaimStatus.EXHAUSTED
    assert not result.succeeded
    assert result.attempts == 1
    assert result.seat_id is None


@pytest.mark.asyncio
async def test_race_without_retries_reports_conflict(service, scenario):
    results = await asyncio.gather(
        service.claim_optimistic(scenario.movie_id, scenario.sorcha, max_retries=0),
        service.claim_optimistic(scenario.movie_id, scenario.ellen, max_retries=0),
    )

    statuses = sorted(r.status.value for r in results)
    assert statuses == ["conflict", "success"]
    loser = next(r for r in results if r.status is ClaimStatus.CONFLICT)
    assert loser.seat_id == 1
    assert loser.attempts == 1


@pytest.mark.asyncio
async def test_conflict_retry_takes_next_seat(service, scenario):
    """The loser of the race on seat 1 re-reads and claims seat 2."""
    scenario.store.add_seat(scenario.movie_id, seat_id=2)

    results = await asyncio.gather(
        service.claim_optimistic(scenario.movie_id, scenario.sorcha),
        service.claim_optimistic(scenario.movie_id, scenario.ellen),
    )

    assert all(r.status is ClaimStatus.SUCCESS for r in results)
    assert sorted(r.seat_id for r in results) == [1, 2]
    assert sorted(r.attempts for r in results) == [1, 2]


@pytest.mark.asyncio
async def test_conflict_retry_ends_exhausted_when_sold_out(service, scenario):
    results = await asyncio.gather(
        service.claim_optimistic(scenario.movie_id, scenario.sorcha),
        service.claim_optimistic(scenario.movie_id, scenario.ellen),
    )

    loser = next(r for r in results if not r.succeeded)
    assert loser.status is ClaimStatus.EXHAUSTED
    assert loser.attempts == 2


@pytest.mark.asyncio
async def test_crowd_claims_every_seat_exactly_once(scenario):
    """Ten users, three seats: three winners, everyone else sees sold out."""
    store = scenario.store
    store.add_seat(scenario.movie_id, seat_id=2)
    store.add_seat(scenario.movie_id, seat_id=3)
    users = [store.add_user(f"fan{i}@example.com", f"Fan {i}") for i in range(10)]
    service = ClaimService(store, max_retries=3)

    results = await asyncio.gather(
        *(service.claim_optimistic(scenario.movie_id, user_id) for user_id in users)
    )

    winners = [r for r in results if r.succeeded]
    assert sorted(r.seat_id for r in winners) == [1, 2, 3]
    assert all(r.status is ClaimStatus.EXHAUSTED for r in results if not r.succeeded)
    for seat_id in (1, 2, 3):
        seat = await store.get_seat(seat_id)
        assert seat.version == 1
        assert seat.user_id in users


@pytest.mark.asyncio
async def test_backoff_sleeps_between_retries(scenario):
    store = scenario.store
    store.add_seat(scenario.movie_id, seat_id=2)
    delays = []

    async def record_sleep(seconds):
        delays.append(seconds)

    service = ClaimService(store, max_retries=3, retry_backoff_ms=10, sleep=record_sleep)
    await asyncio.gather(
        service.claim_optimistic(scenario.movie_id, scenario.sorcha),
        service.claim_optimistic(scenario.movie_id, scenario.ellen),
    )

    assert len(delays) == 1
    assert 0.010 <= delays[0] <= 0.020


@pytest.mark.asyncio
async def test_store_error_is_returned_not_retried():
    store = UnreachableSeatStore()
    service = ClaimService(store, max_retries=3)

    result = await service.claim_optimistic(movie_id=1, user_id=1)

    assert result.status is ClaimStatus.STORE_ERROR
    assert isinstance(result.error, StoreError)
    assert result.error.operation == "find_available"
    assert result.attempts == 1
    assert store.calls == 1


@pytest.mark.asyncio
async def test_pessimistic_store_error():
    result = await ClaimService(UnreachableSeatStore()).claim_pessimistic(seat_id=1, user_id=1)

    assert result.status is ClaimStatus.STORE_ERROR
    assert result.strategy == PESSIMISTIC
    assert result.error.operation == "get_seat"


@pytest.mark.asyncio
async def test_pessimistic_unknown_user_is_store_error(service, scenario):
    result = await service.claim_pessimistic(scenario.seat_id, user_id=999)

    assert result.status is ClaimStatus.STORE_ERROR
    assert (await scenario.store.get_seat(1)).version == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("lock_mode", [LockMode.CONDITIONAL_UPDATE, LockMode.SELECT_FOR_UPDATE])
async def test_pessimistic_success_and_exhausted(service, scenario, lock_mode):
    first = await service.claim_pessimistic(scenario.seat_id, scenario.sorcha, lock_mode=lock_mode)
    second = await service.claim_pessimistic(scenario.seat_id, scenario.ellen, lock_mode=lock_mode)

    assert first.status is ClaimStatus.SUCCESS
    assert first.strategy == PESSIMISTIC
    assert first.version == 1
    assert second.status is ClaimStatus.EXHAUSTED
    assert second.version is None


@pytest.mark.asyncio
async def test_pessimistic_conflict_after_wait(service, scenario, wait_for_lock_waiters):
    store = scenario.store

    async with store.transaction(IsolationLevel.READ_COMMITTED, 1000) as tx:
        assert await tx.claim_if_version(1, 0, scenario.sorcha) == 1
        waiter = asyncio.create_task(service.claim_pessimistic(1, scenario.ellen))
        await wait_for_lock_waiters(store, 1)

    result = await waiter
    assert result.status is ClaimStatus.CONFLICT
    assert result.seat_id == 1
    assert result.waited_ms >= 0
    assert result.attempts == 1


@pytest.mark.asyncio
async def test_pessimistic_timeout(service, scenario, wait_for_lock_waiters):
    store = scenario.store
    waits_before = lock_wait_count()

    async with store.transaction(IsolationLevel.READ_COMMITTED, 1000) as tx:
        await tx.lock_seat(1)
        result = await service.claim_pessimistic(1, scenario.ellen, timeout_ms=50)

    assert result.status is ClaimStatus.TIMEOUT
    assert lock_wait_count() == waits_before + 1
    seat = await store.get_seat(1)
    assert seat.user_id is None
    assert seat.version == 0


@pytest.mark.asyncio
async def test_finished_claims_are_counted(service, scenario):
    before = claim_count(OPTIMISTIC, "success")

    await service.claim_optimistic(scenario.movie_id, scenario.sorcha)

    assert claim_count(OPTIMISTIC, "success") == before + 1


def test_negative_retries_rejected(store):
    with pytest.raises(ValueError):
        ClaimService(store, max_retries=-1)


@pytest.mark.asyncio
async def test_negative_retry_override_rejected(service, scenario):
    with pytest.raises(ValueError):
        await service.claim_optimistic(scenario.movie_id, scenario.sorcha, max_retries=-1)


def test_unknown_outcome_has_no_status():
    with pytest.raises(KeyError):
        status_for(object())


@pytest.mark.asyncio
async def test_serialization_failure_wait_is_recorded(service, scenario, wait_for_lock_waiters):
    store = scenario.store
    waits_before = lock_wait_count()

    async with store.transaction(IsolationLevel.READ_COMMITTED, 1000) as tx:
        await tx.claim_if_version(1, 0, scenario.sorcha)
        waiter = asyncio.create_task(
            service.claim_pessimistic(1, scenario.ellen, isolation_level=IsolationLevel.SERIALIZABLE)
        )
        await wait_for_lock_waiters(store, 1)

    assert (await waiter).status is ClaimStatus.CONFLICT
    assert lock_wait_count() == waits_before + 1


@pytest.mark.asyncio
async def test_overrunning_holder_wait_is_recorded_once(scenario):
    waits_before = lock_wait_count()
    service = ClaimService(scenario.store)

    result = await service.claim_pessimistic(1, scenario.sorcha, timeout_ms=50, hold_seconds=1)

    assert result.status is ClaimStatus.TIMEOUT
    assert lock_wait_count() == waits_before + 1


@pytest.mark.asyncio
async def test_explicit_zero_timeout_is_rejected(service, scenario):
    """An explicit value is passed through, not replaced by the default."""
    with pytest.raises(ValueError):
        await service.claim_pessimistic(1, scenario.sorcha, timeout_ms=0)

    assert (await scenario.store.get_seat(1)).version == 0
