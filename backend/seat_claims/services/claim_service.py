"""
Claim orchestrator: one entry point per concurrency-control strategy.

Both protocols return outcome values; this layer folds them into a small
result vocabulary the API (and any other caller) can act on:

    success      the seat is yours, durably
    conflict     someone else got it first (expected under contention)
    exhausted    no unclaimed seat matched; stable until seats are freed
    timeout      the row lock was not granted in time; retry later
    store_error  infrastructure failure; never retried here

Retry policy (optimistic only): re-run the full read-then-write cycle up to
`max_retries` more times on conflict, optionally with exponential backoff
and jitter. Never retry on exhausted or store_error. There is no unbounded
retry; a caller wanting the raw protocol result passes max_retries=0.
"""

import asyncio
import random
import time
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional

import structlog

from seat_claims.core.config import Settings
from seat_claims.core.logging import get_logger
from seat_claims.core.metrics import record_claim, record_retry
from seat_claims.domain.errors import StoreError
from seat_claims.domain.outcomes import (
    Claimed,
    Conflict,
    ConflictAfterWait,
    IsolationLevel,
    LockMode,
    NoSeatAvailable,
    Outcome,
    TimedOut,
)
from seat_claims.services.optimistic import attempt_claim
from seat_claims.services.pessimistic import attempt_claim_locked
from seat_claims.stores.interfaces import SeatStore

logger = get_logger(__name__)

OPTIMISTIC = "optimistic"
PESSIMISTIC = "pessimistic"


class ClaimStatus(str, Enum):
    SUCCESS = "success"
    CONFLICT = "conflict"
    EXHAUSTED = "exhausted"
    TIMEOUT = "timeout"
    STORE_ERROR = "store_error"


# Every outcome type must appear here; a missing one is a KeyError, not a silent default
_STATUS_BY_OUTCOME = {
    Claimed: ClaimStatus.SUCCESS,
    Conflict: ClaimStatus.CONFLICT,
    ConflictAfterWait: ClaimStatus.CONFLICT,
    NoSeatAvailable: ClaimStatus.EXHAUSTED,
    TimedOut: ClaimStatus.TIMEOUT,
}


def status_for(outcome: Outcome) -> ClaimStatus:
    return _STATUS_BY_OUTCOME[type(outcome)]


@dataclass(frozen=True)
class ClaimResult:
    status: ClaimStatus
    strategy: str
    seat_id: Optional[int] = None
    version: Optional[int] = None
    attempts: int = 1
    waited_ms: float = 0.0
    error: Optional[StoreError] = None

    @property
    def succeeded(self) -> bool:
        return self.status is ClaimStatus.SUCCESS


class ClaimService:
    def __init__(
        self,
        store: SeatStore,
        max_retries: int = 3,
        retry_backoff_ms: int = 0,
        lock_isolation_level: IsolationLevel = IsolationLevel.READ_COMMITTED,
        lock_timeout_ms: int = 7000,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if max_retries < 0:
            raise ValueError("max_retries must not be negative")
        self.store = store
        self.max_retries = max_retries
        self.retry_backoff_ms = retry_backoff_ms
        self.lock_isolation_level = lock_isolation_level
        self.lock_timeout_ms = lock_timeout_ms
        self._sleep = sleep

    @classmethod
    def from_settings(cls, store: SeatStore, settings: Settings) -> "ClaimService":
        return cls(
            store,
            max_retries=settings.CLAIM_MAX_RETRIES,
            retry_backoff_ms=settings.CLAIM_RETRY_BACKOFF_MS,
            lock_isolation_level=settings.LOCK_ISOLATION_LEVEL,
            lock_timeout_ms=settings.LOCK_TIMEOUT_MS,
        )

    async def claim_optimistic(
        self, movie_id: int, user_id: int, max_retries: Optional[int] = None
    ) -> ClaimResult:
        """
        Claim any free seat of a movie with version-stamp concurrency control.
        Retries up to max_retries (default: the service's) on version conflicts.
        """
        retries = self.max_retries if max_retries is None else max_retries
        if retries < 0:
            raise ValueError("max_retries must not be negative")

        started = time.perf_counter()
        with structlog.contextvars.bound_contextvars(
            strategy=OPTIMISTIC, movie_id=movie_id, user_id=user_id
        ):
            attempt = 0
            while True:
                attempt += 1
                try:
                    outcome = await attempt_claim(self.store, movie_id, user_id)
                except StoreError as exc:
                    return self._store_failure(OPTIMISTIC, exc, attempt, started)

                status = status_for(outcome)
                if status is not ClaimStatus.CONFLICT or attempt > retries:
                    return self._finish(
                        ClaimResult(
                            status=status,
                            strategy=OPTIMISTIC,
                            seat_id=getattr(outcome, "seat_id", None),
                            version=getattr(outcome, "version", None),
                            attempts=attempt,
                        ),
                        started,
                    )

                record_retry()
                logger.info(
                    "claim_retry",
                    attempt=attempt,
                    seat_id=outcome.seat_id,
                    reason="version_conflict",
                )
                await self._backoff(attempt)

    async def claim_pessimistic(
        self,
        seat_id: int,
        user_id: int,
        isolation_level: Optional[IsolationLevel] = None,
        timeout_ms: Optional[int] = None,
        lock_mode: LockMode = LockMode.CONDITIONAL_UPDATE,
        hold_seconds: float = 0.0,
    ) -> ClaimResult:
        """
        Claim one specific seat under an exclusive row lock. Not retried:
        a conflict here is final for this seat, and a timeout is the
        caller's to retry.
        """
        if isolation_level is None:
            isolation_level = self.lock_isolation_level
        if timeout_ms is None:
            timeout_ms = self.lock_timeout_ms
        started = time.perf_counter()
        with structlog.contextvars.bound_contextvars(
            strategy=PESSIMISTIC, seat_id=seat_id, user_id=user_id
        ):
            try:
                outcome = await attempt_claim_locked(
                    self.store,
                    seat_id,
                    user_id,
                    isolation_level=isolation_level,
                    timeout_ms=timeout_ms,
                    hold_seconds=hold_seconds,
                    lock_mode=lock_mode,
                    sleep=self._sleep,
                )
            except StoreError as exc:
                return self._store_failure(PESSIMISTIC, exc, 1, started)

            return self._finish(
                ClaimResult(
                    status=status_for(outcome),
                    strategy=PESSIMISTIC,
                    seat_id=seat_id,
                    version=getattr(outcome, "version", None),
                    waited_ms=getattr(outcome, "waited_ms", 0.0),
                ),
                started,
            )

    async def _backoff(self, attempt: int) -> None:
        if self.retry_backoff_ms <= 0:
            return
        base = self.retry_backoff_ms * (2 ** (attempt - 1))
        await self._sleep((base + random.uniform(0, self.retry_backoff_ms)) / 1000)

    def _store_failure(self, strategy: str, exc: StoreError, attempts: int, started: float) -> ClaimResult:
        logger.error("claim_store_error", operation=exc.operation, error=str(exc), attempts=attempts)
        return self._finish(
            ClaimResult(status=ClaimStatus.STORE_ERROR, strategy=strategy, attempts=attempts, error=exc),
            started,
        )

    def _finish(self, result: ClaimResult, started: float) -> ClaimResult:
        record_claim(result.strategy, result.status.value, time.perf_counter() - started)
        logger.info(
            "claim_finished",
            status=result.status.value,
            claimed_seat=result.seat_id,
            version=result.version,
            attempts=result.attempts,
        )
        return result
