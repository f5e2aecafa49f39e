"""
Claim outcomes and the value types the claim protocols pass around.

Outcomes are plain return values. Losing a race or finding a movie sold out
is the normal result of contention, so neither is ever raised.

    Claimed            the conditional write landed; version is the new stamp
    NoSeatAvailable    nothing unclaimed matched the read
    Conflict           optimistic write found the version already moved on
    ConflictAfterWait  locked write found the version moved on by the lock holder
    TimedOut           the lock was not granted (or the transaction overran)
                       within its timeout; the transaction rolled back
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union


class IsolationLevel(str, Enum):
    """Transaction isolation levels, valued as SQLAlchemy spells them."""

    READ_COMMITTED = "READ COMMITTED"
    REPEATABLE_READ = "REPEATABLE READ"
    SERIALIZABLE = "SERIALIZABLE"


class LockMode(str, Enum):
    """How the lock-hold protocol takes the row lock."""

    CONDITIONAL_UPDATE = "conditional_update"  # the guarded UPDATE locks the row
    SELECT_FOR_UPDATE = "select_for_update"  # SELECT ... FOR UPDATE, then UPDATE


@dataclass(frozen=True)
class SeatSnapshot:
    """Read copy of a seat row. Stale the moment it is returned."""

    id: int
    movie_id: int
    user_id: Optional[int]
    version: int

    @property
    def is_claimed(self) -> bool:
        return self.user_id is not None


@dataclass(frozen=True)
class Claimed:
    seat_id: int
    version: int


@dataclass(frozen=True)
class NoSeatAvailable:
    pass


@dataclass(frozen=True)
class Conflict:
    seat_id: int
    expected_version: int


@dataclass(frozen=True)
class ConflictAfterWait:
    seat_id: int
    expected_version: int
    waited_ms: float = 0.0


@dataclass(frozen=True)
class TimedOut:
    seat_id: int
    timeout_ms: int


OptimisticOutcome = Union[Claimed, NoSeatAvailable, Conflict]
LockedOutcome = Union[Claimed, NoSeatAvailable, ConflictAfterWait, TimedOut]
Outcome = Union[Claimed, NoSeatAvailable, Conflict, ConflictAfterWait, TimedOut]
