"""Domain layer: claim outcomes, snapshots and store errors."""

from .errors import ConcurrencySignal, LockNotGrantedError, SerializationConflictError, StoreError
from .outcomes import (
    Claimed,
    Conflict,
    ConflictAfterWait,
    IsolationLevel,
    LockedOutcome,
    LockMode,
    NoSeatAvailable,
    OptimisticOutcome,
    Outcome,
    SeatSnapshot,
    TimedOut,
)

__all__ = [
    "Claimed",
    "ConcurrencySignal",
    "Conflict",
    "ConflictAfterWait",
    "IsolationLevel",
    "LockMode",
    "LockNotGrantedError",
    "LockedOutcome",
    "NoSeatAvailable",
    "OptimisticOutcome",
    "Outcome",
    "SeatSnapshot",
    "SerializationConflictError",
    "StoreError",
    "TimedOut",
]
