"""Errors raised by seat stores.

Only StoreError ever leaves the claim protocols. The two concurrency signals
are raised by a store inside a transaction and turned into outcomes by the
lock-hold protocol.
"""

from typing import Optional


class StoreError(Exception):
    """Infrastructure failure: connectivity, or a constraint violation
    unrelated to the claim race (e.g. an unknown user id).

    The driver exception is kept as ``__cause__``.
    """

    def __init__(self, message: str, operation: Optional[str] = None) -> None:
        super().__init__(message)
        self.operation = operation


class ConcurrencySignal(Exception):
    """Base for store signals that are an expected part of contention."""

    def __init__(self, seat_id: Optional[int] = None) -> None:
        super().__init__(seat_id)
        self.seat_id = seat_id


class LockNotGrantedError(ConcurrencySignal):
    """The row lock was not granted within the transaction's timeout."""


class SerializationConflictError(ConcurrencySignal):
    """The isolation level rejected the write because a concurrent
    transaction committed a change to the same row first."""
