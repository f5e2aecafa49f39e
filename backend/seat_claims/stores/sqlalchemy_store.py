"""
SQLAlchemy implementation of the seat store, targeting PostgreSQL (asyncpg).

Locking is entirely the database's: the conditional UPDATE takes the row
lock, SELECT ... FOR UPDATE takes it explicitly, and the lock is released by
COMMIT/ROLLBACK. A transaction's isolation level is applied per connection
checkout and reverted when the connection returns to the pool; its timeout
becomes the transaction-local `lock_timeout`.

Driver errors are translated by SQLSTATE:
  55P03 lock_not_available, 57014 query_canceled   -> LockNotGrantedError
  40001 serialization_failure, 40P01 deadlock      -> SerializationConflictError
  anything else                                    -> StoreError
Outside a transaction every failure is a StoreError.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from sqlalchemy import select, text, update
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from seat_claims.core.logging import get_logger
from seat_claims.core.metrics import record_store_error
from seat_claims.db.session import Database
from seat_claims.domain.errors import LockNotGrantedError, SerializationConflictError, StoreError
from seat_claims.domain.outcomes import IsolationLevel, SeatSnapshot
from seat_claims.models.seat import Seat
from seat_claims.stores.interfaces import SeatStore, SeatTransaction

logger = get_logger(__name__)

LOCK_TIMEOUT_STATES = {"55P03", "57014"}
SERIALIZATION_STATES = {"40001", "40P01"}

_SEAT_COLUMNS = (Seat.id, Seat.movie_id, Seat.user_id, Seat.version)


def _sqlstate(exc: DBAPIError) -> Optional[str]:
    orig = exc.orig
    return getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)


def translate_error(
    exc: Exception,
    operation: str,
    seat_id: Optional[int] = None,
    in_transaction: bool = False,
) -> Exception:
    """Map a driver/SQLAlchemy failure onto the store's error vocabulary."""
    if in_transaction and isinstance(exc, DBAPIError):
        state = _sqlstate(exc)
        if state in LOCK_TIMEOUT_STATES:
            return LockNotGrantedError(seat_id)
        if state in SERIALIZATION_STATES:
            return SerializationConflictError(seat_id)

    record_store_error(operation)
    logger.error("store_error", operation=operation, seat_id=seat_id, error=str(exc))
    return StoreError(f"{operation} failed: {exc}", operation=operation)


def _snapshot(row) -> Optional[SeatSnapshot]:
    if row is None:
        return None
    return SeatSnapshot(id=row.id, movie_id=row.movie_id, user_id=row.user_id, version=row.version)


def _claim_statement(seat_id: int, expected_version: int, user_id: int):
    return (
        update(Seat)
        .where(Seat.id == seat_id, Seat.version == expected_version)
        .values(user_id=user_id, version=Seat.version + 1)
        .execution_options(synchronize_session=False)
    )


class _SqlAlchemySeatTransaction(SeatTransaction):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def lock_seat(self, seat_id: int) -> Optional[SeatSnapshot]:
        stmt = select(*_SEAT_COLUMNS).where(Seat.id == seat_id).with_for_update()
        try:
            row = (await self.session.execute(stmt)).one_or_none()
        except (SQLAlchemyError, OSError) as exc:
            raise translate_error(exc, "lock_seat", seat_id, in_transaction=True) from exc
        return _snapshot(row)

    async def claim_if_version(self, seat_id: int, expected_version: int, user_id: int) -> int:
        try:
            result = await self.session.execute(_claim_statement(seat_id, expected_version, user_id))
        except (SQLAlchemyError, OSError) as exc:
            raise translate_error(exc, "claim_if_version", seat_id, in_transaction=True) from exc
        return result.rowcount


class SqlAlchemySeatStore(SeatStore):
    def __init__(self, database: Database) -> None:
        self.database = database

    async def find_available(self, movie_id: int) -> Optional[SeatSnapshot]:
        stmt = (
            select(*_SEAT_COLUMNS)
            .where(Seat.movie_id == movie_id, Seat.user_id.is_(None))
            .order_by(Seat.id)
            .limit(1)
        )
        try:
            async with self.database.session() as session:
                row = (await session.execute(stmt)).one_or_none()
        except (SQLAlchemyError, OSError) as exc:
            raise translate_error(exc, "find_available") from exc
        return _snapshot(row)

    async def get_seat(self, seat_id: int) -> Optional[SeatSnapshot]:
        stmt = select(*_SEAT_COLUMNS).where(Seat.id == seat_id)
        try:
            async with self.database.session() as session:
                row = (await session.execute(stmt)).one_or_none()
        except (SQLAlchemyError, OSError) as exc:
            raise translate_error(exc, "get_seat", seat_id) from exc
        return _snapshot(row)

    async def claim_if_version(self, seat_id: int, expected_version: int, user_id: int) -> int:
        try:
            async with self.database.session() as session:
                async with session.begin():
                    result = await session.execute(
                        _claim_statement(seat_id, expected_version, user_id)
                    )
        except (SQLAlchemyError, OSError) as exc:
            raise translate_error(exc, "claim_if_version", seat_id) from exc
        return result.rowcount

    @asynccontextmanager
    async def transaction(
        self, isolation_level: IsolationLevel, timeout_ms: int
    ) -> AsyncIterator[SeatTransaction]:
        try:
            async with self.database.session() as session:
                async with session.begin():
                    # Must be the first use of the session so the level applies to this BEGIN
                    await session.connection(
                        execution_options={"isolation_level": isolation_level.value}
                    )
                    if self.database.dialect_name == "postgresql":
                        await session.execute(
                            text("SELECT set_config('lock_timeout', :value, true)"),
                            {"value": f"{int(timeout_ms)}ms"},
                        )
                    yield _SqlAlchemySeatTransaction(session)
        except (SQLAlchemyError, OSError) as exc:
            # Failures at BEGIN/COMMIT; errors from the body arrive translated
            raise translate_error(exc, "transaction", in_transaction=True) from exc

    async def close(self) -> None:
        await self.database.dispose()
